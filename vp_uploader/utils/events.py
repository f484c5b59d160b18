from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
import inspect
import logging

from ..errors import HandlerMissingWarning

logger = logging.getLogger(__name__)


@dataclass
class FileProgress:
    """Progress information for a single file."""
    file_id: str
    filename: str
    bytes_uploaded: int = 0
    total_bytes: int = 0
    parts_uploaded: int = 0
    total_parts: int = 0

    @property
    def percent(self) -> float:
        if self.total_bytes <= 0:
            return 100.0 if self.parts_uploaded and self.parts_uploaded >= self.total_parts else 0.0
        return self.bytes_uploaded / self.total_bytes * 100


class EventEmitter:
    """Simple event emitter for transfer lifecycle events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, callback: Callable):
        """Subscribe to an event."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if callback not in self._listeners[event_name]:
            self._listeners[event_name].append(callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        if event_name in self._listeners:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))

    async def emit(self, event_name: str, *args, **kwargs):
        """Emit an event to all listeners."""
        if event_name not in self._listeners:
            return

        for callback in self._listeners[event_name][:]:  # Copy list to avoid modification during iteration
            try:
                await call_handler(callback, *args, **kwargs)
            except Exception as e:
                logger.error(f"Error in event listener for {event_name}: {e}", exc_info=True)


async def call_handler(callback: Callable, *args, **kwargs) -> Any:
    """Call a plain or coroutine callback and return its result."""
    result = callback(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


def report_missing_handler(slot: str, context: Optional[str] = None) -> None:
    """Log that an event had nowhere to go. Never raises."""
    suffix = f" ({context})" if context else ""
    logger.warning(f"{HandlerMissingWarning.__name__}: no {slot} handler registered{suffix}")
