"""Configuration validation and environment loading."""
import logging
import math
import os
from collections.abc import Sequence
from numbers import Real
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigValidationError
from .models import UploadConfig

logger = logging.getLogger(__name__)

# Accepted spellings -> UploadConfig field
_OPTION_NAMES = {
    "chunkSize": "chunk_size",
    "chunk_size": "chunk_size",
    "debug": "debug",
    "allowedFileCategories": "allowed_file_categories",
    "allowed_file_categories": "allowed_file_categories",
    "maxParallel": "max_parallel",
    "max_parallel": "max_parallel",
}

ENV_PREFIX = "VP_UPLOADER_"


def _validate_chunk_size(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ConfigValidationError(f"chunk_size must be a number, got {type(value).__name__}")
    if not math.isfinite(value):
        raise ConfigValidationError(f"chunk_size must be finite, got {value}")
    if value <= 0:
        raise ConfigValidationError(f"chunk_size must be positive, got {value}")
    chunk_size = int(value)
    if chunk_size < 1:
        raise ConfigValidationError(f"chunk_size must be at least 1 byte, got {value}")
    return chunk_size


def _validate_debug(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigValidationError(f"debug must be a boolean, got {type(value).__name__}")
    return value


def _validate_categories(value: Any) -> tuple:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ConfigValidationError(
            f"allowed_file_categories must be a sequence of strings, got {type(value).__name__}"
        )
    for item in value:
        if not isinstance(item, str) or not item:
            raise ConfigValidationError(f"allowed_file_categories entries must be non-empty strings: {item!r}")
    return tuple(value)


def _validate_max_parallel(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigValidationError(f"max_parallel must be a positive integer, got {value!r}")
    return value


_VALIDATORS = {
    "chunk_size": _validate_chunk_size,
    "debug": _validate_debug,
    "allowed_file_categories": _validate_categories,
    "max_parallel": _validate_max_parallel,
}


def validate_config(options: Optional[Mapping[str, Any]] = None) -> UploadConfig:
    """
    Merge user options over defaults and validate every recognised key.

    Args:
        options: Mapping with chunkSize/chunk_size, debug,
            allowedFileCategories/allowed_file_categories, maxParallel/max_parallel.
            ``None`` means all defaults.

    Returns:
        Validated UploadConfig. Unknown keys are listed in ``ignored_keys``.

    Raises:
        ConfigValidationError: config is not a mapping or a value has the wrong shape.
    """
    if options is None:
        return UploadConfig()
    if isinstance(options, UploadConfig):
        return options
    if not isinstance(options, Mapping):
        raise ConfigValidationError(f"config must be a mapping, got {type(options).__name__}")

    values: Dict[str, Any] = {}
    ignored = []
    for key, value in options.items():
        field_name = _OPTION_NAMES.get(key)
        if field_name is None:
            ignored.append(str(key))
            continue
        values[field_name] = _VALIDATORS[field_name](value)

    if ignored:
        logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(ignored))}")

    return UploadConfig(**values, ignored_keys=tuple(sorted(ignored)))


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ConfigValidationError(f"{name} must be a boolean, got {raw!r}")


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ConfigValidationError(f"{name} must be an integer, got {raw!r}") from exc


def config_from_env(
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> UploadConfig:
    """Build config from VP_UPLOADER_* variables; ``overrides`` win over the environment."""
    environ = os.environ if environ is None else environ
    options: Dict[str, Any] = {}

    raw = environ.get(f"{ENV_PREFIX}CHUNK_SIZE")
    if raw:
        options["chunk_size"] = _parse_int(f"{ENV_PREFIX}CHUNK_SIZE", raw)

    raw = environ.get(f"{ENV_PREFIX}DEBUG")
    if raw:
        options["debug"] = _parse_bool(f"{ENV_PREFIX}DEBUG", raw)

    raw = environ.get(f"{ENV_PREFIX}ALLOWED_CATEGORIES")
    if raw:
        options["allowed_file_categories"] = [part.strip() for part in raw.split(",") if part.strip()]

    raw = environ.get(f"{ENV_PREFIX}MAX_PARALLEL")
    if raw:
        options["max_parallel"] = _parse_int(f"{ENV_PREFIX}MAX_PARALLEL", raw)

    if overrides:
        options.update(overrides)
    return validate_config(options)
