"""Command line interface for vp_uploader."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, TextIO, Tuple

from rich.logging import RichHandler

from .cli_progress import BatchProgressDisplay, human_size, render_configuration_summary
from .config import config_from_env
from .engine import HttpTransferEngine
from .errors import UploaderError
from .models import UploadConfig, UploadSource
from .orchestrator import VpUploader


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _load_credentials(path: Path) -> Dict[str, Mapping[str, Any]]:
    """
    Read broker credentials.

    Accepts either an object keyed by file name, or a list of objects that
    carry a ``file`` entry next to requestKey / uploadId / presignedUrls.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CLIError(f"could not read credentials file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise CLIError(f"credentials file {path} is not valid JSON: {exc}") from exc

    if isinstance(data, dict):
        return data
    if isinstance(data, list):
        credentials = {}
        for position, entry in enumerate(data):
            if not isinstance(entry, dict) or not entry.get("file"):
                raise CLIError(f"credentials entry {position} has no 'file' name")
            details = dict(entry)
            credentials[Path(details.pop("file")).name] = details
        return credentials
    raise CLIError("credentials file must hold an object or a list")


def _build_items(
    files: Sequence[Path],
    credentials: Mapping[str, Mapping[str, Any]],
) -> List[Tuple[UploadSource, Mapping[str, Any]]]:
    items = []
    for path in files:
        if not path.is_file():
            raise CLIError(f"not a file: {path}")
        details = credentials.get(path.name)
        if details is None:
            raise CLIError(f"no credentials for {path.name}")
        items.append((UploadSource.from_path(path), details))
    return items


class CompletionWriter:
    """Writes multipart completion payloads as JSON lines."""

    def __init__(self, stream: TextIO):
        self._stream = stream
        self.count = 0

    def __call__(self, completion: Mapping[str, Any]) -> None:
        self._stream.write(json.dumps(dict(completion)) + "\n")
        self._stream.flush()
        self.count += 1


async def _run_upload(
    items: List[Tuple[UploadSource, Mapping[str, Any]]],
    config: UploadConfig,
    completions: TextIO,
) -> int:
    display = BatchProgressDisplay()
    async with HttpTransferEngine() as engine:
        engine.on("upload-progress", display.on_file_progress)
        engine.on("upload-success", display.on_file_complete)
        engine.on("upload-error", display.on_file_fail)

        uploader = VpUploader(config, engine=engine)
        uploader.register_handlers(on_completion=CompletionWriter(completions))

        with display:
            result = await uploader.upload_many(items)

    failures = {
        failure.source.name: str(failure.error or "cancelled")
        for failure in result.failures
    }
    display.render_summary(result.total, failures)
    return 0 if result.all_success else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vp-upload",
        description="Upload video files to presigned object-store URLs.",
    )
    parser.add_argument("files", nargs="*", type=Path, help="Files to upload")
    parser.add_argument(
        "-C",
        "--credentials",
        type=Path,
        default=None,
        help="JSON file with requestKey / uploadId / presignedUrls per file name",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help="Part size in bytes (default from VP_UPLOADER_CHUNK_SIZE or 50 MiB)",
    )
    parser.add_argument(
        "--categories",
        default=None,
        help="Comma separated allowed file categories (example: video/*,.mkv)",
    )
    parser.add_argument(
        "--max-parallel",
        type=int,
        default=None,
        help="Maximum number of files uploading at the same time",
    )
    parser.add_argument(
        "--completions-out",
        type=Path,
        default=None,
        help="Write multipart completion payloads here (JSON lines, default stdout)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="vp-upload (from vp_uploader)",
    )
    return parser


def _config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.debug:
        overrides["debug"] = True
    if args.chunk_size is not None:
        overrides["chunk_size"] = args.chunk_size
    if args.categories:
        overrides["allowed_file_categories"] = [c.strip() for c in args.categories.split(",") if c.strip()]
    if args.max_parallel is not None:
        overrides["max_parallel"] = args.max_parallel
    return overrides


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if not args.files:
        parser.print_help()
        return 0

    credentials_path = args.credentials or (
        Path(os.environ["VP_UPLOADER_CREDENTIALS"]) if os.getenv("VP_UPLOADER_CREDENTIALS") else None
    )
    if credentials_path is None:
        print("ERROR: --credentials (or VP_UPLOADER_CREDENTIALS) is required", file=sys.stderr)
        return 1

    try:
        config = config_from_env(overrides=_config_overrides(args))
        credentials = _load_credentials(credentials_path)
        items = _build_items([Path(f).expanduser() for f in args.files], credentials)
    except (CLIError, UploaderError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    render_configuration_summary(
        {
            "Files": len(items),
            "Total Size": human_size(sum(source.size for source, _ in items)),
            "Credentials": str(credentials_path),
            "Chunk Size": human_size(config.chunk_size),
            "Categories": ", ".join(config.allowed_file_categories),
            "Max Parallel": config.max_parallel or "unbounded",
            "Completions": str(args.completions_out) if args.completions_out else "stdout",
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    completions = None
    try:
        completions = (
            open(args.completions_out, "a", encoding="utf-8")
            if args.completions_out
            else sys.stdout
        )
        return asyncio.run(_run_upload(items, config, completions))
    except (CLIError, UploaderError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130
    finally:
        if completions is not None and completions is not sys.stdout:
            completions.close()


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
