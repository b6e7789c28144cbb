"""Command line interface for dvupload package."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from rich.logging import RichHandler

from . import __version__
from .cli_progress import (
    TransferProgressDisplay,
    render_configuration_summary,
    render_outcomes,
    render_response,
    summarize_files,
)
from .errors import BatchUploadError, DirectUploadError
from .identifier import Identifier
from .models import DirectUploadBody, UploadConfig
from .orchestrator import UploadOrchestrator

URL_ENV = "DVCLI_URL"
TOKEN_ENV = "DVCLI_TOKEN"
DEFAULT_BODY_FILE = "body.json"

EXAMPLE_BODY = DirectUploadBody(
    categories=["Some category"],
    description="Some description",
    directory_label="some/path",
    mime_type="text/plain",
    restrict=False,
)


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
    if level > logging.DEBUG:
        # request lines from httpx are only useful when debugging
        logging.getLogger("httpx").setLevel(logging.WARNING)
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path) -> None:
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
        if key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _load_body(path: Path) -> DirectUploadBody:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CLIError(f"could not read body file {path}: {exc}") from exc
    except ValueError as exc:
        raise CLIError(f"body file {path} is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise CLIError(f"body file {path} must contain a JSON object")
    return DirectUploadBody.from_payload(data)


def _resolve_bodies(body_paths: Sequence[Path], file_count: int) -> List[DirectUploadBody]:
    """One body per file: none given, one shared template, or one each."""
    if not body_paths:
        return [DirectUploadBody() for _ in range(file_count)]
    if len(body_paths) == 1:
        template = _load_body(Path(body_paths[0]))
        return [template.copy() for _ in range(file_count)]
    if len(body_paths) != file_count:
        raise CLIError(
            f"got {len(body_paths)} --body files for {file_count} files "
            "(pass one shared body or one per file)"
        )
    return [_load_body(Path(path)) for path in body_paths]


def _write_example_body(output: Path) -> None:
    try:
        output.write_text(json.dumps(EXAMPLE_BODY.to_payload(), indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not write {output}: {exc}") from exc


async def _run_upload(
    files: Sequence[Path],
    destination: Identifier,
    bodies: Sequence[DirectUploadBody],
) -> int:
    base_url = os.getenv(URL_ENV)
    if not base_url:
        raise CLIError(f"{URL_ENV} environment variable is not set")

    config = UploadConfig.from_env()
    async with UploadOrchestrator(base_url, os.getenv(TOKEN_ENV), config=config) as orchestrator:
        try:
            with TransferProgressDisplay(files) as display:
                callbacks = display.callbacks()
                if len(files) == 1:
                    result = await orchestrator.upload(files[0], destination, bodies[0], callbacks[0])
                else:
                    result = await orchestrator.transfer(files, destination, bodies, callbacks)
        except BatchUploadError as exc:
            render_outcomes(exc.outcomes)
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1
        except (DirectUploadError, OSError) as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    render_response(result.to_dict(), error=None if result.is_ok else result.message)
    return 0 if result.is_ok else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dvupload",
        description="Upload files directly to a Dataverse dataset's object storage.",
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
        version=f"dvupload {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    upload = subparsers.add_parser("upload", help="Upload files and register them with a dataset")
    upload.add_argument(
        "-i",
        "--id",
        required=True,
        help="Persistent identifier (doi:...) or numeric id of the dataset",
    )
    upload.add_argument(
        "--body",
        type=Path,
        action="append",
        default=[],
        help="JSON file with the file body; give once for all files or once per file",
    )
    upload.add_argument("files", nargs="+", type=Path, help="Files to upload")

    gen_body = subparsers.add_parser("gen-body", help="Write an example file body to fill out")
    gen_body.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path(DEFAULT_BODY_FILE),
        help=f"Where to write the example body (default: {DEFAULT_BODY_FILE})",
    )
    return parser


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

    if args.command is None:
        parser.print_help()
        return 0

    try:
        if args.command == "gen-body":
            _write_example_body(args.output)
            print(f"Example body written to {args.output}")
            return 0

        files = [Path(path).expanduser() for path in args.files]
        for path in files:
            if not path.is_file():
                raise CLIError(f"not a file: {path}")

        try:
            destination = Identifier.parse(args.id)
        except ValueError as exc:
            raise CLIError(str(exc)) from exc
        bodies = _resolve_bodies(args.body, len(files))

        render_configuration_summary(
            {
                "Dataset": str(destination),
                "Files": summarize_files(files),
                "Bodies": ", ".join(str(p) for p in args.body) or "(empty)",
                "Server": os.getenv(URL_ENV) or "(missing)",
                "Token": "set" if os.getenv(TOKEN_ENV) else "-",
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )

        return asyncio.run(_run_upload(files, destination, bodies))
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
