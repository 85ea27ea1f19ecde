"""
sim_import/cli.py
-----------------------------------------------------------------------------
Command-line entrypoint.

Usage::

    sim-import http://example/exchange.php catalog login password a.xml b.xml

Exit codes: 0 on a complete run, 1 when the exchange fails, 2 on bad usage.
"""

from __future__ import annotations

import argparse
import logging
import sys
import tomllib
from pathlib import Path

from pydantic import ValidationError

from sim_import.config import ClientSettings, load_settings
from sim_import.errors import ExchangeError
from sim_import.orchestrator import run_exchange

logger = logging.getLogger(__name__)

_PYPROJECT = Path(__file__).parent.parent / "pyproject.toml"

COMPLETION_BANNER: str = "-" * 26 + "\n" + "Done".center(26, "-") + "\n" + "-" * 26


def _read_version() -> str:
    # Read version from pyproject.toml (single source of truth).
    if not _PYPROJECT.exists():
        return "unknown"
    with open(_PYPROJECT, "rb") as f:
        return tomllib.load(f)["project"]["version"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sim-import",
        description=(
            "Authenticate against an exchange endpoint, upload payload files "
            "and run the server-side import for each of them."
        ),
        epilog="example: sim-import http://example/server_endpoint.php type login password "
        "/path/file1.xml /path/file2.xml",
    )
    parser.add_argument("endpoint", help="Exchange endpoint URL")
    parser.add_argument("type", help="Exchange type tag (server integration profile)")
    parser.add_argument("login", help="Login for the checkauth handshake")
    parser.add_argument("password", help="Password for the checkauth handshake")
    parser.add_argument("files", nargs="+", type=Path, help="Payload files, imported in order")
    parser.add_argument(
        "--max-polls",
        type=int,
        default=None,
        help="Give up on a file after N import polls (default: no limit)",
    )
    parser.add_argument(
        "--temp-dir", type=Path, default=None, help="Directory for the temporary zip archive"
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Log every chunk")
    verbosity.add_argument(
        "-q", "--quiet", action="store_true", help="Only log warnings and errors"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_read_version()}")
    return parser


def _configure_logging(args: argparse.Namespace, settings: ClientSettings) -> None:
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    else:
        level = logging.getLevelName(settings.log_level)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _merge_settings(args: argparse.Namespace, settings: ClientSettings) -> ClientSettings:
    overrides: dict = {}
    if args.max_polls is not None:
        overrides["max_polls"] = args.max_polls
    if args.temp_dir is not None:
        overrides["temp_dir"] = args.temp_dir
    if not overrides:
        return settings
    return ClientSettings(**{**settings.model_dump(), **overrides})


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _merge_settings(args, load_settings())
    except ValueError as exc:
        parser.error(str(exc))

    _configure_logging(args, settings)

    try:
        run_exchange(
            args.endpoint,
            args.type,
            args.login,
            args.password,
            args.files,
            settings=settings,
        )
    except ExchangeError as exc:
        logger.debug("Run failed", exc_info=True)
        print(f"error: {exc.message}", file=sys.stderr)
        return 1
    except ValidationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        logger.debug("Run failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(COMPLETION_BANNER)
    return 0
