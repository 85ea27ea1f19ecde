"""
sim_import/config.py
-----------------------------------------------------------------------------
Runtime settings for the exchange client.

Settings come from environment variables, optionally seeded from a ``.env``
file in the working directory.  Nothing is persisted between runs: the
positional CLI arguments carry everything that identifies a run, these
settings only tune how the client behaves.

Environment variables
---------------------
SIM_IMPORT_USER_AGENT      – User-Agent header (default: 1C+Enterprise/8.21,
                             which exchange servers expect from 1C clients).
SIM_IMPORT_CONNECT_TIMEOUT – seconds to wait for a connection (default 10).
SIM_IMPORT_READ_TIMEOUT    – seconds to wait for a reply (default 300).
                             ``import`` requests block while the server
                             processes a file, hence the generous default.
SIM_IMPORT_TEMP_DIR        – directory for the temporary zip archive
                             (default: the system temp directory).
SIM_IMPORT_MAX_POLLS       – optional cap on ``import`` polls per file
                             (default: unset, poll until the server answers).
SIM_IMPORT_LOG_LEVEL       – root log level used by the CLI (default INFO).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Load .env if present (no-op if the file doesn't exist)
load_dotenv()

DEFAULT_USER_AGENT: str = "1C+Enterprise/8.21"


class ClientSettings(BaseModel):
    """Tunable client behaviour; immutable for the lifetime of a run."""

    model_config = ConfigDict(frozen=True)

    user_agent: str = DEFAULT_USER_AGENT
    connect_timeout: float = Field(default=10.0, gt=0)
    read_timeout: float = Field(default=300.0, gt=0)
    temp_dir: Path | None = None
    max_polls: int | None = Field(default=None, gt=0)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, v: str) -> str:
        """Accept only level names the ``logging`` module knows."""
        v = v.strip().upper()
        if not isinstance(logging.getLevelName(v), int):
            raise ValueError(f"unknown log level {v!r}")
        return v


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def load_settings() -> ClientSettings:
    """
    Build ``ClientSettings`` from the current environment.

    Read at call time (not import time) so tests and the CLI can adjust the
    environment before a run starts.

    Raises
    ------
    ValueError
        If a variable is set to something that cannot be parsed, or fails
        model validation (e.g. a non-positive timeout).
    """
    temp_dir = os.getenv("SIM_IMPORT_TEMP_DIR")
    return ClientSettings(
        user_agent=os.getenv("SIM_IMPORT_USER_AGENT", DEFAULT_USER_AGENT),
        connect_timeout=_env_float("SIM_IMPORT_CONNECT_TIMEOUT", 10.0),
        read_timeout=_env_float("SIM_IMPORT_READ_TIMEOUT", 300.0),
        temp_dir=Path(temp_dir) if temp_dir else None,
        max_polls=_env_int("SIM_IMPORT_MAX_POLLS"),
        log_level=os.getenv("SIM_IMPORT_LOG_LEVEL", "INFO"),
    )
