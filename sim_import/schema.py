"""
sim_import/schema.py
-----------------------------------------------------------------------------
Pydantic v2 models for the state that flows through one exchange run.

Design principles
-----------------
• Keep models thin – parsing lives in ``decoding.py``, protocol rules in
  ``session.py``.
• Per-request and per-session values are frozen: a ``Session`` or
  ``TransferPolicy`` never changes once the server has handed it out.
• ``RunContext`` is the one aggregate, and only the orchestrator holds it;
  every other component receives just the slice it needs.
"""

from __future__ import annotations

import enum
from pathlib import Path

import httpx
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from sim_import.errors import ResponseFormatError

DEFAULT_CHUNK_SIZE: int = 512_000


# -----------------------------------------------------------------------------
# Protocol response
# -----------------------------------------------------------------------------


class Status(str, enum.Enum):
    """Status token found on the first line of every reply."""

    SUCCESS = "success"
    PROGRESS = "progress"
    FAIL = "fail"

    @classmethod
    def from_token(cls, token: str) -> Status:
        """``success`` and ``progress`` map to themselves; anything else fails."""
        if token == cls.SUCCESS.value:
            return cls.SUCCESS
        if token == cls.PROGRESS.value:
            return cls.PROGRESS
        return cls.FAIL


class ProtocolResponse(BaseModel):
    """
    One decoded reply.

    ``lines`` keeps every line of the body, including the status line,
    because mode-specific fields are addressed by absolute position (for
    ``checkauth`` the cookie name sits where other modes carry the message).
    """

    model_config = ConfigDict(frozen=True)

    status: Status
    message: str = ""
    lines: tuple[str, ...] = ()

    def field(self, index: int) -> str:
        """Return line ``index`` or raise ``ResponseFormatError``."""
        if index < 0 or index >= len(self.lines):
            raise ResponseFormatError(
                f"Response has no field {index} (got {len(self.lines)} lines)."
            )
        return self.lines[index]


# -----------------------------------------------------------------------------
# Session and transfer policy
# -----------------------------------------------------------------------------


class Session(BaseModel):
    """
    Authentication state handed out by ``checkauth``.

    Fields
    ------
    cookie_name / cookie_value – the session cookie, scoped to
                                 ``cookie_domain`` (the endpoint host).
    session_param_name / _value – query pair echoed on every later request.
    server_time                – server clock at login; kept for debugging.
    """

    model_config = ConfigDict(frozen=True)

    cookie_name: str
    cookie_value: str
    cookie_domain: str = ""
    session_param_name: str = ""
    session_param_value: str = ""
    server_time: str | None = None

    def cookie_jar(self) -> httpx.Cookies:
        """A cookie store seeded with the session cookie for ``cookie_domain``."""
        jar = httpx.Cookies()
        jar.set(self.cookie_name, self.cookie_value, domain=self.cookie_domain)
        return jar

    def query_params(self) -> dict[str, str]:
        """The session parameter pair, or an empty dict when none was issued."""
        if self.session_param_name and self.session_param_value:
            return {self.session_param_name: self.session_param_value}
        return {}


class TransferPolicy(BaseModel):
    """Upload rules negotiated once per run via ``init``."""

    model_config = ConfigDict(frozen=True)

    use_archive: bool = False
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, gt=0)


# -----------------------------------------------------------------------------
# Files and run context
# -----------------------------------------------------------------------------


class FileJob(BaseModel):
    """A local file and the name the server knows it by."""

    model_config = ConfigDict(frozen=True)

    source_path: Path
    server_name: str

    @classmethod
    def for_path(cls, path: Path | str) -> FileJob:
        path = Path(path)
        return cls(source_path=path, server_name=path.name)


class RunContext(BaseModel):
    """Everything one run needs; owned exclusively by the orchestrator."""

    endpoint: str
    exchange_type: str
    login: str
    password: SecretStr
    jobs: list[FileJob] = Field(default_factory=list)
    session: Session | None = None
    policy: TransferPolicy | None = None

    @field_validator("endpoint")
    @classmethod
    def endpoint_is_http(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("endpoint must be an http:// or https:// URL")
        return v
