"""
sim_import/errors.py
-----------------------------------------------------------------------------
Exception taxonomy for the exchange client.

Every failure in a run surfaces as a subclass of ``ExchangeError`` carrying a
human-readable message (already decoded from the server's legacy code page).
None of these are retried: the orchestrator lets them propagate and the CLI
turns them into a non-zero exit.

Hierarchy
---------
ExchangeError
 ├── ResponseFormatError   – a response line is missing or has no ``=``
 ├── AuthenticationError   – ``checkauth`` rejected or returned a bad session
 ├── PolicyError           – ``init`` reply unusable (archive flag)
 ├── FileAccessError       – local payload file missing or unreadable
 ├── TransferError         – a ``file`` chunk was not acknowledged
 ├── ServerImportError     – ``import`` ended with a non-success status
 └── TransportError        – HTTP-level failure (4xx/5xx, connect, timeout)
"""

from __future__ import annotations


class ExchangeError(Exception):
    """Base class for every error raised by the exchange client."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ResponseFormatError(ExchangeError):
    """A positional response field is missing or malformed."""


class AuthenticationError(ExchangeError):
    """Bad credentials or a session the client cannot use."""


class PolicyError(ExchangeError):
    """The ``init`` response could not be turned into a transfer policy."""


class FileAccessError(ExchangeError):
    """A payload file does not exist or cannot be opened for reading."""


class TransferError(ExchangeError):
    """The server refused a chunk of an upload."""


class ServerImportError(ExchangeError):
    """Server-side processing of an uploaded file failed.

    Named so that it does not shadow the built-in ``ImportError``.
    """


class TransportError(ExchangeError):
    """
    The HTTP exchange itself failed.

    ``status_code`` is the HTTP status for error replies and ``None`` when
    no response was received at all.  ``body`` holds the decoded raw server
    body (or the low-level error text) for diagnostics.
    """

    def __init__(self, status_code: int | None, body: str) -> None:
        if status_code is None:
            message = f"Transport failure: {body}"
        else:
            message = f"Server returned HTTP {status_code}: {body[:500]}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body
