"""
sim_import/decoding.py
-----------------------------------------------------------------------------
Response decoding: raw reply bytes → ``ProtocolResponse``.

The exchange server answers every request with a small line-oriented body::

    success                 <- status token (success | progress | other)
    Файл принят             <- message, Windows-1251 on the wire
    key=value               <- mode-specific positional fields
    ...

The body is decoded from the legacy single-byte code page exactly once, here,
so every other module deals with ``str`` only.

Exports
-------
decode_legacy_text(raw) -> str
parse_response(raw) -> ProtocolResponse
split_param(line) -> tuple[str, str]
get_param(line) -> str
"""

from __future__ import annotations

from sim_import.errors import ResponseFormatError
from sim_import.schema import ProtocolResponse, Status

LEGACY_ENCODING: str = "cp1251"


def decode_legacy_text(raw: bytes) -> str:
    """
    Reinterpret ``raw`` from Windows-1251 as text.

    The single undefined byte of the code page (0x98) is replaced rather
    than raising, so a damaged message still reaches the operator.
    """
    return raw.decode(LEGACY_ENCODING, errors="replace")


def parse_response(raw: bytes) -> ProtocolResponse:
    """
    Decode a reply body into status, message and positional lines.

    Lines are split on ``\\n``; a trailing ``\\r`` is dropped from each line
    so servers that answer with CRLF classify the same way.

    Parameters
    ----------
    raw : The response body exactly as received.

    Returns
    -------
    ProtocolResponse with ``status`` taken from line 0, ``message`` from
    line 1 (empty when absent) and ``lines`` holding every line.
    """
    text = decode_legacy_text(raw)
    lines = tuple(line.removesuffix("\r") for line in text.split("\n"))
    return ProtocolResponse(
        status=Status.from_token(lines[0]),
        message=lines[1] if len(lines) > 1 else "",
        lines=lines,
    )


def split_param(line: str) -> tuple[str, str]:
    """
    Split a ``key=value`` line on its first ``=``.

    Raises
    ------
    ResponseFormatError
        If the line has no ``=`` at all.
    """
    key, sep, value = line.partition("=")
    if not sep:
        raise ResponseFormatError(f"Expected a key=value line, got {line!r}.")
    return key, value


def get_param(line: str) -> str:
    """Return only the value of a ``key=value`` line."""
    return split_param(line)[1]
