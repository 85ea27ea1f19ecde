"""
sim_import/session.py
-----------------------------------------------------------------------------
Session management: request decoration, ``checkauth`` and ``init``.

Request decoration
------------------
Every request the client sends goes through ``ExchangeChannel.send``, which
adds, in this order:

1. ``type``  – the exchange type tag supplied by the caller,
2. ``mode``  – ``checkauth`` | ``init`` | ``file`` | ``import``,
3. the session parameter pair issued by ``checkauth`` (once there is one),

and hands the session cookie to the transport's cookie store, where it sits
beside any cookie the server sets.  Nothing else in the package builds query
strings, so no request after authentication can go out undecorated.

Channels are immutable: ``bind(session)`` returns a new channel, which is how
the orchestrator moves from the anonymous phase to the authenticated one.

checkauth reply
---------------
::

    success
    <cookie-name>
    <cookie-value>
    <sessparam>=<value>
    <key>=<server time>
"""

from __future__ import annotations

import logging
from typing import Protocol
from urllib.parse import urlsplit

import httpx

from sim_import.decoding import get_param, parse_response, split_param
from sim_import.errors import AuthenticationError, PolicyError, ResponseFormatError
from sim_import.schema import DEFAULT_CHUNK_SIZE, ProtocolResponse, Session, Status, TransferPolicy

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """What a channel needs from the HTTP layer (see ``transport.py``)."""

    def post(
        self,
        url: str,
        *,
        params: dict[str, str],
        content: bytes | None = None,
        auth: tuple[str, str] | None = None,
        cookies: httpx.Cookies | None = None,
    ) -> bytes: ...


class ExchangeChannel:
    """A transport bound to one endpoint, one exchange type and (later) one session."""

    def __init__(
        self,
        transport: Transport,
        endpoint: str,
        exchange_type: str,
        session: Session | None = None,
    ) -> None:
        self.transport = transport
        self.endpoint = endpoint
        self.exchange_type = exchange_type
        self.session = session

    def bind(self, session: Session) -> ExchangeChannel:
        """Return a channel that decorates every request with ``session``."""
        return ExchangeChannel(self.transport, self.endpoint, self.exchange_type, session)

    def send(
        self,
        mode: str,
        *,
        params: dict[str, str] | None = None,
        content: bytes | None = None,
        auth: tuple[str, str] | None = None,
    ) -> ProtocolResponse:
        """Decorate, send and decode one request."""
        query = dict(params or {})
        query["type"] = self.exchange_type
        query["mode"] = mode
        cookies = None
        if self.session is not None:
            query.update(self.session.query_params())
            cookies = self.session.cookie_jar()

        raw = self.transport.post(
            self.endpoint,
            params=query,
            content=content,
            auth=auth,
            cookies=cookies,
        )
        response = parse_response(raw)
        # init replies carry no status line, so log the raw lines rather than
        # a classified status.  checkauth lines after the status are secrets.
        shown = response.lines[:1] if mode == "checkauth" else response.lines
        logger.info("mode=%s response: %s", mode, " | ".join(shown))
        return response


def authenticate(channel: ExchangeChannel, login: str, password: str) -> Session:
    """
    Perform the ``checkauth`` handshake.

    Credentials travel as HTTP basic auth, never as query or form fields.

    Returns
    -------
    Session built from the positional reply fields.

    Raises
    ------
    AuthenticationError
        If the server does not answer ``success`` (carrying the server's
        message) or the reply lacks the cookie / session parameter lines.
    """
    response = channel.send("checkauth", auth=(login, password))
    if response.status is not Status.SUCCESS:
        raise AuthenticationError(response.message or "Authentication failed.")

    try:
        cookie_name = response.field(1)
        cookie_value = response.field(2)
        param_name, param_value = split_param(response.field(3))
        # A trailing newline leaves an empty line 4; the time is optional.
        time_line = response.lines[4] if len(response.lines) > 4 else ""
        server_time = get_param(time_line) if time_line else None
    except ResponseFormatError as exc:
        raise AuthenticationError(f"Malformed checkauth response: {exc.message}") from exc

    if not cookie_name:
        raise AuthenticationError("Malformed checkauth response: empty cookie name.")

    session = Session(
        cookie_name=cookie_name,
        cookie_value=cookie_value,
        cookie_domain=cookie_domain_for(channel.endpoint),
        session_param_name=param_name,
        session_param_value=param_value,
        server_time=server_time,
    )
    logger.debug("Authenticated; server time %s", server_time)
    return session


def cookie_domain_for(endpoint: str) -> str:
    """
    Cookie domain for the endpoint host.

    The cookie jar files cookies from dotless hosts (``localhost``, intranet
    names) under ``<host>.local``, so the session cookie is scoped the same
    way or it would never be sent back.
    """
    host = urlsplit(endpoint).hostname or ""
    if host and "." not in host:
        return f"{host}.local"
    return host


def _parse_chunk_size(response: ProtocolResponse) -> int:
    try:
        chunk_size = int(get_param(response.field(1)).strip())
    except (ResponseFormatError, ValueError):
        chunk_size = 0
    if chunk_size <= 0:
        logger.warning(
            "Server sent no usable chunk size; falling back to %d bytes.", DEFAULT_CHUNK_SIZE
        )
        return DEFAULT_CHUNK_SIZE
    return chunk_size


def negotiate_transfer(channel: ExchangeChannel) -> TransferPolicy:
    """
    Ask the server how it wants files delivered (``mode=init``).

    Reply fields: ``zip=yes|no`` then ``file_limit=<bytes>``.  An unusable
    chunk size falls back to 512000; an unusable archive flag is an error,
    since guessing it would send files in a shape the server cannot import.

    Raises
    ------
    PolicyError
        If field 0 is missing or not a ``key=value`` line.  When the server
        answered with a plain failure (``failure\\n<message>``) its message
        is carried instead.
    """
    response = channel.send("init")
    if response.lines and "=" not in response.lines[0] and response.message:
        raise PolicyError(response.message)
    try:
        use_archive = get_param(response.field(0)).strip() == "yes"
    except ResponseFormatError as exc:
        raise PolicyError(f"Malformed init response: {exc.message}") from exc

    policy = TransferPolicy(use_archive=use_archive, chunk_size=_parse_chunk_size(response))
    logger.info("Transfer policy: archive=%s chunk_size=%d", policy.use_archive, policy.chunk_size)
    return policy
