"""
sim_import/transport.py
-----------------------------------------------------------------------------
Thin synchronous wrapper around ``httpx`` for the exchange endpoint.

Why synchronous?
----------------
A run is strictly sequential: one request in flight, one file, one chunk at
a time.  A blocking ``httpx.Client`` keeps one pooled connection to the
endpoint for the whole run and nothing is gained from an event loop.

What this layer does and does not do
------------------------------------
It sends a ``POST`` with query parameters, an optional raw body and optional
basic credentials, and returns the raw response body.  The client's cookie
jar is the run's cookie store: the session cookie is merged into it and any
cookie the server sets with ``Set-Cookie`` accumulates there, so both ride
on every later request.  Redirects are followed.  It knows nothing about
modes, statuses or sessions; that is ``session.py``'s job.  HTTP error
replies (4xx / 5xx) and network failures are turned into ``TransportError``
here, so no ``httpx`` exception escapes into the rest of the client.

Logging
-------
Error reply bodies are logged as warnings before the exception is raised, so
the server's diagnostics are visible even when the caller only shows the
exception message.
"""

from __future__ import annotations

import logging

import httpx

from sim_import.config import ClientSettings
from sim_import.decoding import decode_legacy_text
from sim_import.errors import TransportError

logger = logging.getLogger(__name__)


class ExchangeTransport:
    """
    One HTTP connection pool for one run.

    Use as a context manager so the underlying client is always closed::

        with ExchangeTransport(settings) as transport:
            body = transport.post(url, params={"mode": "init"})
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        settings = settings or ClientSettings()
        timeout = httpx.Timeout(
            connect=settings.connect_timeout,
            read=settings.read_timeout,
            write=settings.read_timeout,
            pool=settings.connect_timeout,
        )
        self._client = httpx.Client(
            timeout=timeout,
            headers={"User-Agent": settings.user_agent},
            follow_redirects=True,
            transport=transport,
        )

    def __enter__(self) -> ExchangeTransport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def post(
        self,
        url: str,
        *,
        params: dict[str, str],
        content: bytes | None = None,
        auth: tuple[str, str] | None = None,
        cookies: httpx.Cookies | None = None,
    ) -> bytes:
        """
        Send one request and return the raw response body.

        Parameters
        ----------
        url     : Endpoint URL.
        params  : Query parameters, already fully decorated by the caller.
        content : Raw request body (a file chunk) or None.
        auth    : ``(login, password)`` for HTTP basic auth, or None.
        cookies : Cookies to merge into the client's jar before sending
                  (the session cookie), or None.

        Raises
        ------
        TransportError
            On a 4xx / 5xx reply (with the decoded body) or when no reply
            was received (connect error, timeout, protocol error).
        """
        if cookies is not None:
            self._client.cookies.update(cookies)
        try:
            response = self._client.post(
                url,
                params=params,
                content=content,
                auth=auth,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body = decode_legacy_text(exc.response.content)
            logger.warning(
                "mode=%s HTTP %s: %s",
                params.get("mode"),
                exc.response.status_code,
                body,
            )
            raise TransportError(exc.response.status_code, body) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "mode=%s request failed: %s: %s", params.get("mode"), type(exc).__name__, exc
            )
            raise TransportError(None, f"{type(exc).__name__}: {exc}") from exc

        return response.content
