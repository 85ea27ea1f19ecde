"""Shared fixtures for the exchange client test suite."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import pytest

from sim_import.schema import Session
from sim_import.session import ExchangeChannel

ENDPOINT = "http://shop.example.com/exchange.php"

AUTH_OK = b"success\nPHPSESSID\nabc123\nsessid=xyz789\ntimestamp=1700000000"


def reply(*lines: str) -> bytes:
    """Encode reply lines the way the server does (Windows-1251)."""
    return "\n".join(lines).encode("cp1251")


@dataclass
class RecordedRequest:
    url: str
    params: dict[str, str]
    content: bytes | None
    auth: tuple[str, str] | None
    cookies: dict[str, str] | None


@dataclass
class FakeTransport:
    """
    Stand-in for ``ExchangeTransport`` that replays canned replies.

    ``replies`` entries are either raw bodies or callables that receive the
    recorded request and return a body (or raise).
    """

    replies: list[bytes | Callable[[RecordedRequest], bytes]] = field(default_factory=list)
    requests: list[RecordedRequest] = field(default_factory=list)

    def post(
        self,
        url: str,
        *,
        params: dict[str, str],
        content: bytes | None = None,
        auth: tuple[str, str] | None = None,
        cookies: httpx.Cookies | None = None,
    ) -> bytes:
        jar = {c.name: c.value for c in cookies.jar} if cookies is not None else None
        request = RecordedRequest(url, dict(params), content, auth, jar)
        self.requests.append(request)
        if not self.replies:
            raise AssertionError(f"Unexpected request: {params}")
        item = self.replies.pop(0)
        return item(request) if callable(item) else item

    def modes(self) -> list[str]:
        return [r.params["mode"] for r in self.requests]


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def session() -> Session:
    return Session(
        cookie_name="PHPSESSID",
        cookie_value="abc123",
        cookie_domain="shop.example.com",
        session_param_name="sessid",
        session_param_value="xyz789",
        server_time="1700000000",
    )


@pytest.fixture()
def channel(transport: FakeTransport) -> ExchangeChannel:
    """Unauthenticated channel on the fake transport."""
    return ExchangeChannel(transport, ENDPOINT, "catalog")


@pytest.fixture()
def bound_channel(channel: ExchangeChannel, session: Session) -> ExchangeChannel:
    """Channel carrying an established session."""
    return channel.bind(session)


@pytest.fixture()
def payload_files(tmp_path: Path) -> list[Path]:
    """Two small payload files in separate directories."""
    first_dir = tmp_path / "in" / "a"
    second_dir = tmp_path / "in" / "b"
    first_dir.mkdir(parents=True)
    second_dir.mkdir(parents=True)
    first = first_dir / "import.xml"
    second = second_dir / "offers.xml"
    first.write_bytes(b"<catalog>" + b"x" * 1000 + b"</catalog>")
    second.write_bytes(b"<offers/>")
    return [first, second]
