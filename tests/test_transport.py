"""
Tests for sim_import/transport.py – httpx wrapper (mocked).

``httpx.Client`` is patched in the module namespace, so most of these tests
check how the client is configured and how replies and failures are mapped.
The last group runs a real client over ``httpx.MockTransport`` to check what
actually goes over the wire: cookies and redirects.
"""

from __future__ import annotations

import logging
from unittest.mock import patch

import httpx
import pytest
from conftest import AUTH_OK

from sim_import.config import ClientSettings
from sim_import.errors import TransportError
from sim_import.session import ExchangeChannel, authenticate, negotiate_transfer
from sim_import.transport import ExchangeTransport

URL = "http://shop.example.com/exchange.php"


def _response(status_code: int, content: bytes) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        content=content,
        request=httpx.Request("POST", URL),
    )


# ── client configuration ─────────────────────────────────────────────────────


class TestClientConfiguration:
    def test_user_agent_and_timeouts_from_settings(self) -> None:
        settings = ClientSettings(user_agent="Agent/1.0", connect_timeout=2.0, read_timeout=30.0)

        with patch("sim_import.transport.httpx.Client") as mock_client_cls:
            ExchangeTransport(settings)

        kwargs = mock_client_cls.call_args.kwargs
        assert kwargs["headers"] == {"User-Agent": "Agent/1.0"}
        assert kwargs["timeout"].connect == 2.0
        assert kwargs["timeout"].read == 30.0

    def test_default_user_agent_identifies_as_1c(self) -> None:
        with patch("sim_import.transport.httpx.Client") as mock_client_cls:
            ExchangeTransport()

        assert mock_client_cls.call_args.kwargs["headers"]["User-Agent"] == "1C+Enterprise/8.21"

    def test_context_manager_closes_client(self) -> None:
        with patch("sim_import.transport.httpx.Client") as mock_client_cls:
            with ExchangeTransport():
                pass

        mock_client_cls.return_value.close.assert_called_once()

    def test_follows_redirects(self) -> None:
        with patch("sim_import.transport.httpx.Client") as mock_client_cls:
            ExchangeTransport()

        assert mock_client_cls.call_args.kwargs["follow_redirects"] is True


# ── post ─────────────────────────────────────────────────────────────────────


class TestPost:
    def test_returns_raw_body(self) -> None:
        with patch("sim_import.transport.httpx.Client") as mock_client_cls:
            mock_client_cls.return_value.post.return_value = _response(200, b"success\nok")

            body = ExchangeTransport().post(URL, params={"type": "t", "mode": "init"})

        assert body == b"success\nok"

    def test_merges_cookies_into_client_jar(self) -> None:
        jar = httpx.Cookies()
        jar.set("PHPSESSID", "abc", domain="shop.example.com")

        with patch("sim_import.transport.httpx.Client") as mock_client_cls:
            mock_client_cls.return_value.post.return_value = _response(200, b"success")

            ExchangeTransport().post(
                URL,
                params={"mode": "file", "filename": "a.xml"},
                content=b"chunk",
                auth=("user", "pass"),
                cookies=jar,
            )

            client = mock_client_cls.return_value
            call = client.post.call_args

        client.cookies.update.assert_called_once_with(jar)
        assert call.args[0] == URL
        assert call.kwargs["params"] == {"mode": "file", "filename": "a.xml"}
        assert call.kwargs["content"] == b"chunk"
        assert call.kwargs["auth"] == ("user", "pass")
        assert "headers" not in call.kwargs

    def test_jar_untouched_without_session(self) -> None:
        with patch("sim_import.transport.httpx.Client") as mock_client_cls:
            mock_client_cls.return_value.post.return_value = _response(200, b"success")

            ExchangeTransport().post(URL, params={"mode": "checkauth"})

            client = mock_client_cls.return_value
            call = client.post.call_args

        client.cookies.update.assert_not_called()
        assert call.kwargs["content"] is None

    def test_server_error_raises_transport_error_with_decoded_body(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        body = "Внутренняя ошибка сервера".encode("cp1251")

        with patch("sim_import.transport.httpx.Client") as mock_client_cls:
            mock_client_cls.return_value.post.return_value = _response(500, body)

            with caplog.at_level(logging.WARNING, logger="sim_import.transport"):
                with pytest.raises(TransportError) as exc_info:
                    ExchangeTransport().post(URL, params={"mode": "import"})

        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "Внутренняя ошибка сервера"
        assert "HTTP 500" in exc_info.value.message
        assert len(caplog.records) == 1
        assert "mode=import" in caplog.records[0].message

    def test_client_error_also_raises(self) -> None:
        with patch("sim_import.transport.httpx.Client") as mock_client_cls:
            mock_client_cls.return_value.post.return_value = _response(401, b"Unauthorized")

            with pytest.raises(TransportError) as exc_info:
                ExchangeTransport().post(URL, params={"mode": "checkauth"})

        assert exc_info.value.status_code == 401

    def test_connect_error_raises_transport_error(self, caplog: pytest.LogCaptureFixture) -> None:
        with patch("sim_import.transport.httpx.Client") as mock_client_cls:
            mock_client_cls.return_value.post.side_effect = httpx.ConnectError("refused")

            with caplog.at_level(logging.WARNING, logger="sim_import.transport"):
                with pytest.raises(TransportError) as exc_info:
                    ExchangeTransport().post(URL, params={"mode": "checkauth"})

        assert exc_info.value.status_code is None
        assert "ConnectError" in exc_info.value.body
        assert "refused" in caplog.records[0].message

    def test_timeout_raises_transport_error(self) -> None:
        with patch("sim_import.transport.httpx.Client") as mock_client_cls:
            mock_client_cls.return_value.post.side_effect = httpx.ReadTimeout("read timed out")

            with pytest.raises(TransportError, match="ReadTimeout"):
                ExchangeTransport().post(URL, params={"mode": "import"})


# ── wire behaviour over httpx.MockTransport ──────────────────────────────────


def _cookie_header(request: httpx.Request) -> dict[str, str]:
    header = request.headers.get("Cookie", "")
    return dict(part.split("=", 1) for part in header.split("; ") if part)


class TestWireBehaviour:
    """A real ``httpx.Client`` on a mock transport, driven through the channel."""

    def test_server_cookies_accompany_session_cookie(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            mode = request.url.params["mode"]
            if mode == "checkauth":
                return httpx.Response(
                    200,
                    content=AUTH_OK,
                    headers={"Set-Cookie": "BITRIX_SM_LOGIN=admin; path=/"},
                )
            if mode == "init":
                return httpx.Response(200, content=b"zip=no\nfile_limit=100")
            return httpx.Response(200, content=b"success")

        with ExchangeTransport(transport=httpx.MockTransport(handler)) as transport:
            channel = ExchangeChannel(transport, URL, "catalog")
            bound = channel.bind(authenticate(channel, "admin", "secret"))
            negotiate_transfer(bound)
            bound.send("file", params={"filename": "a.xml"}, content=b"<a/>")
            bound.send("import", params={"filename": "a.xml"})

        assert [r.url.params["mode"] for r in seen] == ["checkauth", "init", "file", "import"]
        assert "Cookie" not in seen[0].headers
        for request in seen[1:]:
            assert _cookie_header(request) == {
                "PHPSESSID": "abc123",
                "BITRIX_SM_LOGIN": "admin",
            }
            assert request.url.params["sessid"] == "xyz789"

    def test_session_cookie_sent_to_dotless_host(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.params["mode"] == "checkauth":
                return httpx.Response(200, content=AUTH_OK)
            return httpx.Response(200, content=b"zip=yes\nfile_limit=100")

        url = "http://localhost:8080/exchange.php"
        with ExchangeTransport(transport=httpx.MockTransport(handler)) as transport:
            channel = ExchangeChannel(transport, url, "catalog")
            negotiate_transfer(channel.bind(authenticate(channel, "admin", "secret")))

        assert _cookie_header(seen[1]) == {"PHPSESSID": "abc123"}

    def test_redirect_is_followed(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path == "/exchange.php":
                return httpx.Response(
                    307,
                    headers={
                        "Location": "https://shop.example.com/bitrix/exchange.php"
                        "?type=catalog&mode=init"
                    },
                )
            return httpx.Response(200, content=b"success\nok")

        with ExchangeTransport(transport=httpx.MockTransport(handler)) as transport:
            body = transport.post(URL, params={"type": "catalog", "mode": "init"})

        assert body == b"success\nok"
        assert seen[-1].method == "POST"
        assert seen[-1].url.path == "/bitrix/exchange.php"
        assert seen[-1].url.params["mode"] == "init"
