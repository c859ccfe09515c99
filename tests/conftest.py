"""Pytest configuration and fixtures."""

import asyncio
import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import aiohttp
import pytest

from cabbage_bot.config import AccountConfig, ChatConfig, Config
from cabbage_bot.core.logging import reset_session_stats

FKEY = "0123456789abcdef0123456789abcdef"
CHAT = "https://chat.example.com"
SITE = "https://site.example.com"
OPENID = "https://openid.example.com"
WS_URL = "wss://chat.sockets.example.com/events/123/abc"

LOGIN_PAGE = f'<script>StackExchange.init({{"locale":"en","fkey":"{"f" * 32}"}});</script>'
AUTHENTICATE_PAGE = (
    '<form><input type="hidden" name="fkey" value="openid-fkey-1" />'
    '<input type="hidden" name="session" value="session-42" /></form>'
)
CHAT_ROOT_PAGE = f'<form><input id="fkey" name="fkey" type="hidden" value="{FKEY}" /></form>'


class FakeWebSocket:
    """In-memory stand-in for aiohttp's ClientWebSocketResponse."""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False
        self.close_calls = 0

    def feed(self, frame: dict | str) -> None:
        """Queue a text frame as if the server had sent it."""
        text = frame if isinstance(frame, str) else json.dumps(frame)
        self._queue.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=text))

    def feed_error(self) -> None:
        self._queue.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.ERROR, data=None))

    def drop(self) -> None:
        """Simulate the server closing the connection."""
        self._queue.put_nowait(None)

    def exception(self) -> Exception | None:
        return None

    async def close(self) -> bool:
        self.close_calls += 1
        if self.closed:
            return False
        self.closed = True
        self._queue.put_nowait(None)
        return True

    def __aiter__(self):
        return self

    async def __anext__(self):
        msg = await self._queue.get()
        if msg is None:
            self.closed = True
            raise StopAsyncIteration
        return msg


class FakeHttp:
    """Records requests and answers them from a table of canned bodies."""

    def __init__(self):
        self.calls: list[tuple[str, str, dict[str, Any] | None]] = []
        self.routes: dict[tuple[str, str], str | Exception] = {}
        self.ws = FakeWebSocket()
        self.ws_calls: list[tuple[str, str, dict[str, str] | None]] = []
        self.closed = False

    def add(self, method: str, url: str, body: str | Exception) -> None:
        self.routes[(method, url)] = body

    def _answer(self, method: str, url: str) -> str:
        try:
            body = self.routes[(method, url)]
        except KeyError:
            raise AssertionError(f"Unexpected {method} {url}") from None
        if isinstance(body, Exception):
            raise body
        return body

    async def get(self, url: str) -> str:
        self.calls.append(("GET", url, None))
        return self._answer("GET", url)

    async def post_form(self, url: str, data: dict[str, Any], allow_redirects: bool = True) -> str:
        self.calls.append(("POST", url, dict(data)))
        return self._answer("POST", url)

    async def ws_connect(self, url: str, origin: str, params: dict[str, str] | None = None):
        self.ws_calls.append((url, origin, params))
        return self.ws

    async def close(self) -> None:
        self.closed = True

    def urls(self) -> list[str]:
        return [url for _, url, _ in self.calls]


@pytest.fixture(autouse=True)
def fresh_stats():
    """Give every test its own session counters."""
    reset_session_stats()
    yield
    reset_session_stats()


@pytest.fixture
def default_config() -> Config:
    """Provide a default configuration for testing."""
    return Config()


@pytest.fixture
def chat_config() -> ChatConfig:
    """Chat endpoints pointing at fake hosts."""
    return ChatConfig(site_url=SITE, openid_url=OPENID, chat_url=CHAT, room_id=None)


@pytest.fixture
def account() -> AccountConfig:
    return AccountConfig(email="bot@example.com", password="hunter2")


@pytest.fixture
def fake_http() -> FakeHttp:
    """Fake HTTP client with the chat endpoints wired up."""
    http = FakeHttp()
    http.add("GET", f"{CHAT}/", CHAT_ROOT_PAGE)
    http.add("POST", f"{CHAT}/ws-auth", json.dumps({"url": WS_URL}))
    http.add("POST", f"{CHAT}/chats/leave/all", "")
    return http


@pytest.fixture
def login_http(fake_http: FakeHttp) -> FakeHttp:
    """Fake HTTP client that also serves the OpenID login pages."""
    fake_http.add("GET", f"{SITE}/users/login", LOGIN_PAGE)
    fake_http.add("POST", f"{SITE}/users/authenticate", AUTHENTICATE_PAGE)
    fake_http.add("POST", f"{OPENID}/account/login/submit", "<html>welcome</html>")
    return fake_http


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Create a temporary config file."""
    config_content = """
account:
  email: "bot@example.com"
  password: "secret"

chat:
  chat_url: "https://chat.example.com"
  room_id: 123

commands:
  edit_delay_seconds: 2
  items:
    - trigger: "!!ping"
      reply: "pong"
"""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(config_content)
    return config_path
