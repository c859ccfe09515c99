"""HTTP client shared by the login flow and the chat session."""

import logging
from collections.abc import Mapping
from typing import Any

import aiohttp
from aiohttp.abc import AbstractCookieJar

from cabbage_bot.errors import HttpStatusError

logger = logging.getLogger(__name__)


def encode_form(data: Mapping[str, Any]) -> dict[str, str]:
    """Stringify form values the way the chat service expects them."""
    form: dict[str, str] = {}
    for key, value in data.items():
        if isinstance(value, bool):
            form[key] = "true" if value else "false"
        elif value is None:
            form[key] = ""
        else:
            form[key] = str(value)
    return form


class ChatHttp:
    """Thin wrapper around one aiohttp session and its cookie jar.

    Every request made through an instance shares the same cookies, so the
    authentication state established by the login flow carries over to the
    chat API and the WebSocket handshake.
    """

    MAX_REDIRECTS = 10
    USER_AGENT = "Mozilla/5.0 (compatible; CabbageBot/1.0)"

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        cookie_jar: AbstractCookieJar | None = None,
    ):
        self._timeout_seconds = timeout_seconds
        self._cookie_jar = cookie_jar
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            if self._cookie_jar is None:
                self._cookie_jar = aiohttp.CookieJar()
            timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                cookie_jar=self._cookie_jar,
                headers={"User-Agent": self.USER_AGENT},
            )
        return self._session

    @property
    def cookie_jar(self) -> AbstractCookieJar | None:
        return self._cookie_jar

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _read(self, response: aiohttp.ClientResponse) -> str:
        if not 200 <= response.status < 300:
            raise HttpStatusError(response.status, str(response.url))
        return await response.text()

    async def get(self, url: str) -> str:
        """GET a URL and return the response body."""
        session = await self._get_session()
        logger.debug(f"GET {url}")
        async with session.get(
            url,
            allow_redirects=True,
            max_redirects=self.MAX_REDIRECTS,
        ) as response:
            return await self._read(response)

    async def post_form(
        self,
        url: str,
        data: Mapping[str, Any],
        allow_redirects: bool = True,
    ) -> str:
        """POST form-encoded data and return the response body."""
        session = await self._get_session()
        logger.debug(f"POST {url} fields={sorted(data)}")
        async with session.post(
            url,
            data=encode_form(data),
            allow_redirects=allow_redirects,
            max_redirects=self.MAX_REDIRECTS,
        ) as response:
            return await self._read(response)

    async def ws_connect(
        self,
        url: str,
        origin: str,
        params: Mapping[str, str] | None = None,
    ) -> aiohttp.ClientWebSocketResponse:
        """Open a WebSocket using the shared cookies.

        Returns once the handshake has completed.
        """
        session = await self._get_session()
        logger.debug(f"WS {url}")
        return await session.ws_connect(url, origin=origin, params=params)
