"""Stack Exchange OpenID login."""

import logging
import re

from cabbage_bot.config import AccountConfig, ChatConfig
from cabbage_bot.core.http import ChatHttp
from cabbage_bot.errors import ConfigurationError, TokenNotFoundError

logger = logging.getLogger(__name__)

# Anti-forgery key embedded as JSON in the site's login page
LOGIN_FKEY_PATTERN = re.compile(r'"fkey":"([a-f0-9]{32})"')
# Hidden form fields on the OpenID provider's login form
FORM_FKEY_PATTERN = re.compile(r'name="fkey" value="([^"]+)"')
FORM_SESSION_PATTERN = re.compile(r'name="session" value="([^"]+)"')


def scrape_token(pattern: re.Pattern[str], body: str, name: str, url: str) -> str:
    """Return the first capture group of `pattern` in `body`.

    Raises:
        TokenNotFoundError: The pattern does not match.
    """
    match = pattern.search(body)
    if match is None:
        raise TokenNotFoundError(name, url)
    return match.group(1)


async def openid_login(http: ChatHttp, account: AccountConfig, chat: ChatConfig) -> None:
    """Log into the site through the Stack Exchange OpenID provider.

    The three requests run strictly in order and each depends on tokens
    scraped from the previous response. On success the authenticated
    cookies are held by `http`'s cookie jar.

    Args:
        http: Client whose cookie jar will carry the session
        account: Email address and password
        chat: Endpoint configuration

    Raises:
        ConfigurationError: Credentials are missing
        TokenNotFoundError: A response did not contain an expected token
        HttpStatusError: A request returned a non-2xx status
    """
    if not account.email or not account.password:
        raise ConfigurationError("Email address and password are required to log in")

    login_url = f"{chat.site_url}/users/login"
    body = await http.get(login_url)
    fkey = scrape_token(LOGIN_FKEY_PATTERN, body, "login fkey", login_url)

    authenticate_url = f"{chat.site_url}/users/authenticate"
    body = await http.post_form(
        authenticate_url,
        {
            "openid_identifier": chat.openid_url,
            "openid_username": "",
            "oauth_version": "",
            "oauth_server": "",
            "fkey": fkey,
        },
    )
    form_fkey = scrape_token(FORM_FKEY_PATTERN, body, "OpenID fkey", authenticate_url)
    session = scrape_token(FORM_SESSION_PATTERN, body, "OpenID session", authenticate_url)

    submit_url = f"{chat.openid_url}/account/login/submit"
    await http.post_form(
        submit_url,
        {
            "email": account.email,
            "password": account.password.get_secret_value(),
            "fkey": form_fkey,
            "session": session,
        },
    )
    logger.info(f"Logged in as {account.email}")
