"""Exception types raised by the chat client."""


class ChatError(Exception):
    """Base class for all chat client errors."""


class ConfigurationError(ChatError):
    """Required configuration (credentials, room) is missing."""


class HttpStatusError(ChatError):
    """A request finished with a status outside 2xx."""

    def __init__(self, status: int, url: str):
        super().__init__(f"HTTP {status} from {url}")
        self.status = status
        self.url = url


class TokenNotFoundError(ChatError):
    """An expected token was not present in a response body."""

    def __init__(self, name: str, url: str):
        super().__init__(f"Could not find {name} in response from {url}")
        self.name = name
        self.url = url


class MalformedResponseError(ChatError):
    """A response body did not have the expected shape."""


class PreconditionError(ChatError):
    """An operation was called in a state where it cannot run."""


class NotConnectedError(PreconditionError):
    """No fkey is held; call connect() first."""

    def __init__(self, message: str = "Not connected (fkey not available)."):
        super().__init__(message)


class NoRoomError(PreconditionError):
    """No room id was given and there is no default room."""

    def __init__(self, message: str = "No room id specified."):
        super().__init__(message)


class StreamClosedError(ChatError):
    """The push channel closed without being asked to."""
