from typing import Optional


class MailboxError(Exception):
    """Base class for failures talking to the mailbox provider."""


class TransportError(MailboxError):
    """
    The request never produced a usable response: network failure,
    non-2xx HTTP status, or a body that is not JSON.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderError(MailboxError):
    """The provider answered with a well-formed body that reports a failure."""

    def __init__(self, message: Optional[str] = None, code: Optional[int] = None):
        self.message = message or "unknown error"
        self.code = code
        super().__init__(f"Mailbox provider error: {self.message}")


class ParseError(ValueError):
    """A timestamp, timezone string or message payload could not be decoded."""


class AuthenticationError(MailboxError):
    """No session token is configured for the mailbox provider."""
