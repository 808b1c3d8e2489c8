"""Error taxonomy for calls to the IndianKanoon API.

Every failure a tool can hit maps to one of these classes so the tool
boundary can turn it into a user-facing message instead of a traceback.
"""
from typing import Optional


class KanoonError(Exception):
    """Base class for everything the upstream client raises."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    def user_message(self, context: str) -> str:
        return (
            f"Error in {context}: {self}\n"
            "Suggestions: \n"
            "1. Verify your API key is valid\n"
            "2. Check if the document ID exists\n"
            "3. Try with different search terms"
        )


class AuthenticationError(KanoonError):
    def user_message(self, context: str) -> str:
        return "Authentication failed: Please check your IndianKanoon API key in settings"


class RateLimitError(KanoonError):
    def user_message(self, context: str) -> str:
        return "Rate limit exceeded: Please wait a moment and try again"


class UpstreamHTTPError(KanoonError):
    pass


class NetworkError(KanoonError):
    def user_message(self, context: str) -> str:
        return "Network error: Please check your internet connection"


class UpstreamTimeoutError(KanoonError):
    def user_message(self, context: str) -> str:
        return "Request timeout: The server took too long to respond. Try with fewer results"


class ConfigurationError(Exception):
    """Raised when settings fail validation. Names the offending setting."""

    def __init__(self, setting: str, detail: str):
        super().__init__(f"Invalid configuration for '{setting}': {detail}")
        self.setting = setting
        self.detail = detail

    def user_message(self, context: str) -> str:
        return f"Configuration error: {self}. Fix the setting and restart the service."


def describe_error(error: BaseException, context: str) -> str:
    """User-facing text for any exception reaching a tool boundary."""
    if isinstance(error, (KanoonError, ConfigurationError)):
        return error.user_message(context)
    return f"Error in {context}: {error or error.__class__.__name__}"
