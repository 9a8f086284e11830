"""Error taxonomy for chat requests."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class LLMError:
    """Structured error response from chat operations."""
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


class LLMClientError(Exception):
    """Base exception for chat errors with structured error information."""

    code = "UNKNOWN_ERROR"
    default_message = "Failed to get response from AI"
    # Whether the UI should ask the user to (re-)enter the credential
    prompt_credential = False

    def __init__(self, error: Optional[LLMError] = None, message: Optional[str] = None, **details):
        if error is None:
            error = LLMError(
                code=self.code,
                message=message or self.default_message,
                details=details,
            )
        self.error = error
        super().__init__(error.message)

    @property
    def user_message(self) -> str:
        """Text delivered through the notification channel."""
        return self.error.message


class ValidationError(LLMClientError):
    """Empty or oversized input."""
    code = "VALIDATION_ERROR"
    default_message = "Invalid message"


class MissingCredentialError(LLMClientError):
    """No API key is configured."""
    code = "MISSING_CREDENTIAL"
    default_message = "Please add your API key in settings."
    prompt_credential = True


class AuthError(LLMClientError):
    """HTTP 401 from the completion endpoint."""
    code = "AUTHENTICATION_ERROR"
    default_message = "Invalid API key. Please check your API key in settings."
    prompt_credential = True


class RateLimitError(LLMClientError):
    """HTTP 429 from the completion endpoint."""
    code = "RATE_LIMIT_ERROR"
    default_message = "Rate limit exceeded. Please try again later."


class ServerError(LLMClientError):
    """HTTP 5xx from the completion endpoint."""
    code = "SERVER_ERROR"
    default_message = "Server error. Please try again."


class CanceledError(LLMClientError):
    """The request was superseded or cancelled; never shown to the user."""
    code = "CANCELED"
    default_message = "Request cancelled"


class UnknownError(LLMClientError):
    """Anything else; the underlying message is surfaced verbatim."""
    code = "UNKNOWN_ERROR"


class ConversationNotFoundError(LookupError):
    """Raised when selecting a conversation id the store does not hold."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation not found: {conversation_id}")


def error_for_status(status_code: int, message: str, **details) -> LLMClientError:
    """
    Classify a non-2xx HTTP response.

    Args:
        status_code: HTTP status returned by the endpoint
        message: ``error.message`` from the body, or a generic fallback

    Returns:
        The matching LLMClientError subclass instance
    """
    details = {"status_code": status_code, "original_error": message, **details}
    if status_code == 401:
        return AuthError(**details)
    if status_code == 429:
        return RateLimitError(retry_after=60, **details)
    if status_code >= 500:
        return ServerError(**details)
    return UnknownError(message=message, **details)
