"""Domain exceptions.

Every exception carries the HTTP status the API layer should answer with and
a message that is safe to show to the user.
"""


class GrowWiseError(Exception):
    """Base exception with a client-facing message and status code."""

    status_code: int = 500
    default_message: str = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class LLMGatewayError(GrowWiseError):
    """Upstream chat-completion failure, categorised for the client."""

    MESSAGES = {
        "rate_limited": "We're experiencing high demand. Please try again in a moment.",
        "payment_required": "Service temporarily unavailable. Please try again later.",
        "server_error": "Something went wrong. Please try again.",
        "failed": "Something went wrong. Please try again.",
    }
    STATUS_CODES = {
        "rate_limited": 429,
        "payment_required": 402,
        "server_error": 500,
        "failed": 500,
    }

    def __init__(self, category: str, detail: str = "", upstream_status: int | None = None):
        self.category = category
        self.detail = detail
        self.upstream_status = upstream_status
        super().__init__(self.MESSAGES[category], self.STATUS_CODES[category])


class PromptNotFoundError(GrowWiseError):
    status_code = 500


class IdentityRequiredError(GrowWiseError):
    """Raised when an operation needs a user or demo profile and has neither."""

    status_code = 401
    default_message = "Please sign in to continue."


class DemoProfileNotFoundError(GrowWiseError):
    status_code = 404
    default_message = "Demo profile not found."


class InvalidTransitionError(GrowWiseError):
    """Suggestion status change that the lifecycle does not allow."""

    status_code = 409
    default_message = "This suggestion has already been decided."


class StoreWriteError(GrowWiseError):
    """A backing store could not persist an effect."""

    status_code = 500


class RateLimitedError(GrowWiseError):
    """Too many requests from one client; carries the seconds until retry is allowed."""

    status_code = 429
    default_message = "Too many requests. Please try again later."

    def __init__(self, message: str | None = None, retry_after: int = 0):
        self.retry_after = retry_after
        super().__init__(message)


class WaitlistError(GrowWiseError):
    """Rejected waitlist submission."""

    status_code = 400
