# File: portal/core/errors.py

"""
Error kinds raised by the portal engine.

Every engine operation either returns its result or raises one of the
PortalError subclasses below. None of them is fatal: the API layer turns
them into HTTP responses (see portal/main.py) and the engine keeps serving.
"""

import enum


class ErrorKind(str, enum.Enum):
    INVALID_TOKEN = "invalid_token"
    UNAVAILABLE = "unavailable"
    BLOCKED = "blocked"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_TRANSITION = "invalid_transition"
    SELF_UPVOTE_FORBIDDEN = "self_upvote_forbidden"
    ALREADY_VOTED = "already_voted"
    ALREADY_BOOSTED = "already_boosted"
    ALREADY_PREMIUM = "already_premium"
    PAYMENT_NOT_FOUND = "payment_not_found"
    PAYMENT_NOT_VERIFIED = "payment_not_verified"
    VALIDATION_FAILED = "validation_failed"


class PortalError(Exception):
    kind: ErrorKind = ErrorKind.FORBIDDEN
    status_code: int = 400
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.kind.value, "message": self.message}


class InvalidToken(PortalError):
    kind = ErrorKind.INVALID_TOKEN
    status_code = 401
    default_message = "Invalid or expired session token"


class Unavailable(PortalError):
    """Retryable: a backing service could not be reached in time."""

    kind = ErrorKind.UNAVAILABLE
    status_code = 503
    default_message = "Service temporarily unavailable, please retry"


class Blocked(PortalError):
    kind = ErrorKind.BLOCKED
    status_code = 403
    default_message = "Your account has been blocked by an administrator"


class Forbidden(PortalError):
    kind = ErrorKind.FORBIDDEN
    status_code = 403
    default_message = "Forbidden"


class NotFound(PortalError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "Not found"


class QuotaExceeded(PortalError):
    kind = ErrorKind.QUOTA_EXCEEDED
    status_code = 402
    default_message = "Free issue limit reached, upgrade to premium to report more issues"


class InvalidTransition(PortalError):
    kind = ErrorKind.INVALID_TRANSITION
    status_code = 409
    default_message = "Status change not allowed from the current state"


class SelfUpvoteForbidden(PortalError):
    kind = ErrorKind.SELF_UPVOTE_FORBIDDEN
    status_code = 403
    default_message = "You cannot upvote your own issue"


class AlreadyVoted(PortalError):
    kind = ErrorKind.ALREADY_VOTED
    status_code = 409
    default_message = "You have already upvoted this issue"


class AlreadyBoosted(PortalError):
    kind = ErrorKind.ALREADY_BOOSTED
    status_code = 409
    default_message = "Issue is already boosted"


class AlreadyPremium(PortalError):
    kind = ErrorKind.ALREADY_PREMIUM
    status_code = 409
    default_message = "Account is already premium"


class PaymentNotFound(PortalError):
    kind = ErrorKind.PAYMENT_NOT_FOUND
    status_code = 404
    default_message = "Payment session not recognized"


class PaymentNotVerified(PortalError):
    kind = ErrorKind.PAYMENT_NOT_VERIFIED
    status_code = 402
    default_message = "Payment could not be verified"


class ValidationFailed(PortalError):
    kind = ErrorKind.VALIDATION_FAILED
    status_code = 422
    default_message = "Invalid request"
