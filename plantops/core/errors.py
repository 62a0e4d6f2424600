# ---------------------------------
# TYPED EXCEPTIONS
# ---------------------------------


class GateError(RuntimeError):
    """Base error for the mutation gate and approval review.

    Carries enough context (request id, domain type) for callers to render
    a specific message.
    """

    retryable = False

    def __init__(
        self,
        message: str,
        *,
        request_id: str | None = None,
        domain_type: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.request_id = request_id
        self.domain_type = domain_type

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "request_id": self.request_id,
            "domain_type": self.domain_type,
            "retryable": self.retryable,
        }


class Forbidden(GateError):
    """Raised when policy denies the action entirely."""
    pass

class ValidationError(GateError):
    """Raised for caller-correctable input, e.g. a missing reason."""
    pass

class RequestNotFound(GateError):
    pass

class AlreadyDecided(GateError):
    """Raised when a request is no longer pending (the race was lost)."""
    pass

class DomainError(GateError):
    """Raised when the wrapped domain mutation failed or timed out."""

    retryable = True

class StorageError(GateError):
    """Raised when the approval request store is unavailable."""

    retryable = True
