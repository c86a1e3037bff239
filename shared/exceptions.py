"""Error taxonomy for the retrieval engine.

Every error carries a short ``reason`` code so that callers on the query path
receive a single failure with a machine-readable cause.

Hierarchy:
  RagError
    ValidationError      : malformed request, rejected before any work starts.
    NotFoundError        : reference to a missing document or chunk.
    DataIntegrityError   : invalid stored vector (dimension, non-finite values).
    ProviderError        : embedding/completion backend failure.
      TransientProviderError : rate limiting / unavailability, retried.
        ProviderTimeoutError : call exceeded the configured timeout.
      FatalProviderError     : auth, unknown model, malformed request/response.
    RetrievalError       : a query failed; wraps the cause.
"""


class RagError(Exception):
    """Base class for all retrieval engine errors."""

    reason: str = "error"

    def __init__(self, message: str, reason: str | None = None) -> None:
        super().__init__(message)
        if reason is not None:
            self.reason = reason


class ValidationError(RagError):
    reason = "invalid_request"


class NotFoundError(RagError):
    reason = "not_found"


class DataIntegrityError(RagError):
    reason = "data_integrity"


class ProviderError(RagError):
    """Failure reported by an embedding/completion provider.

    Attributes:
        status_code: HTTP status returned by the provider, if any.
        transient:   True if the failure may succeed when retried.
    """

    reason = "provider_error"
    transient: bool = False

    def __init__(self, message: str, status_code: int | None = None, reason: str | None = None) -> None:
        super().__init__(message, reason=reason)
        self.status_code = status_code


class TransientProviderError(ProviderError):
    reason = "provider_unavailable"
    transient = True


class ProviderTimeoutError(TransientProviderError):
    reason = "provider_timeout"


class FatalProviderError(ProviderError):
    reason = "provider_fatal"


class RetrievalError(RagError):
    """A query could not be answered.

    Attributes:
        state: The query state in which the failure occurred.
        cause: The underlying exception.
    """

    reason = "retrieval_failed"

    def __init__(self, message: str, state: str, cause: Exception | None = None) -> None:
        reason = cause.reason if isinstance(cause, RagError) else None
        super().__init__(message, reason=reason)
        self.state = state
        self.cause = cause
