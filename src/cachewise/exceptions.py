"""Exception hierarchy for cachewise.

Every error that reaches a caller carries a stable ``kind`` string so the
orchestrator can decide whether to retry upstream without matching on
exception types.
"""


class CachewiseError(Exception):
    """Base exception for all cachewise errors."""

    kind = "cachewise_error"


class DegradableContextFailure(CachewiseError):
    """A context fetch failed or timed out.

    Raised inside fetch tasks only. The aggregator folds it into the
    degraded default for the affected field; it never reaches the caller.
    """

    kind = "degradable_context_failure"

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source} fetch degraded: {reason}")
        self.source = source
        self.reason = reason


class CompositionInvariantViolation(CachewiseError):
    """The cache-eligible prefix cannot be guaranteed stable for this request."""

    kind = "composition_invariant_violation"


class InvocationTransportFailure(CachewiseError):
    """Remote adapter network/protocol failure."""

    kind = "invocation_transport_failure"

    def __init__(self, message: str, *, attempts: int = 0, status_code: int | None = None) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.status_code = status_code


class RetryableError(InvocationTransportFailure):
    """Connection errors, 429, 5xx — should be retried."""


class NonRetryableError(InvocationTransportFailure):
    """Other 4xx, malformed payloads — fail immediately."""


class InvocationTimeout(CachewiseError):
    """Upstream exceeded the allotted time.

    ``partial`` holds whatever text was streamed before the deadline; it is
    never a complete answer.
    """

    kind = "invocation_timeout"
    incomplete = True

    def __init__(self, message: str, *, partial: str = "") -> None:
        super().__init__(message)
        self.partial = partial


class TokenizerError(CachewiseError):
    """Raised when token counting encounters an error."""
