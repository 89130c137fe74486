"""Error handling for the Relay gateway."""

from relay.errors.exceptions import BackendInvocationError, RelayError, TranslationError
from relay.errors.handlers import register_error_handlers
from relay.errors.problem_details import (
    ProblemDetail,
    TimeoutHTTPException,
    TimeoutProblem,
)

__all__ = [
    "BackendInvocationError",
    "ProblemDetail",
    "RelayError",
    "TimeoutHTTPException",
    "TimeoutProblem",
    "TranslationError",
    "register_error_handlers",
]
