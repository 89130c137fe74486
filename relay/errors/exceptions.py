"""Exceptions raised by the translation engine.

Both types carry the HTTP status they are rendered with by the error
handlers in :mod:`relay.errors.handlers`.
"""


class RelayError(Exception):
    """Base class for gateway errors surfaced to the caller."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TranslationError(RelayError):
    """The request cannot be translated into a backend generation call.

    Raised for unsupported message roles, unparsable tool-call arguments and
    malformed tool-choice directives, always before the backend is called.
    """

    status_code = 400


class BackendInvocationError(RelayError):
    """The backend was unreachable or reported a failure."""

    def __init__(self, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code
