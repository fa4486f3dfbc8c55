"""Exceptions raised by the engine services.

Each class carries the HTTP status the API layer answers with, so routers
can let them propagate to the handler registered in ``lms_engine.main``.
"""


class EngineError(Exception):
    """Base class for expected, caller-facing failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(EngineError, ValueError):
    """Bad rating value, malformed submission or invalid question payload."""

    status_code = 400


class PreconditionError(EngineError):
    """The caller may not perform the operation in the current state."""

    status_code = 403


class QuizUnavailableError(PreconditionError):
    def __init__(self, message: str = "Quiz is not available"):
        super().__init__(message)


class NotEnrolledError(PreconditionError):
    def __init__(
        self, message: str = "You must be enrolled in the course to take the quiz"
    ):
        super().__init__(message)


class NotFoundError(EngineError, LookupError):
    status_code = 404


class ConflictError(EngineError):
    status_code = 409
