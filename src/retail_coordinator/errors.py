"""Error taxonomy shared by the coordination services."""


class CoordinatorError(Exception):
    """Base error for coordination failures surfaced to callers."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(CoordinatorError):
    """A session, reservation, workflow, saga or handoff is absent."""


class ConflictError(CoordinatorError):
    """The request conflicts with current state; the caller must re-query."""


class TransientError(CoordinatorError):
    """A retryable failure from an external capability."""
