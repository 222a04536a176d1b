class DomainError(Exception):
    """Base domain error with a user-facing message."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(DomainError):
    """Raised when a required field is missing or invalid."""


class InvalidStageTransition(DomainError):
    """Raised when an operation is invoked from a disallowed stage."""


class StaleStateConflict(DomainError):
    """Raised when the record changed stage since it was read."""


class Unauthorized(DomainError):
    """Raised when the actor's role may not perform the operation."""


class NotFound(DomainError):
    """Raised when a required entity is missing."""
