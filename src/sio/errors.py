"""
Triage Errors

Failure kinds raised by the admission lifecycle. Each carries a stable
``code`` so the HTTP layer and clients can branch on cause.
"""


class TriageError(Exception):
    """Base class for admission lifecycle failures."""

    code = "triage_error"

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__
        self.context = context


class Forbidden(TriageError):
    """Role is not allowed to perform this operation."""
    code = "forbidden"


class NotFound(TriageError):
    """Referenced entity does not exist."""
    code = "not_found"


class InvalidState(TriageError):
    """Target status is not a known admission status."""
    code = "invalid_state"


class UnknownColor(TriageError):
    """Triage color code is not in the registry."""
    code = "unknown_color"


class ConstraintViolation(TriageError):
    """Uniqueness conflict on a natural key."""
    code = "constraint_violation"


class AllocationExhausted(TriageError):
    """Bracelet allocation retry budget exceeded."""
    code = "allocation_exhausted"


class Unavailable(TriageError):
    """Persistent store is unreachable or timed out."""
    code = "unavailable"


class DuplicateKey(Exception):
    """Store-level unique constraint rejection.

    Raised by store implementations and translated by the core; never
    surfaced to API callers directly.
    """

    def __init__(self, constraint: str, value: str | None = None):
        super().__init__(f"duplicate key for {constraint}: {value}")
        self.constraint = constraint
        self.value = value
