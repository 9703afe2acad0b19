"""
Domain errors shared by the identifier allocator and the order service.

These are plain exceptions so the pure helpers stay free of FastAPI.
shopfront.main registers handlers that turn them into standardized
error responses (see core.responses).
"""

from typing import Optional


class ValidationError(Exception):
    """Input failed a format, length or reserved-word check. Never retried."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class AllocationExhausted(Exception):
    """The uniqueness retry loop ran out of attempts."""

    def __init__(self, candidate: str, attempts: int):
        self.candidate = candidate
        self.attempts = attempts
        super().__init__(
            f"Unable to allocate a unique identifier for '{candidate}' after {attempts} attempts"
        )


class PersistenceConflict(Exception):
    """The store rejected an insert on a duplicate key despite a prior pre-check."""

    def __init__(self, value: str, message: Optional[str] = None):
        self.value = value
        super().__init__(message or f"Duplicate identifier '{value}'")
