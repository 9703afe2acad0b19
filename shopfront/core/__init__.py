"""
Core module - configuration, database, domain errors, and response formatting.
"""
from .config import get_settings
from .db import get_session, Base, engine, AsyncSessionLocal
from .errors import AllocationExhausted, PersistenceConflict, ValidationError
from .responses import ErrorDetail, ErrorCodes, error_response

__all__ = [
    # Config
    "get_settings",
    # Database
    "get_session",
    "Base",
    "engine",
    "AsyncSessionLocal",
    # Errors
    "ValidationError",
    "AllocationExhausted",
    "PersistenceConflict",
    # Responses
    "ErrorDetail",
    "ErrorCodes",
    "error_response",
]
