"""Application-wide exception hierarchy.

Each error carries the HTTP status it maps to; the handlers registered in
``farminvest.main`` turn them into JSON responses.
"""
from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base application error."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for API responses."""
        return {"error": self.message}


class ValidationError(AppError):
    """Raised when a request body fails validation. Always reports a list."""

    status_code = 400

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = list(errors)

    def to_dict(self) -> Dict[str, Any]:
        return {"errors": self.errors}


class ConflictError(AppError):
    """Raised when a unique value (e.g. an email) is already taken."""

    status_code = 400


class AuthenticationError(AppError):
    """Raised when credentials or a bearer token are missing or wrong."""

    status_code = 401

    def __init__(self, message: str = "Access token required"):
        super().__init__(message)


class TokenError(AuthenticationError):
    """Raised when a bearer token is present but invalid or expired."""

    status_code = 403

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


class NotFoundError(AppError):
    """Raised when a referenced entity no longer exists."""

    status_code = 404

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found")
        self.resource = resource


class PersistenceError(AppError):
    """Raised when a database operation fails.

    The message is meant for logs only; clients get a generic 500 body.
    """

    status_code = 500

    def __init__(self, message: str, query: Optional[str] = None):
        super().__init__(message)
        self.query = query

    def to_dict(self) -> Dict[str, Any]:
        return {"error": "Internal server error"}


class DuplicateKeyError(PersistenceError):
    """Raised when an insert violates a unique constraint."""

    def __init__(self, message: str, query: Optional[str] = None, constraint: Optional[str] = None):
        super().__init__(message, query=query)
        self.constraint = constraint
