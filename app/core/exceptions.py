"""
Application error taxonomy.

Handlers and services raise these; the exception handlers registered in
app.main turn them into the `{"error", "code", "details"}` envelope.

    AppError
    ├── AuthenticationError  → 401
    ├── AuthorizationError   → 403
    ├── ValidationError      → 400
    ├── NotFoundError        → 404
    ├── ConflictError        → 409
    └── InternalError        → 500
"""

from typing import Any, Dict, List, Optional


class AppError(Exception):
    status_code = 500
    code = "API_ERROR"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if code:
            self.code = code
        self.details = details
        super().__init__(message)


class AuthenticationError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized", code: Optional[str] = None):
        super().__init__(message, code=code)


class AuthorizationError(AppError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"

    def __init__(self, message: str = "Insufficient permissions", code: Optional[str] = None):
        super().__init__(message, code=code)


class ValidationError(AppError):
    """
    Client input was rejected.

    `errors` is the itemized list `[{"field": ..., "message": ...}]`; it is
    returned to the client under `details.validation`.
    """

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str = "Invalid input data",
        errors: Optional[List[Dict[str, str]]] = None,
        code: Optional[str] = None,
    ):
        self.errors = errors or []
        details = {"validation": self.errors} if self.errors else None
        super().__init__(message, code=code, details=details)


class NotFoundError(AppError):
    """
    Row absent or outside the caller's scope. The two cases share one message
    so a caller cannot probe for rows in other workspaces.
    """

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"

    def __init__(self, message: str = "Resource already exists"):
        super().__init__(message)


class InternalError(AppError):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal server error", code: Optional[str] = None):
        super().__init__(message, code=code)
