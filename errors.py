"""
Application errors.

Every error raised by the service and repository layers carries the HTTP
status it maps to, so the exception handlers in main only have to shape the
JSON envelope.
"""
from typing import List, Optional


class AppError(Exception):
    status_code = 500
    message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[str]] = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.errors = errors

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(AppError):
    status_code = 400
    message = "Validation Error"


class InvalidIdError(AppError):
    status_code = 400
    message = "Invalid ID format"


class DuplicateError(AppError):
    status_code = 400
    message = "Duplicate field value entered"


class UnauthorizedError(AppError):
    status_code = 401
    message = "Not authenticated"


class ForbiddenError(AppError):
    status_code = 403
    message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    message = "Not found"

    def __init__(self, resource: str = "Resource", message: Optional[str] = None):
        super().__init__(message or f"{resource} not found")


class DatabaseNotConfiguredError(AppError):
    message = "Database not configured"


class UnsupportedDatabaseError(AppError):
    def __init__(self, database_type: str):
        super().__init__(f"Unsupported DATABASE_TYPE: {database_type}")
        self.database_type = database_type


class InvoiceGenerationError(AppError):
    message = "Invoice generation failed"


class InvoiceTimeoutError(AppError):
    status_code = 504
    message = "Invoice generation timed out"
