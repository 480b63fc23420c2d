"""
Error taxonomy shared by the service layer and the HTTP blueprints.

Services raise these; the app-level error handler renders them as JSON.
"""

from __future__ import annotations


class CrmError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        body = {"error": self.code, "message": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(CrmError):
    """Missing or malformed input, detected before any write."""

    status_code = 400
    code = "validation_error"


class AuthorizationError(CrmError):
    """Caller may not act on the given owner reference."""

    status_code = 403
    code = "access_denied"

    def __init__(self, message: str = "Access denied.", field: str | None = None):
        super().__init__(message, field)


class AuthenticationRequired(AuthorizationError):
    status_code = 401
    code = "authentication_required"

    def __init__(self, message: str = "Sign in required."):
        super().__init__(message)


class NotFoundError(CrmError):
    """Target row is absent or not visible to the caller. The two cases are never distinguished."""

    status_code = 404
    code = "not_found"


class ConflictError(CrmError):
    status_code = 409
    code = "conflict"
