"""
Domain exceptions.

Services raise these; `apiwatch.api.responses` turns them into the
`{success, error: {code, message, details}}` envelope with the matching
HTTP status.
"""

from typing import Any, Optional


class ApiwatchError(Exception):
    """Base exception for all domain errors"""

    status_code = 400
    code = "ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(ApiwatchError):
    """Raised when rule conditions or channel config are invalid"""
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(ApiwatchError):
    """Raised when no valid user can be resolved from the request"""
    status_code = 401
    code = "UNAUTHORIZED"


class PermissionDeniedError(ApiwatchError):
    """Raised when the user lacks the role for an operation"""
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(ApiwatchError):
    """Raised when a resource does not exist or belongs to another user"""
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any = None):
        self.resource = resource
        message = f"{resource} not found"
        super().__init__(message, {"id": resource_id} if resource_id is not None else None)


class ConflictError(ApiwatchError):
    """Raised when a create/update collides with existing state"""
    status_code = 409
    code = "CONFLICT"


class JobError(ApiwatchError):
    """Raised for unknown jobs or invalid job manager transitions"""
    status_code = 400
    code = "JOB_ERROR"
