"""Domain Errors - Centralized Exception Hierarchy

Every error carries a stable `kind` from the boundary taxonomy:
NotFound, InvalidState, PermissionDenied, ValidationError, InternalFailure.
"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    kind: str = "InternalFailure"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "kind": self.kind,
                "message": self.message,
                "details": self.details
            }
        }


# Authorization Errors
class PermissionDeniedError(DomainError):
    """Actor is not an authorized assignee for the action"""
    error_code = "PERMISSION_DENIED"
    kind = "PermissionDenied"
    http_status = 403


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed"""
    error_code = "VALIDATION_ERROR"
    kind = "ValidationError"
    http_status = 400


class WorkflowValidationError(ValidationError):
    """Workflow definition validation failed"""
    error_code = "WORKFLOW_VALIDATION_ERROR"


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    kind = "NotFound"
    http_status = 404


class WorkflowNotFoundError(NotFoundError):
    """Workflow not found"""
    error_code = "WORKFLOW_NOT_FOUND"


class DocumentNotFoundError(NotFoundError):
    """Document not found"""
    error_code = "DOCUMENT_NOT_FOUND"


class StepNotFoundError(NotFoundError):
    """Workflow step not found"""
    error_code = "STEP_NOT_FOUND"


class UserNotFoundError(NotFoundError):
    """User not found"""
    error_code = "USER_NOT_FOUND"


# State Errors
class InvalidStateError(DomainError):
    """Action not valid for current state"""
    error_code = "INVALID_STATE"
    kind = "InvalidState"
    http_status = 409


class WorkflowInactiveError(InvalidStateError):
    """Workflow is deactivated"""
    error_code = "WORKFLOW_INACTIVE"


class WorkflowAlreadyAssignedError(InvalidStateError):
    """Document already has a workflow"""
    error_code = "WORKFLOW_ALREADY_ASSIGNED"


class ConcurrencyError(InvalidStateError):
    """Optimistic concurrency conflict"""
    error_code = "CONCURRENCY_CONFLICT"


class AlreadyExistsError(InvalidStateError):
    """Resource already exists"""
    error_code = "ALREADY_EXISTS"


# Internal Errors
class InternalFailureError(DomainError):
    """Unexpected storage or collaborator fault"""
    error_code = "INTERNAL_FAILURE"
    kind = "InternalFailure"
    http_status = 500


class StorageError(InternalFailureError):
    """Document store operation failed"""
    error_code = "STORAGE_ERROR"


class NotificationDeliveryError(InternalFailureError):
    """Notification channel rejected a message"""
    error_code = "NOTIFICATION_DELIVERY_FAILED"
