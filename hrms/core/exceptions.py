from typing import Any, Dict, List, Optional


class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class ValidationError(AppException):
    """Bad input shape, raised before anything is persisted."""
    def __init__(self, message: str, errors: Optional[List[str]] = None, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        if errors:
            details["errors"] = errors
        super().__init__(
            message=message,
            status_code=400,
            error_code="VALIDATION_ERROR",
            details=details or None
        )


class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: Any = None):
        message = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND"
        )


class ConflictError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT",
            details=details
        )


class InvalidTransitionError(AppException):
    def __init__(self, entity: str, current: str, event: str):
        super().__init__(
            message=f"Cannot {event} a {entity} in status '{current}'",
            status_code=409,
            error_code="INVALID_TRANSITION",
            details={"current_status": current, "event": event}
        )


class ComponentCycleError(AppException):
    def __init__(self, codes: List[str]):
        super().__init__(
            message=f"Salary components reference each other in a cycle: {' -> '.join(codes)}",
            status_code=400,
            error_code="COMPONENT_CYCLE",
            details={"codes": codes}
        )


class PayrollProcessingError(AppException):
    """A payroll run failed part-way; the whole run was rolled back."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="PAYROLL_RUN_FAILED",
            details=details
        )


class TenantContextError(AppException):
    def __init__(self, message: str = "Missing tenant context"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="TENANT_CONTEXT_MISSING"
        )


class AccessDeniedError(AppException):
    """Custom permission error. Named AccessDeniedError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )
