"""
Error hierarchy for the fleet core.

Every failure a caller can act on has its own class carrying an error
code, an HTTP-style status and a retry hint. Errors log themselves when
raised and pick up the current correlation id.
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

_thread_local = threading.local()


class ErrorCode(str, Enum):
    # System (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONFIGURATION_ERROR = "1003"
    TIMEOUT_ERROR = "1004"
    VERIFICATION_FAILED = "1005"

    # Validation (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"
    CONSTRAINT_VIOLATION = "2004"
    INVALID_REFERENCE = "2005"

    # Resources (3xxx)
    NOT_FOUND = "3000"
    DUPLICATE = "3001"

    # Business rules (4xxx)
    BUSINESS_RULE_VIOLATION = "4000"
    PERMISSION_DENIED = "4003"
    TENANT_UNRESOLVED = "4005"


# Context keys that never reach API consumers
_INTERNAL_KEYS = ("cause", "error_id", "correlation_id")


class BaseError(Exception):
    """
    Root of the package's errors.

    Args:
        message: Text safe to show to the end user
        error_code: ErrorCode for API responses
        status_code: HTTP status the error maps to
        cause: Underlying exception; kept out of API output unless asked for
        **context: Values that identify what failed
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.cause = cause
        self.error_id = str(uuid.uuid4())
        self.timestamp = datetime.now(timezone.utc).isoformat()

        self.context: Dict[str, Any] = dict(context, error_id=self.error_id)
        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id
        if cause is not None:
            self.context["cause"] = {
                "type": type(cause).__name__,
                "message": str(cause),
                "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
            }

        self._log_error()

    def _log_error(self) -> None:
        # Late import: utils.timeout imports this module
        from .utils.logger import get_logger

        public_context = {k: v for k, v in self.context.items() if k != "cause"}
        extra = {
            "error_id": self.error_id,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            "error_context": public_context,
        }
        logger = get_logger()
        if self.status_code >= 500:
            logger.error(f"{self.error_code.value} {self.message}", extra=extra, exc_info=self.cause)
        else:
            logger.warning(f"{self.error_code.value} {self.message}", extra=extra)

    def to_dict(self, include_cause: bool = False, include_traceback: bool = False) -> Dict[str, Any]:
        """
        API representation. The underlying cause (store messages and the
        like) is only included when ``include_cause`` is set.
        """
        body: Dict[str, Any] = {
            "id": self.error_id,
            "code": self.error_code.value,
            "message": self.message,
            "retryable": self.retryable,
            "timestamp": self.timestamp,
            "context": {k: v for k, v in self.context.items() if k not in _INTERNAL_KEYS},
        }
        if "correlation_id" in self.context:
            body["correlation_id"] = self.context["correlation_id"]

        cause = self.context.get("cause")
        if include_cause and cause:
            body["cause"] = {"type": cause["type"], "message": cause["message"]}
            if include_traceback:
                body["cause"]["traceback"] = cause["traceback"]

        return {"error": body}

    def add_context(self, **kwargs: Any) -> "BaseError":
        self.context.update(kwargs)
        return self

    @property
    def error_chain(self) -> List[Exception]:
        """This error followed by its causes, outermost first."""
        chain: List[Exception] = []
        current: Optional[Exception] = self
        while current is not None:
            chain.append(current)
            current = getattr(current, "cause", None)
        return chain


class ServiceError(BaseError):
    """
    Failure inside a service call that is not one of the specific kinds
    below. Store failures (DATABASE_ERROR) left nothing committed and are
    retryable.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
        status_code: int = 500,
        **context,
    ):
        if operation:
            context["operation"] = operation
        super().__init__(message, error_code, status_code, cause, **context)
        self.retryable = error_code == ErrorCode.DATABASE_ERROR


class ValidationError(BaseError):
    """Rejected input; ``field`` names the offending attribute when known."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        if field:
            context["field"] = field
        super().__init__(message, error_code, 400, cause, **context)


class TenantUnresolvedError(BaseError):
    """Raised when a principal has no onboarded tenant."""

    def __init__(
        self,
        principal_id: Optional[str],
        message: str = "Your account is not linked to a company yet. Please complete onboarding first.",
        **kwargs,
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.TENANT_UNRESOLVED,
            status_code=412,
            principal_id=principal_id,
            **kwargs,
        )


class ForbiddenError(BaseError):
    """Raised when a resource belongs to a different tenant."""

    def __init__(self, resource_type: str, resource_id: str, action: str = "access", **kwargs):
        super().__init__(
            message=f"You do not have permission to {action} this {resource_type.lower()}",
            error_code=ErrorCode.PERMISSION_DENIED,
            status_code=403,
            resource_type=resource_type,
            resource_id=resource_id,
            action=action,
            **kwargs,
        )


class NotFoundError(BaseError):
    """Raised when a requested resource does not exist."""

    def __init__(self, resource_type: str, resource_id: Optional[str] = None, **kwargs):
        message = f"{resource_type} not found"
        if resource_id:
            message += f": {resource_id}"
        super().__init__(
            message=message,
            error_code=ErrorCode.NOT_FOUND,
            status_code=404,
            resource_type=resource_type,
            resource_id=resource_id,
            **kwargs,
        )


class InvalidLocationReferenceError(BaseError):
    """
    Raised when one or more location ids cannot be linked for a role.

    Always carries every offending id, never just the first one.
    """

    def __init__(self, role: str, invalid_ids: Iterable[str], reasons: Optional[Dict[str, str]] = None, **kwargs):
        self.role = role
        self.invalid_ids = list(invalid_ids)
        self.reasons = dict(reasons or {})
        noun = "Location" if len(self.invalid_ids) == 1 else "Locations"
        verb = "is not a valid" if len(self.invalid_ids) == 1 else "are not valid"
        points = "point" if len(self.invalid_ids) == 1 else "points"
        super().__init__(
            message=(
                f"{noun} {', '.join(self.invalid_ids)} {verb} {role} {points} for your company"
            ),
            error_code=ErrorCode.INVALID_REFERENCE,
            status_code=422,
            role=role,
            invalid_ids=self.invalid_ids,
            reasons=self.reasons,
            **kwargs,
        )


class DuplicateRegistrationError(BaseError):
    """Raised when a registration number is already used inside the tenant."""

    def __init__(self, registration_number: str, cause: Optional[Exception] = None, **kwargs):
        self.registration_number = registration_number
        super().__init__(
            message=(
                f'A vehicle with registration "{registration_number}" already exists in your fleet'
            ),
            error_code=ErrorCode.DUPLICATE,
            status_code=409,
            cause=cause,
            registration_number=registration_number,
            **kwargs,
        )


class AssociationSyncFailedError(BaseError):
    """Raised when persisted associations differ from what was written."""

    retryable = True

    def __init__(
        self,
        vehicle_id: str,
        expected: Dict[str, List[str]],
        actual: Dict[str, List[str]],
        cause: Optional[Exception] = None,
        **kwargs,
    ):
        self.vehicle_id = vehicle_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            message="Vehicle locations were not saved correctly. Please try again.",
            error_code=ErrorCode.VERIFICATION_FAILED,
            status_code=503,
            cause=cause,
            vehicle_id=vehicle_id,
            expected=expected,
            actual=actual,
            **kwargs,
        )


class OperationTimeoutError(BaseError):
    """Raised when a store read or write exceeded its time budget."""

    retryable = True

    def __init__(
        self,
        operation: str,
        timeout_seconds: float,
        cause: Optional[Exception] = None,
        **kwargs,
    ):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(
            message="The request timed out. Please try again.",
            error_code=ErrorCode.TIMEOUT_ERROR,
            status_code=504,
            cause=cause,
            operation=operation,
            timeout_seconds=timeout_seconds,
            **kwargs,
        )


def duplicate(resource_type: str, cause: Optional[Exception] = None, **identifiers) -> ServiceError:
    """ServiceError (409) for a unique key that is already taken."""
    message = f"Duplicate {resource_type}"
    if identifiers:
        message += ": " + ", ".join(f"{k}={v}" for k, v in identifiers.items())
    return ServiceError(
        message,
        error_code=ErrorCode.DUPLICATE,
        status_code=409,
        cause=cause,
        resource_type=resource_type,
        **identifiers,
    )


def set_correlation_id(correlation_id: str) -> None:
    _thread_local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    return getattr(_thread_local, "correlation_id", None)


def clear_correlation_id() -> None:
    _thread_local.__dict__.pop("correlation_id", None)
