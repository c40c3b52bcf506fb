"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes, the payment-core failure taxonomy
and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    @property
    def errors(self) -> List[str]:
        """Human-readable reasons surfaced to the caller."""
        return [self.message]


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


# Payment core taxonomy

class PaymentValidationError(AppException):
    """
    One or more business rules rejected a candidate payment.

    All violated rules are carried together so the caller can fix
    everything in a single resubmission.
    """

    def __init__(self, errors: List[str]):
        self._errors = list(errors)
        super().__init__(
            message="; ".join(self._errors),
            error_code="ERR_PAYMENT_VALIDATION",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"errors": self._errors}
        )

    @property
    def errors(self) -> List[str]:
        return list(self._errors)


class NotFoundError(AppException):
    """Account or bill absent for the requested period."""

    def __init__(self, message: str, error_code: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details
        )


class AccountNotFoundError(NotFoundError):

    def __init__(self, account_number: str, account_type: str):
        super().__init__(
            message="Account not found. Please check the account number and type.",
            error_code="ERR_NOT_FOUND_002",
            details={"account_number": account_number, "account_type": account_type}
        )


class BillNotFoundError(NotFoundError):

    def __init__(self, account_type: str, period: int, reference_id: Optional[int] = None):
        super().__init__(
            message=(
                f"No bill found for this {account_type.lower()} account for the year {period}. "
                "Please generate bills first before recording payments."
            ),
            error_code="ERR_NOT_FOUND_003",
            details={"account_type": account_type, "period": period, "reference_id": reference_id}
        )


class DuplicateReferenceError(AppException):
    """The generated payment reference already exists. Retryable with a fresh reference."""

    def __init__(self, payment_reference: str):
        super().__init__(
            message=f"Payment reference {payment_reference} already exists. Please resubmit the payment.",
            error_code="ERR_PAYMENT_DUPLICATE_REF",
            status_code=status.HTTP_409_CONFLICT,
            details={"payment_reference": payment_reference}
        )


class ConcurrentModificationError(AppException):
    """The bill or account balance changed between resolution and commit."""

    def __init__(self, entity: str, entity_id: Any, details: Dict[str, Any] = None):
        super().__init__(
            message=(
                f"The {entity} balance was changed by another payment while this one was being "
                "processed. Please reload the account and try again."
            ),
            error_code="ERR_PAYMENT_CONFLICT",
            status_code=status.HTTP_409_CONFLICT,
            details={"entity": entity, "id": entity_id, **(details or {})}
        )


class PersistenceFailure(AppException):
    """A storage step failed or timed out; the unit of work was rolled back."""

    def __init__(self, step: str, reason: str):
        super().__init__(
            message=f"An error occurred while processing the payment: {reason}",
            error_code="ERR_PAYMENT_PERSISTENCE",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"step": step}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": exc.errors()
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
