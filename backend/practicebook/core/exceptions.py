# backend/practicebook/core/exceptions.py
"""
Domain-specific exceptions for the booking platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedException(DomainException):
    """Raised when the acting practitioner cannot be identified."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when the practitioner does not own the resource."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class PaymentGatewayException(DomainException):
    """Raised when the payment processor rejects or fails a required call."""

    status_code = status.HTTP_502_BAD_GATEWAY


# Specific business exceptions


class OccurrenceConflictException(ConflictException):
    """Raised when a series occurrence has already been materialized."""

    def __init__(self, series_id: str, occurrence_index: int):
        super().__init__(
            message=f"Occurrence {occurrence_index} of series {series_id} already has a booking",
            code="OCCURRENCE_ALREADY_MATERIALIZED",
            details={"series_id": series_id, "occurrence_index": occurrence_index},
        )


class RefundFailedException(PaymentGatewayException):
    """Raised when a paid booking cannot be canceled because the refund failed."""

    def __init__(self, booking_id: str, reason: Optional[str] = None):
        super().__init__(
            message="Cancellation did not complete: the payment could not be refunded",
            code="REFUND_FAILED",
            details={"booking_id": booking_id, "reason": reason or "unknown"},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


class IntegrityViolation(RepositoryException):
    """Repository error caused by a unique or check constraint."""
