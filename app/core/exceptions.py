"""
Domain exceptions for the booking and payment core.

Services raise these; the API layer turns them into JSON error bodies with a
stable machine-readable ``code`` plus whatever ``details`` the caller needs to
decide on a retry (capacity numbers, current status, ...).
"""

from typing import Any, Dict, Optional

from fastapi import status


class DomainException(Exception):
    """Base exception for all domain errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    status_label: str = "error"

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

    def to_body(self) -> Dict[str, Any]:
        return {
            "ok": False,
            "status": self.status_label,
            "code": self.code,
            "message": self.message,
            **self.details,
        }


class ValidationException(DomainException):
    """Bad identifier, missing pricing snapshot, malformed money input."""

    status_code = status.HTTP_400_BAD_REQUEST
    status_label = "bad_request"


class NotFoundException(DomainException):
    """Absent or owned by another operator; the two are indistinguishable."""

    status_code = status.HTTP_404_NOT_FOUND
    status_label = "not_found"


class ForbiddenException(DomainException):
    status_code = status.HTTP_403_FORBIDDEN
    status_label = "forbidden"


class ConflictException(DomainException):
    """Over capacity, or the booking is in a state incompatible with the action."""

    status_code = status.HTTP_409_CONFLICT
    status_label = "conflict"


class PaymentConfigurationError(DomainException):
    """Missing gateway credentials, URLs or FX rate. Never falls back silently."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    status_label = "error"


class StripeGatewayError(DomainException):
    status_code = status.HTTP_502_BAD_GATEWAY
    status_label = "error"
