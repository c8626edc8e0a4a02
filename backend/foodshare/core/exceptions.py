"""Domain exceptions.

Every error carries the HTTP status it maps to and a details dict; the
application-wide handler in ``foodshare.main`` renders them.
"""

from typing import Any, Dict, Iterable, Optional

from fastapi import status


class FoodShareError(Exception):
    """Base class for all domain errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class AuthenticationRequired(FoodShareError):
    """No authenticated identity."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Please log in to access this page."):
        super().__init__(message)


class RoleMismatch(FoodShareError):
    """Identity role is not in the allowed set."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, actual_role: str, allowed_roles: Iterable[str]):
        self.actual_role = actual_role
        self.allowed_roles = sorted(allowed_roles)
        super().__init__(
            f"This page is only available to {', '.join(self.allowed_roles)} accounts. "
            f"You are registered as {actual_role}.",
            details={"role": actual_role, "allowed_roles": self.allowed_roles},
        )


class NotReportOwner(FoodShareError):
    """Actor has the right role but does not hold the report."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, report_id: int, reason: str):
        self.report_id = report_id
        super().__init__(reason, details={"report_id": report_id})


class InactiveAgent(FoodShareError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, agent_id: int):
        self.agent_id = agent_id
        super().__init__(
            "Delivery agent account is inactive and cannot take new pickups",
            details={"agent_id": agent_id},
        )


class ResourceNotFound(FoodShareError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} with identifier '{identifier}' not found",
            details={"resource": resource, "identifier": str(identifier)},
        )


class InvalidTransition(FoodShareError):
    """Attempted transition is not in the lifecycle table."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, report_id: int, current_status: str, event: str):
        self.report_id = report_id
        self.current_status = current_status
        self.event = event
        super().__init__(
            f"Cannot {event} food report {report_id} while it is {current_status}",
            details={"report_id": report_id, "status": current_status, "event": event},
        )


class ClaimConflict(FoodShareError):
    """Another agent claimed the report first. Retryable after a refresh."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, report_id: int):
        self.report_id = report_id
        super().__init__(
            "This food report has already been taken by another agent",
            details={"report_id": report_id, "retryable": True},
        )


class ValidationError(FoodShareError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, details={"field": field} if field else None)


class RemoteServiceError(FoodShareError):
    """Store or auth call failed or timed out."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"External service '{service}' error: {message}", details={"service": service})


class NotificationDeliveryFailure(FoodShareError):
    """Raised by transports. Caught and logged by the notification service."""

    def __init__(self, transport: str, message: str):
        self.transport = transport
        super().__init__(f"{transport}: {message}", details={"transport": transport})
