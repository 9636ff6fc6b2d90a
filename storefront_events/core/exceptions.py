"""Custom exception classes for the application.

The hierarchy follows RFC 7807 Problem Details so an outer HTTP layer can map
any ``AppException`` straight onto a response.
"""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Human-readable error message.
        type: Error type identifier (used in RFC 7807 problem details).
        title: Short, human-readable summary of the problem type.
        extra: Additional context-specific information about the error.

    Example:
        raise AppException(
            status_code=404,
            detail="Subscription not found",
            type="subscription-not-found",
            extra={"subscription_id": "abc123"},
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        titles = {
            400: "Bad Request",
            403: "Forbidden",
            404: "Not Found",
            409: "Conflict",
            422: "Unprocessable Entity",
            500: "Internal Server Error",
            502: "Bad Gateway",
        }
        return titles.get(status_code, "Error")


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    def __init__(
        self,
        detail: str,
        type: str = "not-found",
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(status_code=404, detail=detail, type=type, title="Not Found", extra=extra)


class ValidationException(AppException):
    """Exception raised for validation errors.

    Example:
        raise ValidationException(
            detail="URL scheme must be http or https",
            type="invalid-webhook-url",
            extra={"field": "url"},
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "validation-error",
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=422,
            detail=detail,
            type=type,
            title="Validation Error",
            extra=extra,
        )


class ConflictException(AppException):
    """Exception raised when a request conflicts with the current resource state."""

    def __init__(
        self,
        detail: str,
        type: str = "conflict",
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(status_code=409, detail=detail, type=type, title="Conflict", extra=extra)


# ──────────────────────────────────────────────────────────────
# Tenancy
# ──────────────────────────────────────────────────────────────


class TenancyError(AppException):
    """Base class for tenant isolation failures."""


class NoTenantContextError(TenancyError):
    """A tenant-owned entity was touched with no tenant in scope.

    This is always a programming error: the caller forgot to enter a
    ``tenant_scope`` (or ``system_scope`` for maintenance jobs).
    """

    def __init__(self, operation: str | None = None) -> None:
        detail = "No tenant context is active"
        if operation:
            detail = f"{detail} for {operation}"
        super().__init__(
            status_code=500,
            detail=detail,
            type="no-tenant-context",
            title="Tenant Context Required",
            extra={"operation": operation} if operation else None,
        )


class TenantContextConflictError(TenancyError):
    """A scope for one tenant was entered while another tenant was active."""

    def __init__(self, active_tenant: str, requested_tenant: str) -> None:
        self.active_tenant = active_tenant
        self.requested_tenant = requested_tenant
        super().__init__(
            status_code=500,
            detail=(
                f"Cannot enter tenant scope {requested_tenant!r} "
                f"while tenant {active_tenant!r} is active"
            ),
            type="tenant-context-conflict",
            title="Tenant Context Conflict",
            extra={"active_tenant": active_tenant, "requested_tenant": requested_tenant},
        )


class CrossTenantViolationError(TenancyError):
    """A write tried to place or move data into another tenant."""

    def __init__(
        self,
        model_name: str,
        current_tenant: str,
        attempted_tenant: Any,
        operation: str,
    ) -> None:
        self.model_name = model_name
        self.current_tenant = current_tenant
        self.attempted_tenant = attempted_tenant
        self.operation = operation
        super().__init__(
            status_code=403,
            detail=(
                f"{operation} on {model_name} attempted tenant_id={attempted_tenant!r} "
                f"inside tenant {current_tenant!r}"
            ),
            type="cross-tenant-violation",
            title="Cross-Tenant Violation",
            extra={
                "model": model_name,
                "current_tenant": current_tenant,
                "attempted_tenant": str(attempted_tenant),
                "operation": operation,
            },
        )


# ──────────────────────────────────────────────────────────────
# Webhooks
# ──────────────────────────────────────────────────────────────


class InvalidSubscriptionError(ValidationException):
    """Subscription input failed validation (URL or event types)."""

    def __init__(self, detail: str, field: str) -> None:
        super().__init__(detail=detail, type="invalid-subscription", extra={"field": field})


class DeliveryNotRetryableError(ConflictException):
    """Manual retry was requested for a delivery that has not failed."""

    def __init__(self, delivery_id: Any, status: str) -> None:
        super().__init__(
            detail=f"Only failed deliveries can be retried (current status: {status})",
            type="delivery-not-retryable",
            extra={"delivery_id": str(delivery_id), "status": status},
        )


class WebhookDeliveryError(AppException):
    """A webhook delivery attempt did not succeed.

    Raised and handled inside the delivery worker; never propagated to the
    code that records events.
    """

    retryable: bool = False

    def __init__(
        self,
        detail: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        self.response_status_code = status_code
        self.response_body = response_body
        super().__init__(
            status_code=502,
            detail=detail,
            type="webhook-delivery-failed",
            extra={"response_status_code": status_code},
        )


class DeliveryTransientError(WebhookDeliveryError):
    """5xx, 429, timeout or transport error. Retried with backoff."""

    retryable = True


class DeliveryPermanentError(WebhookDeliveryError):
    """4xx other than 429. Marked failed without retry."""

    retryable = False


__all__ = [
    "AppException",
    "ConflictException",
    "CrossTenantViolationError",
    "DeliveryNotRetryableError",
    "DeliveryPermanentError",
    "DeliveryTransientError",
    "InvalidSubscriptionError",
    "NoTenantContextError",
    "NotFoundException",
    "TenancyError",
    "TenantContextConflictError",
    "ValidationException",
    "WebhookDeliveryError",
]
