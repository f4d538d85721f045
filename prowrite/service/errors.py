from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer exceptions mapped to HTTP responses.

    Each exception class defines both an HTTP status_code and a stable
    error_code that clients can switch on:
    - unauthorized (401)
    - payment_required (402)
    - forbidden (403)
    - not_found (404)
    - validation_error / unsupported_module (400)
    - upstream_error (502)
    """

    status_code: int = 400
    error_code: str = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[dict] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.detail = detail or {}


class ValidationError(ServiceError):
    """Request validation failed (400)."""
    status_code = 400
    error_code = "validation_error"


class UnsupportedModuleError(ValidationError):
    """Module tag has no registered instruction template (400)."""
    error_code = "unsupported_module"

    def __init__(self, module_type: str) -> None:
        super().__init__(
            f"unsupported module: {module_type}",
            detail={"module_type": module_type},
        )
        self.module_type = module_type


class AuthenticationError(ServiceError):
    """Tenant identification missing (401)."""
    status_code = 401
    error_code = "unauthorized"


class PaymentRequiredError(ServiceError):
    """Workspace usage quota exhausted (402)."""
    status_code = 402
    error_code = "payment_required"


class ForbiddenError(ServiceError):
    """Access denied - resource belongs to another workspace (403)."""
    status_code = 403
    error_code = "forbidden"


class NotFoundError(ServiceError):
    """Requested resource not found (404)."""
    status_code = 404
    error_code = "not_found"


class UpstreamGenerationError(ServiceError):
    """Upstream text generator failed (502)."""
    status_code = 502
    error_code = "upstream_error"


__all__ = [
    "ServiceError",
    "ValidationError",
    "UnsupportedModuleError",
    "AuthenticationError",
    "PaymentRequiredError",
    "ForbiddenError",
    "NotFoundError",
    "UpstreamGenerationError",
]
