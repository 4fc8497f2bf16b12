"""Error normalization and handlers."""

import logging
import builtins
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.requests import Request

from tangabiz.core.logging import LOGGER_NAME, get_request_id

logger = logging.getLogger(LOGGER_NAME)


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id
        self.details = details or {}


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class PermissionError(AppError, builtins.PermissionError):
    code = "forbidden"
    status_code = 403


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class RolePermissionDeniedError(PermissionError):
    """The actor's role in the organization lacks the requested permission."""
    code = "role_permission_denied"


class UpgradeRequiredError(AppError):
    """Base for denials whose remediation is buying or changing a plan."""
    status_code = 403

    def __init__(self, message: str, **kwargs):
        details = dict(kwargs.pop("details", None) or {})
        details.setdefault("upgrade_required", True)
        super().__init__(message, details=details, **kwargs)


class PlanFeatureDisabledError(UpgradeRequiredError):
    code = "plan_feature_disabled"


class TrialExpiredError(UpgradeRequiredError):
    code = "trial_expired"


class QuotaExceededError(UpgradeRequiredError):
    code = "quota_exceeded"

    def __init__(self, message: str, *, current: Optional[int] = None, limit: Optional[int] = None, **kwargs):
        details = dict(kwargs.pop("details", None) or {})
        if current is not None:
            details["current"] = current
        if limit is not None:
            details["limit"] = limit
        super().__init__(message, details=details, **kwargs)
        self.current = current
        self.limit = limit


class UsageUnavailableError(AppError):
    """Usage could not be counted (store unreachable or timed out)."""
    code = "usage_unavailable"
    status_code = 503


class UnknownProductError(AppError):
    """A billing product id has no plan mapping."""
    code = "unknown_product"
    status_code = 502

    def __init__(self, message: str, *, product_id: Optional[str] = None, **kwargs):
        details = dict(kwargs.pop("details", None) or {})
        if product_id is not None:
            details["product_id"] = product_id
        super().__init__(message, details=details, **kwargs)
        self.product_id = product_id


class BillingDisabledError(AppError):
    code = "billing_disabled"
    status_code = 503

def _extract_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid4())


def _error_response(
    status_code: int,
    code: str,
    message: str,
    request_id: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Render ``{"error": {...}, "detail": message}``.

    ``detail`` mirrors FastAPI's default body so older clients reading it keep
    working; ``details`` (current/limit, permission, upgrade_required...) are
    flattened into the error object.
    """
    error: Dict[str, Any] = {"code": code, "message": message, "request_id": request_id}
    error.update(details or {})
    response = JSONResponse(status_code=status_code, content={"error": error, "detail": message})
    response.headers["x-request-id"] = request_id
    return response


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    logger.log(
        logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    return _error_response(exc.status_code, exc.code, exc.message, rid, exc.details)


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_request_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    return _error_response(exc.status_code, code, exc.detail or "HTTP error", rid)


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logger.error("unhandled.exception", exc_info=exc, extra={"request_id": rid, "error_code": "internal_error"})
    return _error_response(500, "internal_error", "Unexpected error", rid)
