"""Error codes and the structured exception hierarchy shared by all tools."""

from __future__ import annotations


class ErrorCodes:
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    CONFIRMATION_REQUIRED = "CONFIRMATION_REQUIRED"
    BULK_CAP_EXCEEDED = "BULK_CAP_EXCEEDED"
    FIELD_NOT_ALLOWED = "FIELD_NOT_ALLOWED"
    SCOPE_REQUIRED = "SCOPE_REQUIRED"
    DISCOUNT_LIMIT_EXCEEDED = "DISCOUNT_LIMIT_EXCEEDED"
    RATE_LIMITED = "RATE_LIMITED"
    PLAN_NOT_FOUND = "PLAN_NOT_FOUND"
    PLAN_EXPIRED = "PLAN_EXPIRED"
    MAGENTO_API_ERROR = "MAGENTO_API_ERROR"
    FASTLY_API_ERROR = "FASTLY_API_ERROR"
    ACTION_NOT_FOUND = "ACTION_NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class MagentoMCPError(Exception):
    """Base class for failures reported to the caller as ``{code, message, details}``."""

    code: str = ErrorCodes.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, object] | None = None,
        *,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, object]:
        error: dict[str, object] = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return error


class NotAuthenticatedError(MagentoMCPError):
    code = ErrorCodes.NOT_AUTHENTICATED


class ActionValidationError(MagentoMCPError):
    code = ErrorCodes.VALIDATION_ERROR


class PlanNotFoundError(MagentoMCPError):
    code = ErrorCodes.PLAN_NOT_FOUND
