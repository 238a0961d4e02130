# app/core/exceptions.py
from typing import Any

from app.core.messages import ErrorMessage

class GlobalException(Exception):
    status_code: int
    error_code: str
    message: str
    data: dict[str, Any] | None = None

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


class ResourceNotFound(GlobalException):
    status_code = 404
    error_code = "not_found"
    message = "Requested resource not found"


class ValidationException(GlobalException):
    status_code = 400
    error_code = "validation_error"
    message = "Validation failed"

class AccessDenied(GlobalException):
    status_code = 403
    error_code = "access_denied"
    message = ErrorMessage.ACCESS_DENIED


class ExternalServiceError(GlobalException):
    status_code = 502
    error_code = "external_service_error"
    message = "External service request failed"


# ---------- Refund workflow ----------

class PaymentNotFound(ResourceNotFound):
    error_code = "payment_not_found"
    message = ErrorMessage.PAYMENT_NOT_FOUND


class NotAuthorized(AccessDenied):
    error_code = "payment_not_owned"
    message = ErrorMessage.PAYMENT_NOT_OWNED


class Forbidden(AccessDenied):
    error_code = "forbidden"
    message = ErrorMessage.ADMIN_ACCESS_REQUIRED


class DuplicateRequest(GlobalException):
    status_code = 409
    error_code = "duplicate_refund_request"
    message = ErrorMessage.DUPLICATE_REQUEST

    def __init__(self, status: str):
        self.status = status
        self.data = {"status": status}
        super().__init__(ErrorMessage.DUPLICATE_REQUEST.format(status=status))


class RefundRequestNotFound(ResourceNotFound):
    error_code = "refund_request_not_found"
    message = ErrorMessage.REQUEST_NOT_FOUND


class AlreadyResolved(GlobalException):
    status_code = 409
    error_code = "already_resolved"
    message = ErrorMessage.ALREADY_RESOLVED

    def __init__(self, status: str):
        self.status = status
        self.data = {"status": status}
        super().__init__(ErrorMessage.ALREADY_RESOLVED.format(status=status))


class GatewayError(ExternalServiceError):
    error_code = "gateway_error"
    message = ErrorMessage.GATEWAY_FAILURE
