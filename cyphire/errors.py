"""Domain errors raised by the workflow layer and rendered by the API."""

from typing import Optional


class CyphireError(Exception):
    """Base error. Carries the HTTP status the API should answer with."""

    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationFailed(CyphireError):
    status_code = 400


class Unauthorized(CyphireError):
    status_code = 401


class Forbidden(CyphireError):
    status_code = 403


class NotFound(CyphireError):
    status_code = 404


class Conflict(CyphireError):
    status_code = 409


class RateLimited(CyphireError):
    status_code = 429


class ServiceUnavailable(CyphireError):
    status_code = 503


class PaymentVerificationFailed(CyphireError):
    """Gateway signature did not match the order/payment pair."""

    status_code = 400

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message}


class FeatureDisabled(CyphireError):
    status_code = 403

    def __init__(self, flag: str):
        super().__init__(f"Feature {flag} is disabled")
        self.flag = flag

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message}
