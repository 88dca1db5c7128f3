"""
Application error taxonomy.

Every error a handler can raise on purpose is an AppError. They subclass
HTTPException so FastAPI still knows the status code, while the handler
registered in main.py renders them as {"success": false, "message": ...}.
"""

from fastapi import HTTPException
from starlette import status


class AppError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        super().__init__(status_code=self.status_code, detail=message or self.default_message)

    @property
    def message(self) -> str:
        return self.detail


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidInput(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class InsufficientFunds(InvalidInput):
    default_message = "Insufficient balance"


class ProviderError(AppError):
    """The provisioning or payment API answered with an error, or not at all."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Provider request failed"

    def __init__(self, message: str | None = None, response: dict | None = None):
        super().__init__(message)
        self.response = response


class InvalidSignature(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid signature"
