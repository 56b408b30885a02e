from typing import List, Optional

from fastapi import HTTPException, status
from pydantic import ValidationError as PydanticValidationError


class AppError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[str]] = None):
        super().__init__(
            status_code=self.status_code,
            detail=message or self.default_message,
        )
        self.errors = errors


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation Error"


class Conflict(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Resource already exists"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Unavailable(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Service temporarily unavailable, please retry"


def format_validation_errors(errors) -> List[str]:
    """
    Flatten pydantic/FastAPI error dicts into "field.path: message" strings.
    Leading "body"/"query" locations are dropped.
    """
    messages = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc)
        msg = err.get("msg", "Invalid value")
        messages.append(f"{field}: {msg}" if field else msg)
    return messages


def validation_error_from(exc: PydanticValidationError) -> ValidationError:
    return ValidationError(errors=format_validation_errors(exc.errors()))
