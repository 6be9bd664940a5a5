from typing import Optional


class AppError(Exception):
    """Error surfaced to the client as ``{"message": ..., "error": ...}``."""

    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def to_body(self) -> dict:
        body = {"message": self.message}
        if self.error:
            body["error"] = self.error
        return body


class ValidationError(AppError):
    status_code = 400


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


# Duplicate like or view of the same material by the same device
class ConflictError(AppError):
    status_code = 400


class UpstreamError(AppError):
    status_code = 500
