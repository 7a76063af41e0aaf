from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class ForbiddenError(AppError):
    pass


class EditWindowExpiredError(ForbiddenError):
    pass


class ConflictError(AppError):
    pass


class ValidationError(AppError):
    pass


class PayloadTooLargeError(ValidationError):
    pass


class UnsupportedMediaTypeError(ValidationError):
    pass


class UnavailableError(AppError):
    """Persistence or fan-out infrastructure failure; safe to retry."""
