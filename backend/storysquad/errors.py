from __future__ import annotations


class AppError(Exception):
    """
    Base for every failure the services raise on purpose.
    `status_code` is only read by the HTTP layer; services never look at it.
    """
    status_code: int = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NotFoundError(AppError):
    status_code = 404


class UnauthorizedError(AppError):
    status_code = 401


class ConflictError(AppError):
    status_code = 409


class RateLimitedError(ConflictError):
    status_code = 429


class ValidationError(AppError):
    status_code = 400


class ScoringError(AppError):
    status_code = 502
