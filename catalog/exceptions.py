"""
Failure taxonomy shared by every service.
"""


class CatalogError(Exception):
    """Base class for failures surfaced to callers."""

    status_code = 500
    kind = "error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__doc__.strip()


class NotFoundError(CatalogError):
    """Resource not found"""
    status_code = 404
    kind = "not_found"


class ConflictError(CatalogError):
    """Resource already exists"""
    status_code = 409
    kind = "conflict"


class ForbiddenError(CatalogError):
    """Not allowed to perform this operation"""
    status_code = 403
    kind = "forbidden"


class UnauthenticatedError(CatalogError):
    """Authentication required"""
    status_code = 401
    kind = "unauthenticated"


class ValidationFailure(CatalogError):
    """Invalid input"""
    status_code = 400
    kind = "validation_failure"


class RateLimitedError(CatalogError):
    """Too many requests"""
    status_code = 429
    kind = "rate_limited"

    def __init__(self, retry_after_seconds: int, message: str = ""):
        super().__init__(
            message or f"Rate limit exceeded. Please wait {retry_after_seconds} more seconds."
        )
        self.retry_after_seconds = retry_after_seconds
