"""
Service-layer exceptions.

Every failure a lifecycle operation can report is one of these. Routes turn
them into HTTP errors using status_code; nothing is swallowed on the way up.
"""

import functools
import logging
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class MatchEngineError(ValueError):
    """Base class for lifecycle errors. Carries the HTTP status it maps to."""

    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class UnauthorizedError(MatchEngineError):
    """Raised when the caller is not authenticated."""

    status_code = 401


class ForbiddenError(MatchEngineError):
    """Raised when the caller is not a participant / not the captain."""

    status_code = 403


class NotFoundError(MatchEngineError):
    """Raised when a match, player or queue entry does not exist."""

    status_code = 404


class ConflictError(MatchEngineError):
    """Raised when the current state forbids the operation (duplicate queue entry, wrong match status)."""

    status_code = 409


class InvalidInputError(MatchEngineError):
    """Raised for malformed input such as an inconsistent score."""

    status_code = 400


class DependencyError(MatchEngineError):
    """Raised when the database fails underneath an operation."""

    status_code = 503


def storage_errors(func):
    """Re-raise database failures from an async service function as DependencyError."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(f"Storage failure in {func.__name__}: {e}", exc_info=True)
            raise DependencyError("Storage is unavailable, please retry") from e

    return wrapper
