"""Domain exceptions and service boundary decorator."""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

import asyncpg
from structlog import get_logger

logger = get_logger()

# Type variables for decorator
P = ParamSpec("P")
T = TypeVar("T")


class DomainError(Exception):
    """Base exception for all domain errors."""

    code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        return self.message


class NotFoundError(DomainError):
    """Record, user, or verifier reference does not exist."""

    code = "NOT_FOUND"


class ValidationError(DomainError):
    """Input validation failed."""

    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message, ctx)
        self.field = field


class ConflictError(DomainError):
    """Resource already exists for the given identity."""

    code = "CONFLICT"


class AuthorizationError(DomainError):
    """Caller's role or ownership does not permit the operation."""

    code = "FORBIDDEN"


class PreconditionFailedError(DomainError):
    """Lifecycle operation attempted from the wrong status."""

    code = "PRECONDITION_FAILED"

    def __init__(
        self,
        message: str,
        expected_status: str | None = None,
        current_status: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        ctx = context or {}
        if expected_status is not None:
            ctx["expected_status"] = expected_status
        if current_status is not None:
            ctx["current_status"] = current_status
        super().__init__(message, ctx)
        self.expected_status = expected_status
        self.current_status = current_status


class DeclarationRequiredError(PreconditionFailedError):
    """Submission attempted without agreeing to the declaration."""

    code = "DECLARATION_REQUIRED"


class IntegrityError(DomainError):
    """Committee invariant violated (same-department or unresolvable verifier)."""

    code = "INTEGRITY_ERROR"


class DatabaseError(DomainError):
    """Database operation failed."""

    code = "DATABASE_ERROR"


class ConfigurationError(DomainError):
    """System misconfigured."""

    code = "CONFIGURATION_ERROR"


def service_boundary[**P, T](func: Callable[P, T]) -> Callable[P, T]:
    """
    Convert native exceptions to domain exceptions at service entry points.

    Storage failures surface as DatabaseError so callers can retry them
    without confusing them with validation or authorization failures.

    Usage:
        @service_boundary
        async def submit_appraisal(...):
            await store.appraisals.update_if_status(...)  # PostgresError -> DatabaseError

    Args:
        func: Async service function to wrap

    Returns:
        Wrapped function that converts exceptions
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return await func(*args, **kwargs)
        except DomainError:
            # Already a domain error, pass through
            raise
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error("database_error", function=func.__name__, error=str(e))
            raise DatabaseError(str(e), context={"function": func.__name__}) from e
        except Exception as e:
            logger.exception("unexpected_error", function=func.__name__)
            raise DomainError(
                str(e), context={"function": func.__name__, "type": type(e).__name__}
            ) from e

    return wrapper  # type: ignore[return-value]
