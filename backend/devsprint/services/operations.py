"""
Service-boundary error handling.

Services raise ``OperationRejected`` subclasses for expected business-rule
failures. The ``operation`` decorator turns those, and any storage failure,
into an ``OperationResult`` so nothing but a result leaves the service.
"""

import functools
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
import structlog

from devsprint.models.result import FailureKind, OperationResult

logger = structlog.get_logger(__name__)


class OperationRejected(Exception):
    """Base class for expected, locally recovered failures."""
    kind: FailureKind = FailureKind.VALIDATION

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class Unauthorized(OperationRejected):
    """Actor missing or lacks the required role or ownership."""
    kind = FailureKind.UNAUTHORIZED


class InvalidTransition(OperationRejected):
    """Current status does not permit the requested operation."""
    kind = FailureKind.INVALID_TRANSITION


class ValidationFailed(OperationRejected):
    """Required input is missing or out of range."""
    kind = FailureKind.VALIDATION


class NotFound(OperationRejected):
    """A referenced record does not exist."""
    kind = FailureKind.NOT_FOUND


class PersistenceFailed(OperationRejected):
    """Storage refused or failed a write."""
    kind = FailureKind.PERSISTENCE


ServiceMethod = Callable[..., Awaitable[Optional[Dict[str, Any]]]]


def operation(failure_message: str) -> Callable[[ServiceMethod], Callable[..., Awaitable[OperationResult]]]:
    """
    Wrap an async service method so it always returns an OperationResult.

    The wrapped method returns a dict of result data (or None). Version
    conflicts are retried up to ``self.retries`` times because every attempt
    re-reads the row in a fresh transaction.

    Usage:
        @operation("Failed to start task")
        async def start_task(self, actor, task_id):
            ...
            return {"task": task}
    """
    def decorator(fn: ServiceMethod) -> Callable[..., Awaitable[OperationResult]]:
        @functools.wraps(fn)
        async def wrapper(self, *args: Any, **kwargs: Any) -> OperationResult:
            attempts = max(1, getattr(self, "retries", 1))
            for attempt in range(1, attempts + 1):
                try:
                    data = await fn(self, *args, **kwargs)
                    return OperationResult.ok(**(data or {}))
                except OperationRejected as e:
                    logger.info(
                        "operation_rejected",
                        operation=fn.__name__,
                        kind=e.kind.value,
                        reason=e.message,
                    )
                    return OperationResult.fail(e.message, e.kind)
                except StaleDataError:
                    logger.warning(
                        "concurrent_update_conflict",
                        operation=fn.__name__,
                        attempt=attempt,
                        max_attempts=attempts,
                    )
                except SQLAlchemyError as e:
                    logger.error(
                        "persistence_failure",
                        operation=fn.__name__,
                        error_type=type(e).__name__,
                        error=str(e),
                        exc_info=e,
                    )
                    return OperationResult.fail(failure_message, FailureKind.PERSISTENCE)

            return OperationResult.fail(failure_message, FailureKind.PERSISTENCE)

        return wrapper

    return decorator
