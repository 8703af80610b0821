"""
Explicit success/failure values for sub-unit calls.

Per-provider and per-region work returns an ``Ok`` or ``Err`` instead of
raising, so a category can aggregate its failures into a ``PartialFailure``
and keep whatever succeeded.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Generic, TypeVar, Union

import structlog

from app.core.exceptions import ProviderQueryFailed
from app.core.ops_metrics import SUBCALL_TIMEOUTS

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: Exception

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return getattr(self.error, "message", None) or str(self.error) or type(self.error).__name__


Result = Union[Ok[T], Err]


async def capture(awaitable: Awaitable[T], timeout: float, scope: str, level: str = "subcall") -> Result:
    """
    Await a sub-unit call under a timeout and capture its outcome.

    A timeout is treated exactly like any other failure of that sub-unit.
    """
    try:
        value = await asyncio.wait_for(awaitable, timeout=timeout)
        return Ok(value)
    except asyncio.TimeoutError:
        SUBCALL_TIMEOUTS.labels(level=level).inc()
        logger.warning("subcall_timeout", scope=scope, timeout_seconds=timeout)
        return Err(ProviderQueryFailed(f"timed out after {timeout:g}s"))
    except Exception as e:
        logger.warning("subcall_failed", scope=scope, error=str(e), error_type=type(e).__name__)
        return Err(e)


def unwrap_or(result: Result, default: Any) -> Any:
    return result.value if isinstance(result, Ok) else default
