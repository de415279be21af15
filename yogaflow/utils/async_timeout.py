"""Async Timeout Utilities.

Bounded waits for operations that depend on a remote party:
- Live session establishment
- Bootstrap and SDP exchange
"""

import asyncio
from typing import TypeVar

from yogaflow.exceptions import YogaFlowError

T = TypeVar("T")


class AsyncTimeoutError(YogaFlowError):
    """Raised when an async operation times out."""

    def __init__(
        self,
        operation: str,
        timeout_s: float,
        details: dict | None = None,
    ) -> None:
        super().__init__(
            message=f"{operation} timed out after {timeout_s}s",
            details={
                "operation": operation,
                "timeout_s": timeout_s,
                **(details or {}),
            },
            recoverable=True,  # Caller can retry
        )
        self.operation = operation
        self.timeout_s = timeout_s


async def with_timeout(
    coro,
    timeout_s: float,
    operation: str = "operation",
) -> T:
    """Execute a coroutine with a timeout.

    Simple wrapper around asyncio.wait_for with custom exception.

    Args:
        coro: Coroutine to execute
        timeout_s: Maximum time in seconds
        operation: Name of operation for error messages

    Returns:
        Result of the coroutine

    Raises:
        AsyncTimeoutError: If operation times out

    Example:
        await with_timeout(
            transport.negotiate(),
            timeout_s=15.0,
            operation="realtime connect",
        )
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout_s)
    except asyncio.TimeoutError:
        raise AsyncTimeoutError(operation, timeout_s)
