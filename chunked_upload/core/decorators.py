"""Decorators for cross-cutting concerns such as timing and slow-operation logging."""
import logging
import time
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, TypeVar

from chunked_upload.core.exceptions import UploadServiceException
from chunked_upload.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)

AsyncF = TypeVar('AsyncF', bound=Callable[..., Awaitable[Any]])


def async_performance_monitor(
    operation_name: Optional[str] = None,
    log_slow_operations: bool = True,
    slow_threshold: float = 1.0
):
    """
    Decorator for measuring coroutine latency and flagging slow calls.

    Args:
        operation_name: Custom label for the monitored operation.
        log_slow_operations: Emit warnings when threshold is exceeded.
        slow_threshold: Seconds beyond which the call is considered slow.
    """

    def decorator(func: AsyncF) -> AsyncF:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            op_name = operation_name or f"{func.__module__}.{func.__name__}"
            start_time = time.perf_counter()

            try:
                result = await func(*args, **kwargs)
            except UploadServiceException as e:
                # Expected domain outcome (rejection, not found); the caller reports it
                execution_time = time.perf_counter() - start_time
                logger.info(
                    f"Async operation rejected: {op_name} in {execution_time:.3f}s ({e.error_code})"
                )
                raise
            except Exception as e:
                execution_time = time.perf_counter() - start_time
                logger.error(
                    f"Async operation failed: {op_name} in {execution_time:.2f}s",
                    extra={"error": str(e), "execution_time": execution_time},
                    exc_info=True
                )
                raise

            execution_time = time.perf_counter() - start_time
            log_info = {
                "operation": op_name,
                "execution_time": round(execution_time, 4),
                "status": "success"
            }

            if log_slow_operations and execution_time > slow_threshold:
                logger.warning(f"Slow async operation detected: {log_info}")
            else:
                logger.debug(f"Async operation completed: {log_info}")

            return result

        return wrapper  # type: ignore

    return decorator
