"""
Operation tracing.

Every service entry point runs inside an operation: it is logged on entry
and exit with its duration, shares the caller's correlation id, and any
package error escaping it is stamped with the operation that raised it.
"""

import time
import uuid
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, Union, cast

from ..constants import LogContextKey, OperationStatus
from ..exceptions import (
    BaseError,
    clear_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from ..utils.logger import ContextAwareLogger, get_logger
from .tenant_context import TenantContext

F = TypeVar("F", bound=Callable[..., Any])


class OperationContext:
    """State of one running operation."""

    def __init__(self, operation_name: str, correlation_id: Optional[str] = None, **context):
        self.operation_name = operation_name
        self.operation_id = str(uuid.uuid4())
        self.correlation_id = correlation_id or get_correlation_id() or str(uuid.uuid4())
        set_correlation_id(self.correlation_id)

        self.context: Dict[str, Any] = {
            **context,
            LogContextKey.OPERATION_ID.value: self.operation_id,
            LogContextKey.CORRELATION_ID.value: self.correlation_id,
        }
        self.metrics: Dict[str, Union[int, float]] = {}
        self._started = time.perf_counter()

    @property
    def duration_ms(self) -> float:
        return (time.perf_counter() - self._started) * 1000

    def add_context(self, **kwargs) -> None:
        self.context.update(kwargs)

    def add_metric(self, name: str, value: Union[int, float]) -> None:
        """Counters reported with the EXIT (or ERROR) record."""
        self.metrics[name] = value

    def finished(self, status: OperationStatus, **extra) -> Dict[str, Any]:
        return {
            **self.context,
            "duration_ms": round(self.duration_ms, 2),
            "status": status.value,
            **self.metrics,
            **extra,
        }


class OperationHandler:
    """Logs operations through a ContextAwareLogger (or anything shaped like one)."""

    def __init__(self, logger: Optional[ContextAwareLogger] = None):
        self.logger = logger if logger is not None else get_logger()

    @contextmanager
    def operation(self, name: str, **context) -> Iterator[OperationContext]:
        tenant_id = TenantContext.get_current_tenant_id()
        if tenant_id:
            context.setdefault("tenant_id", tenant_id)

        outer_correlation_id = get_correlation_id()
        op_ctx = OperationContext(name, **context)
        self.logger.info(f"ENTER: {name}", extra=dict(op_ctx.context))

        try:
            yield op_ctx
        except BaseError as e:
            e.add_context(
                operation_name=name,
                operation_id=op_ctx.operation_id,
                operation_duration_ms=op_ctx.duration_ms,
            )
            self.logger.error(
                f"ERROR: {name} -> {e.error_code.value}: {e.message}",
                extra=op_ctx.finished(
                    OperationStatus.ERROR,
                    error_id=e.error_id,
                    error_code=e.error_code.value,
                    retryable=e.retryable,
                ),
            )
            raise
        except Exception as e:
            self.logger.exception(
                f"ERROR: {name} -> {type(e).__name__}: {e}",
                extra=op_ctx.finished(OperationStatus.ERROR, error_type=type(e).__name__),
            )
            raise
        else:
            self.logger.info(f"EXIT: {name}", extra=op_ctx.finished(OperationStatus.SUCCESS))
        finally:
            if outer_correlation_id is None:
                clear_correlation_id()
            else:
                set_correlation_id(outer_correlation_id)


def _operation_name(func: Callable, args: tuple) -> str:
    """``module.Class.method`` for methods, ``module.function`` otherwise."""
    module = func.__module__.rsplit(".", 1)[-1]
    if args and hasattr(type(args[0]), func.__name__):
        return f"{module}.{type(args[0]).__name__}.{func.__name__}"
    return f"{module}.{func.__name__}"


def operation(name: Union[Optional[str], Callable] = None):
    """
    Run the decorated function inside an operation.

    Usable bare (``@operation``) or called (``@operation()``,
    ``@operation(name="vehicles.save")``). Without a name the operation is
    named after the module, class and function.
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args, **kwargs):
            op_name = name or _operation_name(func, args)
            context = {LogContextKey.SOURCE_MODULE.value: func.__module__}
            with OperationHandler().operation(op_name, **context):
                return func(*args, **kwargs)

        return cast(F, wrapper)

    if callable(name):
        func, name = name, None
        return decorator(func)
    return decorator
