"""
Utils Module - Control flow helpers for pipeline drivers.

This module provides:
- stop(): Ask the running driver to stop pulling after the current element

The driver context is held in a contextvar, so drivers running in different
threads or tasks never see each other's stop requests.
"""

from contextvars import ContextVar, Token


class UtilsError(Exception):
    """Base exception for utils-related errors."""

    pass


class DriverContext:
    """Context for one driver run."""

    def __init__(self, operation: str):
        self.operation = operation
        self.should_stop = False
        self.consumed = 0

    def __str__(self) -> str:
        return f"{self.operation}()"


_driver_context: ContextVar[DriverContext | None] = ContextVar(
    "driver_context", default=None
)


def stop() -> None:
    """
    Signal that the running driver should stop pulling.

    Call this from a for_each effect to cancel the rest of the pipeline. The
    element currently being handled is still counted as consumed; nothing
    further is pulled from upstream.

    Raises:
        UtilsError: If called outside of a driver

    Example:
        def emit(match):
            print(*match)
            if match[0] > 100:
                minigrep.utils.stop()

        pipeline.for_each(emit)
    """
    ctx = _driver_context.get()
    if ctx is None:
        raise UtilsError(
            "stop() called outside of a driver. "
            "This function can only be called while a pipeline is being consumed."
        )
    ctx.should_stop = True


# Internal API for drivers to manage contexts
def _set_driver_context(ctx: DriverContext) -> Token:
    """Set the current driver context (internal use only)."""
    return _driver_context.set(ctx)


def _reset_driver_context(token: Token) -> None:
    """Restore the enclosing driver context (internal use only)."""
    _driver_context.reset(token)


def _get_driver_context() -> DriverContext | None:
    """Get the current driver context (internal use only)."""
    return _driver_context.get()
