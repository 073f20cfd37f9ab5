"""
Pipeline Driver - Consumes a pipeline to a result.

Drivers are the only place a pipeline is actually run. Each one:
- claims the pipeline (a pipeline is consumed by exactly one driver)
- pulls only as many elements as its result needs
- converts ClosureError/SourceError into PipelineFailed
- releases captured state when it returns, normally or not

The terminal effect of for_each() is the only closure allowed to have side
effects. It can cancel the run by returning STOP or calling
minigrep.utils.stop().
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from minigrep.core.closure import Closure
from minigrep.core.errors import ClosureError, PipelineFailed, SourceError
from minigrep.core.stage import EXHAUSTED, Filter, Producer
from minigrep.core.utils import (
    DriverContext,
    _reset_driver_context,
    _set_driver_context,
)

logger = logging.getLogger(__name__)


class _Stop:
    def __repr__(self) -> str:
        return "STOP"


# Return this from a for_each effect to stop the driver
STOP = _Stop()


@contextmanager
def _consume(pipeline: Producer, operation: str) -> Iterator[DriverContext]:
    if not isinstance(pipeline, Producer):
        raise TypeError(
            f"{operation}() needs a Producer, got {type(pipeline).__name__}"
        )
    ctx = DriverContext(operation)
    pipeline.claim(ctx)
    # captured state stays fixed for the whole run
    pipeline.freeze()
    token = _set_driver_context(ctx)
    logger.debug("%s: running %s", operation, pipeline.describe())
    try:
        yield ctx
    except (ClosureError, SourceError) as e:
        logger.debug(
            "%s: failed after %d element(s): %s", operation, ctx.consumed, e
        )
        raise PipelineFailed(f"{operation}() stopped: {e}") from e
    finally:
        pipeline.release()
        _reset_driver_context(token)
    logger.debug(
        "%s: done, %d element(s) consumed in %d pull(s)",
        operation,
        ctx.consumed,
        pipeline.pulls,
    )


def _pull(pipeline: Producer, ctx: DriverContext) -> Any:
    if ctx.should_stop:
        return EXHAUSTED
    item = pipeline.pull()
    if item is not EXHAUSTED:
        ctx.consumed += 1
    return item


def collect(pipeline: Producer) -> list:
    """
    Pull until exhaustion and return every element in order.

    Raises:
        PipelineFailed: If a closure or the source fails
    """
    result = []
    with _consume(pipeline, "collect") as ctx:
        while (item := _pull(pipeline, ctx)) is not EXHAUSTED:
            result.append(item)
    return result


def for_each(pipeline: Producer, effect: Closure | Callable) -> None:
    """
    Pull until exhaustion, calling effect on every element.

    The effect's return value is discarded unless it is STOP, which ends the
    run without pulling again.

    Raises:
        PipelineFailed: If a closure, the source or the effect fails
    """
    if isinstance(effect, Closure):
        terminal = effect
    else:
        terminal = Closure(effect, effectful=True)
    try:
        with _consume(pipeline, "for_each") as ctx:
            while (item := _pull(pipeline, ctx)) is not EXHAUSTED:
                if terminal.invoke(item) is STOP:
                    ctx.should_stop = True
    finally:
        terminal.release()


def find(
    pipeline: Producer, pred: Closure | Callable | None = None, default: Any = None
) -> Any:
    """
    Return the first element accepted by pred (the first element if pred is
    None), or default.

    A match at position k costs exactly k + 1 upstream pulls.
    """
    if pred is not None:
        pipeline = Filter(pipeline, pred)
    with _consume(pipeline, "find") as ctx:
        item = _pull(pipeline, ctx)
    return default if item is EXHAUSTED else item


def count(pipeline: Producer) -> int:
    total = 0
    with _consume(pipeline, "count") as ctx:
        while _pull(pipeline, ctx) is not EXHAUSTED:
            total += 1
    return total


def sum(pipeline: Producer, start: Any = 0) -> Any:
    total = start
    with _consume(pipeline, "sum") as ctx:
        while (item := _pull(pipeline, ctx)) is not EXHAUSTED:
            total = total + item
    return total
