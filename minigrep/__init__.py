"""
minigrep - Line search on a lazy closure/iterator pipeline.

This is the main package that exports the public API.
"""

__version__ = "0.1.0"

from types import SimpleNamespace

from minigrep.core import driver, stage, utils as utils_module
from minigrep.core.cell import Cell, Memo
from minigrep.core.closure import Closure
from minigrep.core.driver import STOP
from minigrep.core.errors import (
    ClosureError,
    OwnershipError,
    PipelineError,
    PipelineFailed,
    SourceError,
    StageError,
)
from minigrep.core.stage import EXHAUSTED, Producer
from minigrep.search import (
    SearchConfig,
    first_match,
    search,
    search_case_insensitive,
    search_case_sensitive,
)

# Pipeline API namespace: sources and drivers
pipe = SimpleNamespace(
    lines=stage.lines,
    decode_lines=stage.decode_lines,
    from_iterable=stage.from_iterable,
    collect=driver.collect,
    for_each=driver.for_each,
    find=driver.find,
    count=driver.count,
    sum=driver.sum,
)

# Utils API namespace
utils = SimpleNamespace(
    stop=utils_module.stop,
)

__all__ = [
    "__version__",
    "Cell",
    "Closure",
    "ClosureError",
    "EXHAUSTED",
    "Memo",
    "OwnershipError",
    "PipelineError",
    "PipelineFailed",
    "Producer",
    "STOP",
    "SearchConfig",
    "SourceError",
    "StageError",
    "first_match",
    "pipe",
    "search",
    "search_case_insensitive",
    "search_case_sensitive",
    "utils",
]
