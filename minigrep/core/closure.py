"""
Closure Contract - Uniform callable with a captured environment.

Stages never see concrete capture types; they only call invoke(value).
Captured state lives in Cells and is bound to the closure on first use.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from minigrep.core.cell import Cell
from minigrep.core.errors import ClosureError


@dataclass(eq=False)
class Closure:
    """
    A callable value with captured state.

    The wrapped function receives the element as its first positional
    argument and every capture as a keyword argument:

        contains = Closure(lambda line, needle: needle in line,
                           captures={"needle": Cell.copy("duct")})
        contains("productive")  # True

    Attributes:
        fn: The function to call per element
        captures: Captured state (name -> Cell)
        effectful: Whether the closure has side effects; only the terminal
            consumption step may use an effectful closure
    """

    fn: Callable
    captures: dict[str, Cell] = field(default_factory=dict)
    effectful: bool = False
    _bound: dict[str, Any] | None = field(default=None, init=False, repr=False)

    def __post_init__(self):
        if not callable(self.fn):
            raise TypeError(f"Closure needs a callable, got {type(self.fn).__name__}")
        self.captures = {name: Cell.any(value) for name, value in self.captures.items()}

    @classmethod
    def of(cls, obj: "Closure | Callable", **captures: Any) -> "Closure":
        """Coerce a plain callable into a pure Closure; Closures pass through."""
        if isinstance(obj, Closure):
            if captures:
                raise TypeError("Cannot add captures to an existing Closure")
            return obj
        return cls(obj, captures=captures)

    @property
    def bound(self) -> bool:
        return self._bound is not None

    def bind(self) -> None:
        """Bind every captured cell. Idempotent."""
        if self._bound is None:
            self._bound = {name: cell.bind() for name, cell in self.captures.items()}

    def freeze(self) -> None:
        for cell in self.captures.values():
            cell.freeze()

    def release(self) -> None:
        """Release captured bindings. Idempotent."""
        if self._bound is None:
            return
        for cell in self.captures.values():
            cell.release()
        self._bound = None

    def invoke(self, value: Any) -> Any:
        """
        Call the closure on one element.

        Raises:
            ClosureError: If the wrapped function raises
        """
        if self._bound is None:
            self.bind()
        try:
            return self.fn(value, **self._bound)
        except ClosureError:
            raise
        except Exception as e:
            raise ClosureError(
                f"{_name_of(self.fn)} failed on {value!r}: {e}", value=value
            ) from e

    def __call__(self, value: Any) -> Any:
        return self.invoke(value)


def _name_of(fn: Callable) -> str:
    return getattr(fn, "__qualname__", None) or type(fn).__name__
