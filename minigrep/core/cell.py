"""
Capture Cell - State captured by pipeline closures.

A Cell holds one piece of state (a search pattern, a lookup table, an open
resource) that closures read on every invocation without re-deriving it.
It has two capture modes:
1. Copy path: dill serialization, each binding gets an independent copy
2. Share path: reference counting, each binding gets the same object

Once a pipeline capturing the cell starts pulling, the cell is frozen and
its state can no longer be replaced.
"""

import pickle
import warnings
from collections.abc import Callable
from typing import Any

import dill


COPY = "copy"
SHARE = "share"

_DESTRUCTOR_NAMES = ("close", "release", "cleanup", "shutdown")


class CellError(Exception):
    """Base exception for Cell-related errors."""

    pass


class CellFrozenError(CellError):
    """Raised when a frozen cell is written to."""

    pass


class _SharedInner:
    """
    Reference counter for state captured by reference.

    The cell itself holds one reference; every closure binding holds another.
    When the count reaches zero the value's destructor (if any) is called.
    """

    def __init__(self, value: Any):
        self.value = value
        self.refcount = 1
        self.destructor = _find_destructor(value)

    def incref(self):
        self.refcount += 1

    def decref(self):
        self.refcount -= 1
        if self.refcount == 0:
            self._cleanup()

    def _cleanup(self):
        if self.destructor is None:
            return
        try:
            self.destructor()
        except Exception as e:
            warnings.warn(f"Cell destructor failed: {e}", RuntimeWarning, stacklevel=2)


def _find_destructor(value: Any) -> Callable | None:
    for method_name in _DESTRUCTOR_NAMES:
        method = getattr(value, method_name, None)
        if callable(method):
            return method
    return None


def _is_serializable(obj: Any) -> bool:
    """Detect if object can be dill-serialized."""
    try:
        dill.dumps(obj)
        return True
    except (TypeError, AttributeError, pickle.PicklingError):
        return False


class Cell:
    """
    Container for state captured by closures.

    Usage:
        # By value: every closure gets its own copy
        pattern = Cell.copy("duct")
        local = pattern.bind()

        # By reference: every closure sees the same object
        index = Cell.share(build_index())
        assert index.bind() is index.get()
    """

    def __init__(self, inner_type: type, mode: str, data: Any):
        """
        Internal constructor. Use Cell.copy(), Cell.share() or Cell.any().

        Args:
            inner_type: The type of the captured value
            mode: Either 'copy' or 'share'
            data: Serialized bytes (copy) or _SharedInner (share)
        """
        self._inner_type = inner_type
        self._mode = mode
        self._data = data
        self._local = None
        self._frozen = False
        self._closed = False

    @classmethod
    def copy(cls, value: Any) -> "Cell":
        """
        Capture a value by copy.

        Raises:
            CellError: If the value cannot be serialized
        """
        try:
            data = dill.dumps(value)
        except (TypeError, AttributeError, pickle.PicklingError) as e:
            raise CellError(
                f"Cannot capture {type(value).__name__} by value: {e}"
            ) from e
        return cls(type(value), COPY, data)

    @classmethod
    def share(cls, value: Any) -> "Cell":
        """Capture a value by reference."""
        return cls(type(value), SHARE, _SharedInner(value))

    @classmethod
    def any(cls, value: Any) -> "Cell":
        """
        Capture a value, choosing the mode automatically.

        Values owning a resource (anything with a close()-like method) and
        values dill cannot serialize are shared; everything else is copied.
        """
        if isinstance(value, Cell):
            return value
        if _find_destructor(value) is not None or not _is_serializable(value):
            return cls.share(value)
        return cls.copy(value)

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def frozen(self) -> bool:
        return self._frozen

    def inner_type(self) -> type:
        """Get the type of the captured value."""
        return self._inner_type

    def get(self) -> Any:
        """
        Read the captured value.

        For copy mode the cell keeps one private copy, materialized on first
        read. For share mode the shared object itself is returned.
        """
        if self._mode == SHARE:
            return self._data.value
        if self._local is None:
            self._local = dill.loads(self._data)
        return self._local

    def set(self, value: Any) -> None:
        """
        Replace the captured value.

        Raises:
            CellFrozenError: If a pipeline capturing this cell has started pulling
        """
        if self._frozen:
            raise CellFrozenError(
                f"Cell<{self._inner_type.__name__}> is frozen; "
                "captured state cannot change once a pipeline is pulling"
            )
        self._inner_type = type(value)
        if self._mode == SHARE:
            self._data.value = value
            self._data.destructor = _find_destructor(value)
        else:
            self._data = dill.dumps(value)
            self._local = None

    def freeze(self) -> None:
        self._frozen = True

    def bind(self) -> Any:
        """
        Acquire the value for one closure.

        Copy mode returns a fresh independent copy; share mode returns the
        shared object and increments its reference count.
        """
        if self._mode == COPY:
            return dill.loads(self._data)
        self._data.incref()
        return self._data.value

    def release(self) -> None:
        """Release a binding previously acquired with bind()."""
        if self._mode == SHARE:
            self._data.decref()

    def close(self) -> None:
        """Drop the cell's own reference. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._mode == SHARE:
            self._data.decref()

    def __del__(self):
        if getattr(self, "_mode", None) == SHARE:
            self.close()

    def __repr__(self) -> str:
        state = ", frozen" if self._frozen else ""
        return f"Cell<{self._inner_type.__name__}, mode={self._mode}{state}>"


class Memo:
    """
    Lazily evaluated, cached computation.

    The wrapped function runs only when a result is asked for, and at most
    once per distinct argument.

    Example:
        folded = Memo(str.lower)
        folded("RUST")  # computes
        folded("RUST")  # cached
    """

    def __init__(self, calculation: Callable[[Any], Any]):
        self._calculation = calculation
        self._values: dict[Any, Any] = {}

    def __call__(self, arg: Any) -> Any:
        if arg not in self._values:
            self._values[arg] = self._calculation(arg)
        return self._values[arg]

    @property
    def calls(self) -> int:
        """Number of distinct arguments computed so far."""
        return len(self._values)
