"""
Lazy Sequence Nodes - Pull-based pipeline stages.

Every stage is a Producer: asked for its next element with pull(), it returns
the element or EXHAUSTED. Stages wrap exactly one upstream Producer (two for
zip and chain) and do work only when pulled:

    lines(text).enumerate().filter(is_match).take(10).collect()

Nothing runs until a driver (collect, for_each, find, ...) starts pulling.

Ownership:
- Wrapping a producer in a stage claims it; a producer can be claimed once
- Pulling after exhaustion keeps returning EXHAUSTED
- A failed pull (ClosureError, SourceError) exhausts the stage for good
"""

from collections.abc import Callable, Iterable, Iterator
from enum import Enum
from typing import Any

from minigrep.core.closure import Closure
from minigrep.core.errors import (
    OwnershipError,
    PipelineError,
    SourceError,
    StageError,
)


class _Exhausted:
    """Sentinel returned by pull() when no element remains."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "EXHAUSTED"

    def __reduce__(self):
        return (_Exhausted, ())


EXHAUSTED = _Exhausted()

_ITER_OWNER = "iter()"


class StageState(Enum):
    ACTIVE = "active"
    EXHAUSTED = "exhausted"


class Producer:
    """
    Base class for everything that can be pulled.

    Subclasses implement _advance(); pull() handles state, counters and
    failure bookkeeping around it.

    Attributes:
        state: ACTIVE until the first EXHAUSTED or failure, then EXHAUSTED
        pulls: Pulls that reached this producer while it was active
        yielded: Elements actually handed out
    """

    kind = "producer"

    def __init__(self):
        self.state = StageState.ACTIVE
        self.pulls = 0
        self.yielded = 0
        self._owner: Any = None

    # --------- ownership ----------
    def check_claim(self, owner: Any) -> None:
        """
        Check that owner could claim this producer, without claiming it.

        Raises:
            OwnershipError: If a consumer other than owner already owns it
        """
        if self._owner is not None and self._owner is not owner:
            raise OwnershipError(
                f"{self.kind} is already consumed by {_describe_owner(self._owner)}; "
                "a producer can feed only one consumer"
            )

    def claim(self, owner: Any) -> None:
        """
        Hand this producer to its single consumer.

        Raises:
            OwnershipError: If another consumer already owns it
        """
        self.check_claim(owner)
        self._owner = owner

    @property
    def claimed(self) -> bool:
        return self._owner is not None

    # --------- pulling ----------
    def pull(self) -> Any:
        """Return the next element, or EXHAUSTED."""
        if self.state is StageState.EXHAUSTED:
            return EXHAUSTED
        if self.pulls == 0:
            self._on_first_pull()
        self.pulls += 1
        try:
            item = self._advance()
        except PipelineError:
            self.state = StageState.EXHAUSTED
            raise
        if item is EXHAUSTED:
            self.state = StageState.EXHAUSTED
        else:
            self.yielded += 1
        return item

    def _advance(self) -> Any:
        raise NotImplementedError

    def _on_first_pull(self) -> None:
        pass

    @property
    def exhausted(self) -> bool:
        return self.state is StageState.EXHAUSTED

    # --------- chain introspection ----------
    def upstreams(self) -> tuple["Producer", ...]:
        return ()

    def closures(self) -> list[Closure]:
        """Every closure held by this producer and its upstreams."""
        found = []
        for upstream in self.upstreams():
            found.extend(upstream.closures())
        return found

    def freeze(self) -> None:
        """Freeze the captured state of every closure in the chain."""
        for closure in self.closures():
            closure.freeze()

    def release(self) -> None:
        """Release the captured state of every closure in the chain."""
        for closure in self.closures():
            closure.release()

    def describe(self) -> str:
        ups = self.upstreams()
        if not ups:
            return self.kind
        if len(ups) == 1:
            return f"{ups[0].describe()} -> {self.kind}"
        inner = ", ".join(up.describe() for up in ups)
        return f"{self.kind}({inner})"

    # --------- combinators (lazy) ----------
    def map(self, fn: Closure | Callable) -> "Map":
        return Map(self, fn)

    def filter(self, pred: Closure | Callable) -> "Filter":
        return Filter(self, pred)

    def take(self, n: int) -> "Take":
        return Take(self, n)

    def skip(self, n: int) -> "Skip":
        return Skip(self, n)

    def take_while(self, pred: Closure | Callable) -> "TakeWhile":
        return TakeWhile(self, pred)

    def enumerate(self, start: int = 0) -> "Enumerate":
        return Enumerate(self, start)

    def zip(self, other: "Producer | Iterable") -> "Zip":
        return Zip(self, other)

    def chain(self, other: "Producer | Iterable") -> "Chain":
        return Chain(self, other)

    # --------- drivers (consume the pipeline) ----------
    def collect(self) -> list:
        from minigrep.core import driver

        return driver.collect(self)

    def for_each(self, effect: Closure | Callable) -> None:
        from minigrep.core import driver

        driver.for_each(self, effect)

    def find(self, pred: Closure | Callable | None = None, default: Any = None) -> Any:
        from minigrep.core import driver

        return driver.find(self, pred, default=default)

    def count(self) -> int:
        from minigrep.core import driver

        return driver.count(self)

    def sum(self, start: Any = 0) -> Any:
        from minigrep.core import driver

        return driver.sum(self, start)

    # --------- iterator protocol ----------
    def __iter__(self) -> Iterator:
        self.claim(_ITER_OWNER)
        self.freeze()
        return self

    def __next__(self) -> Any:
        item = self.pull()
        if item is EXHAUSTED:
            raise StopIteration
        return item

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.describe()} state={self.state.value} pulls={self.pulls}>"


def _describe_owner(owner: Any) -> str:
    if isinstance(owner, Producer):
        return f"a {owner.kind} stage"
    return str(owner)


def _coerce(obj: Any) -> Producer:
    if isinstance(obj, Producer):
        return obj
    if isinstance(obj, (str, bytes)):
        raise StageError(
            f"Cannot use {type(obj).__name__} as a producer directly; use lines() or decode_lines()"
        )
    if isinstance(obj, Iterable):
        return Source(obj)
    raise StageError(f"Expected a Producer or iterable, got {type(obj).__name__}")


def _pure(fn: Closure | Callable, kind: str) -> Closure:
    closure = Closure.of(fn)
    if closure.effectful:
        raise StageError(
            f"{kind}() needs a side-effect free closure; "
            "use for_each() for effects"
        )
    return closure


def _count(n: Any, kind: str) -> int:
    if isinstance(n, bool) or not isinstance(n, int):
        raise StageError(f"{kind}() count must be an int, got {type(n).__name__}")
    if n < 0:
        raise StageError(f"{kind}() count must be >= 0, got {n}")
    return n


# --------- sources ----------
class Source(Producer):
    """Producer over an already-available iterable."""

    kind = "source"

    def __init__(self, iterable: Iterable):
        super().__init__()
        self._iterable = iterable
        self._it: Iterator | None = None

    def _advance(self) -> Any:
        if self._it is None:
            self._it = iter(self._iterable)
        try:
            return next(self._it)
        except StopIteration:
            return EXHAUSTED
        except PipelineError:
            raise
        except Exception as e:
            raise SourceError(f"source failed after {self.yielded} elements: {e}") from e


def from_iterable(iterable: Iterable) -> Producer:
    """Build a pipeline source over any iterable (or pass a Producer through)."""
    return _coerce(iterable)


def _iter_lines(text: str) -> Iterator[str]:
    # "\n" separated; a trailing "\r" is dropped and a final newline does not
    # produce an empty last line
    start = 0
    size = len(text)
    while start < size:
        end = text.find("\n", start)
        if end == -1:
            end = size
        line = text[start:end]
        if line.endswith("\r"):
            line = line[:-1]
        yield line
        start = end + 1


def lines(text: str) -> Source:
    """
    Build a source yielding the lines of already-read text content.

    Raises:
        StageError: If text is not a str
    """
    if not isinstance(text, str):
        raise StageError(
            f"lines() needs str content, got {type(text).__name__}; use decode_lines() for bytes"
        )
    source = Source(_iter_lines(text))
    source.kind = "lines"
    return source


def _iter_decoded(data: bytes, encoding: str) -> Iterator[str]:
    start = 0
    size = len(data)
    number = 0
    while start < size:
        end = data.find(b"\n", start)
        if end == -1:
            end = size
        raw = data[start:end]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        try:
            yield raw.decode(encoding)
        except UnicodeDecodeError as e:
            raise SourceError(f"line {number} is not valid {encoding}: {e.reason}") from e
        number += 1
        start = end + 1


def decode_lines(data: bytes, encoding: str = "utf-8") -> Source:
    """
    Build a source yielding decoded lines of raw bytes.

    Decoding happens line by line as the pipeline pulls; an undecodable line
    fails that pull with SourceError.
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise StageError(f"decode_lines() needs bytes, got {type(data).__name__}")
    source = Source(_iter_decoded(bytes(data), encoding))
    source.kind = "decode_lines"
    return source


# --------- stages ----------
class Stage(Producer):
    """A producer that transforms one upstream producer."""

    def __init__(self, upstream: Producer | Iterable):
        super().__init__()
        self._upstream = _coerce(upstream)
        self._upstream.claim(self)

    def upstreams(self) -> tuple[Producer, ...]:
        return (self._upstream,)


class _ClosureStage(Stage):
    """A stage that owns one pure closure."""

    def __init__(self, upstream: Producer | Iterable, fn: Closure | Callable):
        closure = _pure(fn, self.kind)
        super().__init__(upstream)
        self._closure = closure

    def _on_first_pull(self) -> None:
        self._closure.freeze()
        self._closure.bind()

    def closures(self) -> list[Closure]:
        return super().closures() + [self._closure]


class Map(_ClosureStage):
    kind = "map"

    def _advance(self) -> Any:
        item = self._upstream.pull()
        if item is EXHAUSTED:
            return EXHAUSTED
        return self._closure.invoke(item)


class Filter(_ClosureStage):
    """Yields upstream elements the predicate accepts; loops past the rest."""

    kind = "filter"

    def _advance(self) -> Any:
        while True:
            item = self._upstream.pull()
            if item is EXHAUSTED:
                return EXHAUSTED
            if self._closure.invoke(item):
                return item


class TakeWhile(_ClosureStage):
    kind = "take_while"

    def _advance(self) -> Any:
        item = self._upstream.pull()
        if item is EXHAUSTED or not self._closure.invoke(item):
            return EXHAUSTED
        return item


class Take(Stage):
    """
    Yields at most n upstream elements.

    After the n-th element the stage is exhausted and upstream is never
    pulled again.
    """

    kind = "take"

    def __init__(self, upstream: Producer | Iterable, n: int):
        remaining = _count(n, self.kind)
        super().__init__(upstream)
        self._remaining = remaining

    def _advance(self) -> Any:
        if self._remaining == 0:
            return EXHAUSTED
        item = self._upstream.pull()
        if item is EXHAUSTED:
            return EXHAUSTED
        self._remaining -= 1
        if self._remaining == 0:
            self.state = StageState.EXHAUSTED
        return item


class Skip(Stage):
    kind = "skip"

    def __init__(self, upstream: Producer | Iterable, n: int):
        to_skip = _count(n, self.kind)
        super().__init__(upstream)
        self._to_skip = to_skip

    def _advance(self) -> Any:
        while self._to_skip:
            self._to_skip -= 1
            if self._upstream.pull() is EXHAUSTED:
                return EXHAUSTED
        return self._upstream.pull()


class Enumerate(Stage):
    kind = "enumerate"

    def __init__(self, upstream: Producer | Iterable, start: int = 0):
        super().__init__(upstream)
        self._index = start

    def _advance(self) -> Any:
        item = self._upstream.pull()
        if item is EXHAUSTED:
            return EXHAUSTED
        pair = (self._index, item)
        self._index += 1
        return pair


class _PairStage(Producer):
    def __init__(self, first: Producer | Iterable, second: Producer | Iterable):
        super().__init__()
        self._first = _coerce(first)
        self._second = _coerce(second)
        if self._first is self._second:
            raise OwnershipError(f"{self.kind}() cannot consume the same producer twice")
        # both sides must be free before either is claimed
        self._first.check_claim(self)
        self._second.check_claim(self)
        self._first.claim(self)
        self._second.claim(self)

    def upstreams(self) -> tuple[Producer, ...]:
        return (self._first, self._second)


class Zip(_PairStage):
    """
    Pairs elements of two producers; the shorter one decides the length.

    The right side is not pulled once the left side is exhausted.
    """

    kind = "zip"

    def _advance(self) -> Any:
        left = self._first.pull()
        if left is EXHAUSTED:
            return EXHAUSTED
        right = self._second.pull()
        if right is EXHAUSTED:
            return EXHAUSTED
        return (left, right)


class Chain(_PairStage):
    kind = "chain"

    def _advance(self) -> Any:
        item = self._first.pull()
        if item is EXHAUSTED:
            return self._second.pull()
        return item
