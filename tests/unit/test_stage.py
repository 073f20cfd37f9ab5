"""
Tests for Lazy Sequence Nodes.

This test suite covers:
1. Laziness (building performs no pulls)
2. map / filter / take / enumerate / zip semantics
3. skip / take_while / chain
4. Exhaustion state machine
5. Single-consumer ownership
6. Line sources and decode failures
"""

import pytest

import minigrep
from minigrep.core.cell import Cell
from minigrep.core.closure import Closure
from minigrep.core.errors import (
    ClosureError,
    OwnershipError,
    SourceError,
    StageError,
)
from minigrep.core.stage import EXHAUSTED, StageState, decode_lines, from_iterable, lines


def pull_all(producer):
    items = []
    while (item := producer.pull()) is not EXHAUSTED:
        items.append(item)
    return items


class TestLaziness:
    """Building a pipeline must not pull anything."""

    def test_construction_performs_no_pulls(self):
        """Chaining stages does not pull from the source."""
        source = from_iterable(range(10))
        pipeline = (
            source.map(lambda x: x * 2)
            .filter(lambda x: x % 3 == 0)
            .enumerate()
            .take(2)
        )
        assert source.pulls == 0
        assert pipeline.pulls == 0

        assert pipeline.collect() == [(0, 0), (1, 6)]
        assert source.pulls > 0

    def test_generator_not_started_before_pull(self):
        """A generator source is not advanced until the first pull."""
        produced = []

        def gen():
            for word in ("rust", "safe", "fast"):
                produced.append(word)
                yield word

        pipeline = from_iterable(gen()).map(str.upper)
        assert produced == []

        assert pipeline.pull() == "RUST"
        assert produced == ["rust"]

    def test_none_is_an_ordinary_element(self):
        """None flows through as an element, not as exhaustion."""
        assert from_iterable([None, 0, ""]).collect() == [None, 0, ""]


class TestMap:
    def test_map_transforms_each_element(self):
        """map() applies the function to every element."""
        assert from_iterable([1, 2, 3]).map(lambda x: x + 1).collect() == [2, 3, 4]

    def test_map_pulls_once_per_pull(self):
        """One pull on map() is one pull upstream."""
        source = from_iterable([1, 2, 3])
        mapped = source.map(str)
        assert mapped.pull() == "1"
        assert source.pulls == 1

    def test_map_with_captured_state(self):
        """map() passes captured values to its closure."""
        scale = Closure(lambda x, factor: x * factor, captures={"factor": 10})
        assert from_iterable([1, 2]).map(scale).collect() == [10, 20]

    def test_effectful_closure_rejected(self):
        """map() refuses an effectful closure."""
        effect = Closure(print, effectful=True)
        with pytest.raises(StageError, match="side-effect free"):
            from_iterable([1]).map(effect)


class TestFilter:
    @pytest.mark.parametrize(
        "values",
        [[], [1], [2], list(range(20)), [4, 4, 3, 8, 1, 6]],
    )
    def test_filter_keeps_matching_subsequence_in_order(self, values):
        """filter() keeps exactly the accepted elements, in order."""

        def is_even(x):
            return x % 2 == 0

        assert from_iterable(values).filter(is_even).collect() == [
            v for v in values if is_even(v)
        ]

    def test_filter_loops_until_match(self):
        """filter() keeps pulling until an element is accepted."""
        source = from_iterable([1, 3, 5, 6, 7])
        evens = source.filter(lambda x: x % 2 == 0)
        assert evens.pull() == 6
        assert source.pulls == 4

    def test_filter_freezes_captured_state_on_first_pull(self):
        """Captured cells freeze when the stage is first pulled."""
        needle = Cell.copy("duct")
        stage = from_iterable(["productive"]).filter(
            Closure(lambda line, needle: needle in line, captures={"needle": needle})
        )
        assert not needle.frozen
        stage.pull()
        assert needle.frozen


class TestTake:
    @pytest.mark.parametrize("n", [0, 1, 3, 10])
    def test_take_returns_prefix_and_pulls_exactly_n(self, n):
        """take(n) yields the first n elements using n pulls."""
        values = list(range(10))
        source = from_iterable(values)
        assert source.take(n).collect() == values[:n]
        assert source.pulls == n

    def test_take_more_than_available(self):
        """take() on a short source yields everything."""
        source = from_iterable([1, 2, 3])
        assert source.take(5).collect() == [1, 2, 3]
        assert source.yielded == 3

    def test_take_never_pulls_upstream_after_nth_element(self):
        """take() stays exhausted without touching upstream."""
        source = from_iterable(range(100))
        first_two = source.take(2)
        assert first_two.pull() == 0
        assert first_two.pull() == 1
        assert first_two.state is StageState.EXHAUSTED

        for _ in range(5):
            assert first_two.pull() is EXHAUSTED
        assert source.pulls == 2
        assert source.state is StageState.ACTIVE

    def test_take_zero_never_pulls(self):
        """take(0) is exhausted before any pull."""
        source = from_iterable(range(3))
        assert source.take(0).pull() is EXHAUSTED
        assert source.pulls == 0

    def test_take_rejects_negative_count(self):
        """take() refuses a negative count."""
        with pytest.raises(StageError, match=">= 0"):
            from_iterable([]).take(-1)

    def test_take_rejects_non_int_count(self):
        """take() refuses a non-integer count."""
        with pytest.raises(StageError, match="must be an int"):
            from_iterable([]).take(1.5)


class TestEnumerate:
    def test_enumerate_pairs_from_zero(self):
        """enumerate() counts from zero by default."""
        values = ["a", "b", "c"]
        assert from_iterable(values).enumerate().collect() == [
            (0, "a"),
            (1, "b"),
            (2, "c"),
        ]

    def test_enumerate_custom_start(self):
        """enumerate() honors a custom start."""
        assert from_iterable("xy".split()).enumerate(1).collect() == [(1, "xy")]

    def test_enumerate_empty(self):
        """enumerate() over nothing yields nothing."""
        assert from_iterable([]).enumerate().collect() == []


class TestZip:
    @pytest.mark.parametrize(
        "left, right",
        [([1, 2, 3], ["a", "b"]), ([1], ["a", "b", "c"]), ([], [1]), ([1, 2], [3, 4])],
    )
    def test_zip_shorter_side_wins(self, left, right):
        """zip() stops with the shorter side."""
        pairs = from_iterable(left).zip(from_iterable(right)).collect()
        assert len(pairs) == min(len(left), len(right))
        assert pairs == list(zip(left, right))

    def test_zip_does_not_pull_right_after_left_exhausts(self):
        """zip() leaves the right side alone once the left is done."""
        left = from_iterable([])
        right = from_iterable([1, 2])
        assert left.zip(right).pull() is EXHAUSTED
        assert right.pulls == 0

    def test_zip_accepts_plain_iterable(self):
        """zip() wraps a plain iterable in a source."""
        assert from_iterable([1, 2]).zip(["a", "b"]).collect() == [(1, "a"), (2, "b")]

    def test_zip_rejects_raw_text(self):
        """zip() refuses a bare string."""
        with pytest.raises(StageError, match="use lines"):
            from_iterable([1]).zip("ab")

    def test_zip_with_itself_rejected(self):
        """A producer cannot be zipped with itself."""
        source = from_iterable([1, 2])
        with pytest.raises(OwnershipError):
            source.zip(source)


class TestOtherStages:
    def test_skip(self):
        """skip() drops a prefix."""
        assert from_iterable(range(5)).skip(2).collect() == [2, 3, 4]
        assert from_iterable(range(2)).skip(5).collect() == []

    def test_take_while_stops_at_first_failure(self):
        """take_while() ends at the first rejected element."""
        source = from_iterable([1, 2, 5, 1])
        assert source.take_while(lambda x: x < 3).collect() == [1, 2]
        assert source.pulls == 3

    def test_chain(self):
        """chain() yields the second producer after the first."""
        assert from_iterable([1]).chain([2, 3]).collect() == [1, 2, 3]

    def test_describe(self):
        """describe() names the stages from source to sink."""
        pipeline = lines("a").enumerate().filter(bool).take(1)
        assert pipeline.describe() == "lines -> enumerate -> filter -> take"
        assert from_iterable([1]).zip([2]).describe() == "zip(source, source)"


class TestExhaustion:
    def test_pull_after_exhaustion_is_exhausted_forever(self):
        """An exhausted producer never pulls again."""
        source = from_iterable([1])
        assert source.pull() == 1
        assert source.pull() is EXHAUSTED
        assert source.exhausted
        pulls = source.pulls

        for _ in range(3):
            assert source.pull() is EXHAUSTED
        assert source.pulls == pulls

    def test_exhausted_is_falsy_singleton(self):
        """EXHAUSTED is a falsy singleton."""
        assert not EXHAUSTED
        assert repr(EXHAUSTED) == "EXHAUSTED"
        assert type(EXHAUSTED)() is EXHAUSTED

    def test_closure_failure_exhausts_stage(self):
        """A stage whose closure raised is exhausted afterwards."""
        stage = from_iterable(["1", "x", "3"]).map(int)
        assert stage.pull() == 1
        with pytest.raises(ClosureError):
            stage.pull()
        assert stage.exhausted
        assert stage.pull() is EXHAUSTED


class TestOwnership:
    def test_producer_feeds_only_one_stage(self):
        """A producer can be consumed by one stage only."""
        source = from_iterable([1, 2])
        source.map(str)
        with pytest.raises(OwnershipError, match="already consumed by a map stage"):
            source.filter(bool)

    def test_iteration_claims_producer(self):
        """Iterating a producer claims it."""
        source = from_iterable([1, 2])
        assert list(source) == [1, 2]
        with pytest.raises(OwnershipError):
            source.map(str)

    def test_iter_returns_self(self):
        """iter() on a producer returns the producer."""
        source = from_iterable([1])
        assert iter(iter(source)) is source

    def test_non_iterable_rejected(self):
        """from_iterable() refuses non-iterables."""
        with pytest.raises(StageError, match="Producer or iterable"):
            minigrep.pipe.from_iterable(42)

    @pytest.mark.parametrize(
        "build",
        [
            lambda source: source.take(-1),
            lambda source: source.skip("2"),
            lambda source: source.map(Closure(print, effectful=True)),
            lambda source: source.filter(Closure(print, effectful=True)),
        ],
    )
    def test_rejected_stage_leaves_upstream_free(self, build):
        """A stage that fails validation does not claim its upstream."""
        source = from_iterable([1, 2])
        with pytest.raises(StageError):
            build(source)
        assert source.take(1).collect() == [1]

    def test_failed_zip_leaves_left_side_free(self):
        """zip() checks both sides before claiming either."""
        source = from_iterable([1, 2])
        other = from_iterable(["a", "b"])
        other.map(str.upper)
        with pytest.raises(OwnershipError, match="already consumed by a map stage"):
            source.zip(other)
        assert source.collect() == [1, 2]


class TestLineSources:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("", []),
            ("one", ["one"]),
            ("one\ntwo\n", ["one", "two"]),
            ("one\r\ntwo", ["one", "two"]),
            ("one\n\ntwo", ["one", "", "two"]),
            ("\n", [""]),
        ],
    )
    def test_lines(self, text, expected):
        """lines() splits text on line endings."""
        assert lines(text).collect() == expected

    def test_lines_rejects_bytes(self):
        """lines() points bytes at decode_lines()."""
        with pytest.raises(StageError, match="decode_lines"):
            lines(b"raw")

    def test_decode_lines(self):
        """decode_lines() decodes utf-8 by default."""
        assert decode_lines("héllo\nwörld\n".encode()).collect() == ["héllo", "wörld"]

    def test_decode_failure_is_a_source_error(self):
        """A bad line raises SourceError and ends the source."""
        source = decode_lines(b"fine\n\xff\xfe\nnever")
        assert source.pull() == "fine"
        with pytest.raises(SourceError, match="line 1 is not valid utf-8"):
            source.pull()
        assert source.pull() is EXHAUSTED

    def test_decode_with_other_encoding(self):
        """decode_lines() honors the given encoding."""
        assert decode_lines("café".encode("latin-1"), "latin-1").collect() == ["café"]
