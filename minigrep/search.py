"""
Search Assembly - Line search built on the lazy pipeline.

    search("duct", contents)
    # lines -> enumerate -> filter(contains "duct") -> collect

Results are (index, line) pairs in original order, where index is the
0-based position of the line in the content.
"""

import logging
from dataclasses import dataclass

from minigrep.core.cell import Cell, Memo
from minigrep.core.closure import Closure
from minigrep.core.stage import Producer, lines

logger = logging.getLogger(__name__)

Match = tuple[int, str]


@dataclass(frozen=True)
class SearchConfig:
    """
    Search options.

    Attributes:
        case_insensitive: Compare lower-cased line and pattern
        max_matches: Stop after this many matches (0 = unlimited)
    """

    case_insensitive: bool = False
    max_matches: int = 0

    def __post_init__(self):
        if not isinstance(self.case_insensitive, bool):
            raise TypeError(
                f"case_insensitive must be a bool, got {type(self.case_insensitive).__name__}"
            )
        if isinstance(self.max_matches, bool) or not isinstance(self.max_matches, int):
            raise TypeError(
                f"max_matches must be an int, got {type(self.max_matches).__name__}"
            )
        if self.max_matches < 0:
            raise ValueError(f"max_matches must be >= 0, got {self.max_matches}")


def _contains(entry: Match, needle: str) -> bool:
    return needle in entry[1]


def _contains_folded(entry: Match, needle: str, fold: Memo) -> bool:
    return fold(needle) in entry[1].lower()


def matcher(pattern: str, case_insensitive: bool = False) -> Closure:
    """Build the containment predicate for one pattern."""
    if not isinstance(pattern, str):
        raise TypeError(f"pattern must be a str, got {type(pattern).__name__}")
    if case_insensitive:
        # the folded pattern is computed once and shared by every call
        return Closure(
            _contains_folded,
            captures={"needle": Cell.copy(pattern), "fold": Cell.share(Memo(str.lower))},
        )
    return Closure(_contains, captures={"needle": Cell.copy(pattern)})


def build(pattern: str, contents: str, config: SearchConfig | None = None) -> Producer:
    """
    Build (without running) the search pipeline for pattern over contents.
    """
    config = config or SearchConfig()
    pipeline = lines(contents).enumerate().filter(
        matcher(pattern, config.case_insensitive)
    )
    if config.max_matches:
        pipeline = pipeline.take(config.max_matches)
    return pipeline


def search(
    pattern: str, contents: str, config: SearchConfig | None = None
) -> list[Match]:
    """
    Return every line of contents containing pattern.

    Raises:
        PipelineFailed: If the pipeline fails while running
    """
    matches = build(pattern, contents, config).collect()
    logger.debug("search %r: %d match(es)", pattern, len(matches))
    return matches


def search_case_sensitive(pattern: str, contents: str) -> list[Match]:
    return search(pattern, contents, SearchConfig(case_insensitive=False))


def search_case_insensitive(pattern: str, contents: str) -> list[Match]:
    return search(pattern, contents, SearchConfig(case_insensitive=True))


def first_match(
    pattern: str, contents: str, config: SearchConfig | None = None
) -> Match | None:
    """Return the first matching line, pulling no further than it."""
    return build(pattern, contents, config).find()
