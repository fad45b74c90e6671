"""
Search Index - In-memory filtering over the aggregated workspace list.

Two modes:
- strict: case-insensitive literal substring of the decoded path or the
  display name, original order kept
- fuzzy: ordered-subsequence match of the query against the display name,
  ranked by match quality (descending, ties keep original order)

Case-folded keys are computed once per workspace when it is created, so a
filter pass is a plain scan with no per-item string folding.
"""

import logging
from collections.abc import Iterable

from .models import SearchMode, SearchResult, Workspace

logger = logging.getLogger(__name__)

# Characters after which a match counts as a word start
WORD_SEPARATORS = frozenset(" -_./\\")

MATCH_POINTS = 10
CONSECUTIVE_BONUS = 5
WORD_START_BONUS = 3


def fuzzy_match_positions(query_key: str, target_key: str) -> list[int] | None:
    """Find each query character in order, scanning the target left to right.

    Returns:
        Index of every matched character, or None if any is missing
    """
    positions: list[int] = []
    index = 0
    for char in query_key:
        index = target_key.find(char, index)
        if index < 0:
            return None
        positions.append(index)
        index += 1
    return positions


def fuzzy_score(query_key: str, target_key: str) -> float | None:
    """
    Score an ordered-subsequence match.

    Every matched character earns points; adjacent matches and matches at a
    word start earn bonuses. The offset of the first match and the gaps
    between matches are subtracted, so denser and earlier matches rank higher.

    Args:
        query_key: Case-folded query
        target_key: Case-folded candidate text

    Returns:
        Score, or None when the query is not a subsequence of the target
    """
    positions = fuzzy_match_positions(query_key, target_key)
    if positions is None:
        return None
    if not positions:
        return 0.0

    score = 0.0
    previous = -1
    for pos in positions:
        score += MATCH_POINTS
        if pos == previous + 1:
            score += CONSECUTIVE_BONUS
        if pos == 0 or target_key[pos - 1] in WORD_SEPARATORS:
            score += WORD_START_BONUS
        previous = pos

    gaps = positions[-1] - positions[0] + 1 - len(positions)
    return score - positions[0] - gaps


class SearchIndex:
    """Holds the latest merged workspace list and filters it."""

    def __init__(self, workspaces: Iterable[Workspace] = ()):
        self._workspaces: tuple[Workspace, ...] = tuple(workspaces)

    def replace(self, workspaces: Iterable[Workspace]) -> None:
        """Swap in a new result set (the previous tuple is left untouched)."""
        self._workspaces = tuple(workspaces)
        logger.debug(f"Search index now holds {len(self._workspaces)} workspace(s)")

    @property
    def workspaces(self) -> tuple[Workspace, ...]:
        return self._workspaces

    def __len__(self) -> int:
        return len(self._workspaces)

    def search(self, query: str, mode: SearchMode) -> list[SearchResult]:
        """
        Filter and rank workspaces.

        Args:
            query: Raw search text
            mode: Strict or fuzzy matching

        Returns:
            Matching results; scores are set in fuzzy mode only
        """
        workspaces = self._workspaces
        if not query or not query.strip():
            return [SearchResult(ws) for ws in workspaces]

        query_key = query.casefold()

        if mode == SearchMode.STRICT:
            return [
                SearchResult(ws)
                for ws in workspaces
                if query_key in ws.path_key or query_key in ws.name_key
            ]

        scored: list[SearchResult] = []
        for ws in workspaces:
            score = fuzzy_score(query_key, ws.name_key)
            if score is not None:
                scored.append(SearchResult(ws, score))

        # sort is stable, equal scores keep list order
        scored.sort(key=lambda result: -(result.score or 0.0))
        return scored

    def filter(self, query: str, mode: SearchMode) -> list[Workspace]:
        """Same as search() without the scores."""
        return [result.workspace for result in self.search(query, mode)]
