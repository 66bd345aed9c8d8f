"""Pair scoring, the inclusive score threshold and mutual top-K capping.

Scores are kept as parallel numpy arrays (left index, right index, score) of
the pairs that cleared the threshold, in left-major input order. Capping ranks
those arrays per side with a stable sort, so equal scores keep input order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from crosslink.exceptions import SIGNAL_ERRORS

from .types import ScoreResult

logger = logging.getLogger(__name__)

Scorer = Callable[[Any, Any], ScoreResult]
PairObserver = Callable[[int, int, ScoreResult], None]


@dataclass(frozen=True)
class ScoredPair:
    left_index: int
    right_index: int
    result: ScoreResult

    @property
    def score(self) -> float:
        return self.result.score


@dataclass
class ThresholdedPairs:
    """Pairs with ``score >= min_score`` plus how many pairs were scored.

    ``failures`` holds the index pairs whose scorer raised, with the error.
    """

    evaluated: int = 0
    left_indices: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    right_indices: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    scores: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=float))
    results: Dict[Tuple[int, int], ScoreResult] = field(default_factory=dict)
    failures: List[Tuple[int, int, Exception]] = field(default_factory=list)

    def __len__(self) -> int:
        return int(self.scores.size)

    def pair_at(self, position: int) -> ScoredPair:
        key = (int(self.left_indices[position]), int(self.right_indices[position]))
        return ScoredPair(key[0], key[1], self.results[key])


def score_pairs(
    left_signals: Sequence[Any],
    right_signals: Sequence[Any],
    scorer: Scorer,
    min_score: float,
    observer: Optional[PairObserver] = None,
) -> ThresholdedPairs:
    """Score every left × right pair and keep those at or above ``min_score``.

    A pair whose scorer raises one of ``SIGNAL_ERRORS`` is left out of the
    arrays and reported in ``failures``; the remaining pairs are still scored.
    """
    lefts: List[int] = []
    rights: List[int] = []
    scores: List[float] = []
    results: Dict[Tuple[int, int], ScoreResult] = {}
    failures: List[Tuple[int, int, Exception]] = []
    evaluated = 0

    for i, left in enumerate(left_signals):
        for j, right in enumerate(right_signals):
            try:
                result = scorer(left, right)
            except SIGNAL_ERRORS as exc:
                failures.append((i, j, exc))
                continue
            evaluated += 1
            if observer is not None:
                observer(i, j, result)
            if result.score >= min_score:
                lefts.append(i)
                rights.append(j)
                scores.append(result.score)
                results[(i, j)] = result

    return ThresholdedPairs(
        evaluated=evaluated,
        left_indices=np.asarray(lefts, dtype=np.int64),
        right_indices=np.asarray(rights, dtype=np.int64),
        scores=np.asarray(scores, dtype=float),
        results=results,
        failures=failures,
    )


def _rank_within_groups(groups: np.ndarray, tiebreak: np.ndarray, scores: np.ndarray) -> np.ndarray:
    """Rank of each entry inside its group: best score first, then lowest ``tiebreak``."""
    count = scores.size
    ranks = np.empty(count, dtype=np.int64)
    if count == 0:
        return ranks
    # lexsort keys are given last-key-major.
    order = np.lexsort((tiebreak, -scores, groups))
    sorted_groups = groups[order]
    positions = np.arange(count)
    starts = np.where(np.r_[True, sorted_groups[1:] != sorted_groups[:-1]], positions, 0)
    group_start = np.maximum.accumulate(starts)
    ranks[order] = positions - group_start
    return ranks


def mutual_top_k(pairs: ThresholdedPairs, max_per_left: int, max_per_right: int) -> List[ScoredPair]:
    """Keep pairs inside both the left's top ``max_per_left`` and the right's top ``max_per_right``.

    Returned pairs are ordered by left index, then by rank for that left.
    """
    if len(pairs) == 0:
        return []

    left_rank = _rank_within_groups(pairs.left_indices, pairs.right_indices, pairs.scores)
    right_rank = _rank_within_groups(pairs.right_indices, pairs.left_indices, pairs.scores)
    keep = np.flatnonzero((left_rank < max_per_left) & (right_rank < max_per_right))

    ordered = keep[np.lexsort((left_rank[keep], pairs.left_indices[keep]))]
    retained = [pairs.pair_at(int(position)) for position in ordered]
    logger.debug(
        "Mutual top-K kept %d of %d pairs (per_left=%d, per_right=%d)",
        len(retained),
        len(pairs),
        max_per_left,
        max_per_right,
    )
    return retained


__all__ = [
    "ScoredPair",
    "ThresholdedPairs",
    "mutual_top_k",
    "score_pairs",
]
