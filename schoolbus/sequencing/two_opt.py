# schoolbus/sequencing/two_opt.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, List, Sequence, TypeVar

T = TypeVar("T")

# Maps a visiting order to a scalar cost (lower is better).
CostFunction = Callable[[Sequence[T]], float]

MAX_PASSES = 100


@dataclass(frozen=True)
class LocalSearchResult(Generic[T]):
    """
    Output of a 2-opt run.
    """
    sequence: List[T]
    cost: float
    initial_cost: float
    passes: int = 0
    improvements: int = 0


def two_opt(
    sequence: Sequence[T],
    cost: CostFunction,
    *,
    max_passes: int = MAX_PASSES,
) -> LocalSearchResult[T]:
    """
    First-improvement 2-opt over "reverse the subrange [i, j]" moves.

    Scans i ascending then j ascending; the first reversal that strictly
    lowers the cost is adopted and the scan restarts from i = 0. Stops when
    a whole scan finds nothing better or after `max_passes` scans.

    Deterministic: same seed + same cost function -> same answer.
    The returned cost is never above the seed's cost.
    """
    best = list(sequence)
    best_cost = cost(best)
    initial_cost = best_cost

    passes = 0
    improvements = 0
    improved = True

    while improved and passes < max_passes:
        improved = False
        passes += 1

        for i in range(len(best) - 1):
            for j in range(i + 1, len(best)):
                candidate = best[:i] + best[i:j + 1][::-1] + best[j + 1:]
                candidate_cost = cost(candidate)
                if candidate_cost < best_cost:
                    best = candidate
                    best_cost = candidate_cost
                    improvements += 1
                    improved = True
                    break
            if improved:
                break

    return LocalSearchResult(
        sequence=best,
        cost=best_cost,
        initial_cost=initial_cost,
        passes=passes,
        improvements=improvements,
    )
