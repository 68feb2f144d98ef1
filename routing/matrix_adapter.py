from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from .travel import OracleError, Point, TravelEstimate, TravelOracle

logger = logging.getLogger(__name__)

Pair = Tuple[Point, Point]
Key = Tuple[Point, Point, Optional[datetime]]


class CachingOracle:
    """
    Wraps any TravelOracle and remembers every answer for the lifetime of one run,
    so the same leg queried by sequencing and again by time propagation costs
    one request instead of two.

    Safe to share between estimate_pairs workers: each (origin, destination,
    instant) key is requested once, and concurrent callers of a key that is
    still in flight wait for that request. Failed requests are not cached.
    """
    def __init__(self, oracle: TravelOracle):
        self.oracle = oracle
        self._cache: Dict[Key, Future] = {}
        self._lock = threading.Lock()
        self.misses = 0

    def estimate(self, origin: Point, destination: Point, at: Optional[datetime] = None) -> TravelEstimate:
        key = (origin, destination, at)
        with self._lock:
            pending = self._cache.get(key)
            owner = pending is None
            if owner:
                pending = Future()
                self._cache[key] = pending
                self.misses += 1

        if owner:
            try:
                pending.set_result(self.oracle.estimate(origin, destination, at))
            except Exception as exc:
                self._forget([key], exc)
                raise
        return pending.result()

    def estimate_many(
        self,
        origins: Sequence[Point],
        destinations: Sequence[Point],
        at: Optional[datetime] = None,
    ) -> List[List[TravelEstimate]]:
        cells: Dict[Key, Future] = {}
        owned: Dict[Key, Future] = {}
        with self._lock:
            for origin in origins:
                for destination in destinations:
                    key = (origin, destination, at)
                    if key not in self._cache:
                        owned[key] = self._cache[key] = Future()
                    cells[key] = self._cache[key]
            self.misses += len(owned)

        # Fallback: fetch the whole block in one batch call if anything is missing.
        if owned:
            try:
                matrix = self.oracle.estimate_many(origins, destinations, at)
            except Exception as exc:
                self._forget(owned, exc)
                raise
            for origin, row in zip(origins, matrix):
                for destination, estimate in zip(destinations, row):
                    pending = owned.get((origin, destination, at))
                    if pending is not None and not pending.done():
                        pending.set_result(estimate)

            unanswered = [key for key, pending in owned.items() if not pending.done()]
            if unanswered:
                exc = OracleError("Travel oracle returned an incomplete matrix")
                self._forget(unanswered, exc)
                raise exc

        return [[cells[(origin, destination, at)].result() for destination in destinations] for origin in origins]

    def _forget(self, keys, exc: BaseException) -> None:
        """Drop failed keys so a later call retries them, and wake their waiters."""
        with self._lock:
            futures = [self._cache.pop(key) for key in keys if key in self._cache]
        for pending in futures:
            if not pending.done():
                pending.set_exception(exc)


def estimate_pairs(
    oracle: TravelOracle,
    pairs: Sequence[Pair],
    at: Optional[datetime] = None,
    *,
    max_workers: int = 1,
) -> List[TravelEstimate]:
    """
    Query the oracle for many independent (origin, destination) legs.

    With max_workers > 1 the requests fan out over a bounded thread pool.
    Results are always returned in the order of `pairs`, whatever order the
    requests complete in, so callers stay deterministic. The first failing
    request propagates its exception.
    """
    if not pairs:
        return []

    if max_workers <= 1 or len(pairs) == 1:
        return [oracle.estimate(origin, destination, at) for origin, destination in pairs]

    logger.debug("Fanning out %d oracle requests over %d workers", len(pairs), max_workers)
    with ThreadPoolExecutor(max_workers=min(max_workers, len(pairs))) as pool:
        return list(pool.map(lambda pair: oracle.estimate(pair[0], pair[1], at), pairs))
