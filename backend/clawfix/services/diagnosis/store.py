"""
Result Store - bounded in-memory cache of analysis results

Keyed by fix id. When full, the oldest *inserted* entry is evicted;
reads do not refresh an entry's position (this is not an LRU).
Not durable: anything here is lost on restart.
"""

import threading
from collections import OrderedDict
from typing import Optional

from clawfix.core.logging_config import logger
from clawfix.services.diagnosis.result import AnalysisResult


class ResultStore:
    """
    Insertion-order bounded map of fix id -> AnalysisResult.

    Usage:
        store = ResultStore(capacity=1000)
        store.put(result)
        store.get(result.fix_id)
    """

    DEFAULT_CAPACITY = 1000

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._results: "OrderedDict[str, AnalysisResult]" = OrderedDict()
        self._lock = threading.Lock()
        self._stats = {
            "stored": 0,
            "evictions": 0,
        }

    def put(self, result: AnalysisResult) -> None:
        """Store a result, evicting the oldest entries past capacity"""
        evicted = []
        with self._lock:
            self._results[result.fix_id] = result
            self._stats["stored"] += 1
            while len(self._results) > self.capacity:
                oldest, _ = self._results.popitem(last=False)
                self._stats["evictions"] += 1
                evicted.append(oldest)

        for fix_id in evicted:
            logger.debug(f"[ResultStore] Evicted {fix_id}")

    def get(self, fix_id: str) -> Optional[AnalysisResult]:
        """Stored result, or None if unknown or evicted"""
        with self._lock:
            return self._results.get(fix_id)

    def __contains__(self, fix_id: object) -> bool:
        with self._lock:
            return fix_id in self._results

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def clear(self) -> None:
        with self._lock:
            self._results.clear()

    def get_stats(self) -> dict:
        with self._lock:
            return {
                **self._stats,
                "size": len(self._results),
                "capacity": self.capacity,
            }
