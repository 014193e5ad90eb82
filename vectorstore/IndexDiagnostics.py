# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-06
# Description: IndexDiagnostics
# -----------------------------------------------------------------------------
import threading
from typing import Dict

COUNTERS = (
    "segments_loaded",
    "segments_evicted",
    "cache_hits",
    "corrupt_segments_skipped",
    "oom_retries",
    "partial_scans",
    "version_mismatch_filtered",
    "flushes",
    "compactions",
    "queries",
)


class IndexDiagnostics:
    """Process-local counters shared by the index and the search engine."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {name: 0 for name in COUNTERS}

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + amount

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)
