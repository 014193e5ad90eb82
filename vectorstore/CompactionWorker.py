# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-12
# Description: CompactionWorker
# -----------------------------------------------------------------------------
import threading
from typing import Optional

from utility.logging_utils import get_class_logger
from vectorstore.VectorIndex import VectorIndex


class CompactionWorker:
    """Daemon thread that periodically compacts a VectorIndex."""

    def __init__(
            self,
            index: VectorIndex,
            *,
            interval_sec: float,
            min_tombstone_ratio: float = 0.2,
            logger=None,
    ):
        if interval_sec <= 0:
            raise ValueError("interval_sec must be > 0")
        self.index = index
        self.interval_sec = interval_sec
        self.min_tombstone_ratio = min_tombstone_ratio
        self.logger = logger or get_class_logger(self.__class__)

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run,
            name=f"compaction-{self.index.model_version}",
            daemon=True,
        )
        self._thread.start()
        self.logger.info(
            "Compaction worker started (interval=%.1fs, min_tombstone_ratio=%.2f)",
            self.interval_sec,
            self.min_tombstone_ratio,
        )

    def stop(self, timeout: float = 5.0) -> None:
        thread = self._thread
        if thread is None:
            return
        self._stop.set()
        thread.join(timeout=timeout)
        self._thread = None
        self.logger.info("Compaction worker stopped")

    def run_once(self) -> int:
        self.runs += 1
        return self.index.compact(min_tombstone_ratio=self.min_tombstone_ratio)

    def _run(self) -> None:
        while not self._stop.wait(self.interval_sec):
            try:
                rewritten = self.run_once()
                if rewritten:
                    self.logger.debug("Background compaction rewrote %d segments", rewritten)
            except Exception:
                self.logger.exception("Background compaction failed")
