# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-02
# Description: cancellation.py
# -----------------------------------------------------------------------------
import threading

from utility.errors import IngestionCancelled


class CancellationToken:
    """Thread-safe flag a caller flips to abort long-running ingestion."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, where: str = "") -> None:
        if self._event.is_set():
            raise IngestionCancelled(f"Ingestion cancelled{f' ({where})' if where else ''}")
