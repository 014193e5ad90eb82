# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-12-20
# Updated: 2026-02-14
# Description: HealthService.py
# -----------------------------------------------------------------------------
import logging
from typing import Callable, Dict, Optional

from embedding.VectorMath import is_normalized
from services.RetrievalService import RetrievalService
from utility.logging_utils import get_class_logger


class HealthService:
    """
    Smoke tests over the local retrieval stack. Each check returns True/False;
    an exception inside a check counts as a failure.

    Checks:
      - embedding: embed a probe text, vector must be unit length
      - index: the current version's manifest is readable
      - search: a probe retrieval completes without error
      - chat (optional): the generation collaborator answers a ping
    """

    def __init__(
            self,
            retrieval_service: RetrievalService,
            chat_healthcheck: Optional[Callable[[], bool]] = None,
            logger: Optional[logging.Logger] = None,
    ):
        self.retrieval_service = retrieval_service
        self.chat_healthcheck = chat_healthcheck
        self.logger = logger or get_class_logger(self.__class__)

    def run_all(self, include_chat: bool = False) -> Dict[str, bool]:
        self.logger.info("Starting smoke test suite (include_chat=%s)", include_chat)

        checks: Dict[str, Callable[[], bool]] = {
            "embedding_health": self._check_embedding,
            "index_health": self._check_index,
            "search_health": self._check_search,
        }
        if include_chat and self.chat_healthcheck is not None:
            checks["chat_health"] = self.chat_healthcheck

        results: Dict[str, bool] = {}
        for name, check in checks.items():
            try:
                results[name] = bool(check())
            except Exception as e:
                self.logger.exception("%s raised an exception: %s", name, e)
                results[name] = False
            self._log_result(name, results[name])

        passed = sum(1 for ok in results.values() if ok)
        self.logger.info("Smoke tests complete: %d/%d passed", passed, len(results))
        return results

    def deep_health(self, include_chat: bool = False) -> Dict[str, object]:
        results = self.run_all(include_chat=include_chat)
        total = len(results)
        passed = sum(1 for ok in results.values() if ok)
        return {
            "status": "ok" if passed == total else "error",
            "results": results,
            "summary": {"total": total, "passed": passed, "failed": total - passed},
            "model_version": self.retrieval_service.model_version,
            "degraded": self.retrieval_service.provider.is_degraded,
        }

    def _check_embedding(self) -> bool:
        vec = self.retrieval_service.provider.embed("retrieval healthcheck probe")
        return is_normalized(vec)

    def _check_index(self) -> bool:
        stats = self.retrieval_service.index_for(self.retrieval_service.model_version).stats()
        return not stats["corrupt_segments"]

    def _check_search(self) -> bool:
        self.retrieval_service.retrieve("retrieval healthcheck probe", k=1, token_budget=16)
        return True

    def _log_result(self, name: str, ok: bool) -> None:
        if ok:
            self.logger.info("%s: PASS", name)
        else:
            self.logger.error("%s: FAIL", name)
