# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-12-21
# Description: test_health_service.py
# -----------------------------------------------------------------------------
import pytest

from services.HealthService import HealthService
from services.RetrievalService import RetrievalService


@pytest.fixture
def retrieval(cfg, provider):
    svc = RetrievalService(cfg=cfg, provider=provider)
    yield svc
    svc.close()


def test_all_checks_pass(retrieval):
    out = HealthService(retrieval_service=retrieval).deep_health()
    assert out["status"] == "ok"
    assert set(out["results"]) == {"embedding_health", "index_health", "search_health"}
    assert out["summary"] == {"total": 3, "passed": 3, "failed": 0}
    assert out["degraded"] is False


def test_chat_check_only_when_requested(retrieval):
    calls = []
    svc = HealthService(retrieval_service=retrieval, chat_healthcheck=lambda: calls.append(1) or True)

    assert "chat_health" not in svc.run_all()
    assert svc.run_all(include_chat=True)["chat_health"] is True
    assert calls == [1]


def test_raising_check_counts_as_failure(retrieval):
    def broken():
        raise RuntimeError("chat backend down")

    out = HealthService(retrieval_service=retrieval, chat_healthcheck=broken).deep_health(include_chat=True)
    assert out["status"] == "error"
    assert out["results"]["chat_health"] is False
    assert out["summary"]["failed"] == 1
