# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-16
# Description: test_logging_utils.py
# -----------------------------------------------------------------------------
import logging
import uuid
from logging.handlers import RotatingFileHandler

import colorlog
import pytest

from utility.logging_utils import get_class_logger, get_logger


@pytest.fixture
def fresh_name():
    name = f"test-{uuid.uuid4().hex[:8]}"
    yield name
    logger = logging.getLogger(f"offline_rag.{name}")
    for h in list(logger.handlers):
        h.close()
        logger.removeHandler(h)


def test_logger_is_namespaced_and_does_not_propagate(fresh_name, monkeypatch):
    monkeypatch.delenv("RAG_LOG_TO_FILE", raising=False)
    monkeypatch.delenv("RAG_LOG_LEVEL", raising=False)

    logger = get_logger(fresh_name)

    assert logger.name == f"offline_rag.{fresh_name}"
    assert logger.propagate is False
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, colorlog.ColoredFormatter)


def test_repeated_calls_do_not_stack_handlers(fresh_name):
    first = get_logger(fresh_name)
    second = get_logger(fresh_name)
    assert first is second
    assert len(second.handlers) == 1


@pytest.mark.parametrize("value,expected", [("debug", logging.DEBUG), ("30", 30), ("chatty", logging.INFO)])
def test_level_comes_from_environment(fresh_name, monkeypatch, value, expected):
    monkeypatch.setenv("RAG_LOG_LEVEL", value)
    assert get_logger(fresh_name).level == expected


def test_file_output_is_opt_in(fresh_name, monkeypatch, tmp_path):
    log_file = tmp_path / "nested" / "rag.log"
    monkeypatch.setenv("RAG_LOG_TO_FILE", "yes")
    monkeypatch.setenv("RAG_LOG_FILE", str(log_file))
    monkeypatch.setenv("RAG_LOG_LEVEL", "INFO")

    logger = get_logger(fresh_name)
    logger.info("segment %d loaded", 7)
    file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
    for h in file_handlers:
        h.flush()

    assert len(file_handlers) == 1
    assert f"offline_rag.{fresh_name}" in log_file.read_text(encoding="utf-8")
    assert "segment 7 loaded" in log_file.read_text(encoding="utf-8")


def test_class_logger_name_includes_module_and_class():
    class Stand:
        pass

    Stand.__module__ = "vectorstore.VectorIndex"
    Stand.__name__ = "VectorIndex"

    assert get_class_logger(Stand).name == "offline_rag.vectorstore.VectorIndex.VectorIndex"
