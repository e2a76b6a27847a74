"""Tests for logging setup."""

from __future__ import annotations

import json
import logging

import pytest

from kubestress._internal.logging import TRACE, get_logger, setup_logging, verbosity_to_level


@pytest.mark.parametrize(
    ("verbosity", "level"),
    [(-1, logging.INFO), (0, logging.INFO), (1, logging.DEBUG), (2, TRACE), (5, TRACE)],
)
def test_verbosity_to_level(verbosity: int, level: int) -> None:
    assert verbosity_to_level(verbosity) == level


def test_trace_level_name() -> None:
    assert logging.getLevelName(TRACE) == "TRACE"


def test_get_logger_namespace() -> None:
    assert get_logger("engine.worker").name == "kubestress.engine.worker"


def test_setup_logging_is_idempotent() -> None:
    logger = setup_logging(logging.INFO)
    setup_logging(logging.DEBUG)

    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG
    assert logger.propagate is False


def test_text_format(capsys) -> None:
    setup_logging(logging.INFO)
    get_logger("engine.dispatcher").info("1 out of 2 requests failed")

    err = capsys.readouterr().err
    assert "[INFO ] kubestress.engine.dispatcher: 1 out of 2 requests failed" in err


def test_json_format(capsys) -> None:
    setup_logging(logging.DEBUG, json_format=True)
    get_logger("kube.pool").debug("Opened %d clients", 3)

    entry = json.loads(capsys.readouterr().err.strip())
    assert entry["level"] == "DEBUG"
    assert entry["logger"] == "kubestress.kube.pool"
    assert entry["message"] == "Opened 3 clients"
    assert "timestamp" in entry


def test_repeat_call_switches_format(capsys) -> None:
    setup_logging(logging.INFO)
    setup_logging(logging.INFO, json_format=True)
    get_logger("engine.runner").info("Finished")

    entry = json.loads(capsys.readouterr().err.strip())
    assert entry["message"] == "Finished"


def test_level_filters_trace(capsys) -> None:
    setup_logging(logging.DEBUG)
    get_logger("engine.worker").log(TRACE, "List call took: 1.000ms")
    assert capsys.readouterr().err == ""
