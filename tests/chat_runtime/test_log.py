"""Tests for loguru setup and stdlib interception."""

from __future__ import annotations

import logging

from loguru import logger

from branchgpt.chat_runtime.log import setup_logging


def test_stdlib_records_reach_loguru() -> None:
    setup_logging("debug")
    messages: list[str] = []
    sink_id = logger.add(messages.append, level="DEBUG", format="{message}")
    try:
        logging.getLogger("branchgpt.chat_runtime.execution.coordinator").info("Turn %s completed", "t1")
        logging.getLogger("httpx").info("GET https://example.invalid")
    finally:
        logger.remove(sink_id)

    assert any("Turn t1 completed" in m for m in messages)
    assert not any("example.invalid" in m for m in messages)
