"""Tests for logging setup and secret sanitization."""

import logging
from types import SimpleNamespace

import pytest
import structlog

from chatroute.logging_config import LOGGER_PREFIX, SUBSYSTEMS, sanitize_secrets, setup_logging


def test_phone_numbers_masked():
    """Phone numbers keep only their last four digits."""
    event = sanitize_secrets(None, "info", {"event": "x", "actor": "+15551234567"})
    assert event["actor"] == "...4567"


def test_bearer_token_redacted():
    """Bearer tokens are redacted."""
    event = sanitize_secrets(None, "info", {"header": "Bearer abcdefghijklmnopqrstuvwxyz"})
    assert event["header"] == "***REDACTED***"


def test_key_value_secrets_redacted():
    """token= values are redacted, other parameters kept."""
    event = sanitize_secrets(None, "info", {"url": "http://x/?token=abc123&page=2"})
    assert event["url"] == "http://x/?token=***REDACTED***&page=2"


def test_nested_values_sanitized():
    """Strings in lists and dicts are scrubbed too."""
    event = sanitize_secrets(None, "info", {
        "commands": ["+15551234567", 3],
        "extra": {"who": "+15557654321", "n": 1},
    })
    assert event["commands"] == ["...4567", 3]
    assert event["extra"] == {"who": "...4321", "n": 1}


@pytest.fixture
def restore_logging():
    yield
    structlog.reset_defaults()
    for name in [""] + [LOGGER_PREFIX] + [f"{LOGGER_PREFIX}.{s}" for s in SUBSYSTEMS]:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


def test_setup_logging_creates_subsystem_files(tmp_path, restore_logging):
    """setup_logging creates one file per subsystem with its level."""
    config = SimpleNamespace(
        log_dir=tmp_path / "logs",
        logging_level="info",
        logging_subsystem_levels={"dispatch": "DEBUG"},
        logging_max_file_size_mb=1,
        logging_backup_count=1,
    )
    setup_logging(config)

    assert logging.getLogger(f"{LOGGER_PREFIX}.dispatch").level == logging.DEBUG
    assert logging.getLogger(f"{LOGGER_PREFIX}.transport").level == logging.INFO
    for subsystem in SUBSYSTEMS:
        assert (tmp_path / "logs" / f"{subsystem}.log").exists()
    assert (tmp_path / "logs" / "chatroute.log").exists()
