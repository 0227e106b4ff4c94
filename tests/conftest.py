"""Pytest configuration and shared fixtures for bencodec tests."""

from __future__ import annotations

import logging
import os
import random

import pytest


def pytest_configure(config):
    """Register all project markers to avoid warnings when ini isn't loaded."""
    markers = [
        ("unit", "marks tests as unit tests"),
        ("core", "marks tests as core functionality tests"),
        ("config", "marks tests as configuration tests"),
        ("observability", "marks tests as observability tests"),
        ("property", "marks tests as property-based tests"),
        ("slow", "marks tests as slow (deselect with '-m \"not slow\"')"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


@pytest.fixture(autouse=True)
def _clear_bencodec_env(monkeypatch):
    """Remove BENCODEC_* overrides so tests see default configuration."""
    for name in list(os.environ):
        if name.startswith("BENCODEC_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def cleanup_logging():
    """Clean up logging handlers after each test to prevent closed file errors."""
    yield
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
    logging.getLogger("bencodec").propagate = True


@pytest.fixture(autouse=True)
def reset_global_state():
    """Reset the global config manager and the shared type registry between tests."""
    yield
    from bencodec.config import config as config_module
    from bencodec.core.binding import default_registry

    config_module._config_manager = None
    default_registry.clear()


@pytest.fixture(autouse=True)
def seed_rng() -> None:
    """Deterministically seed RNGs to make tests reproducible."""
    seed = int(os.environ.get("TEST_SEED", "123456"))
    random.seed(seed)
