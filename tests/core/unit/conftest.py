"""Unit test configuration."""

import logging
import os
import tempfile
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Point file-backed settings at a temporary directory for each test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        overrides = {
            "PREVIEW_LOCAL_PATH": str(Path(tmpdir) / "previews"),
            "STORAGE_LOCAL_PATH": str(Path(tmpdir) / "media"),
            "STORAGE_PUBLIC_URL": "http://testserver",
            "API_BASE_URL": "http://api.test/api/v1",
        }
        previous = {key: os.environ.get(key) for key in overrides}
        os.environ.update(overrides)

        # Clear the cached settings so it picks up the new env vars
        from gallerysync.config import get_settings

        get_settings.cache_clear()

        yield Path(tmpdir)

        for key, value in previous.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        get_settings.cache_clear()


@pytest.fixture(autouse=True)
def restore_event_logger():
    """Undo handler changes made by tests that configure logging."""
    logger = logging.getLogger("gallerysync.events")
    handlers, propagate = list(logger.handlers), logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.propagate = propagate
