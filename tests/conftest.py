"""Shared pytest configuration."""

from __future__ import annotations

import pytest

from preview_gc.config import get_settings


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
