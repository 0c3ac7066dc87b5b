"""Shared fixtures."""

from __future__ import annotations

import pytest

from mirror.config import cfg


@pytest.fixture(autouse=True)
def reset_cfg():
    """Every test starts from default config."""
    cfg.reload({}, validate=False)
    yield
    cfg.reload({}, validate=False)
