"""Shared fixtures for gridcalc tests."""

from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _detach_event_sink():
    """Keep events from one test out of another test's project directory."""
    from gridcalc.logging import reset_sink

    reset_sink()
    yield
    reset_sink()
