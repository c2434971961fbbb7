"""Shared BDD fixtures for the purchase lifecycle."""

import pytest


@pytest.fixture
def packages():
    """Packages created by Given steps, keyed by name."""
    return {}


@pytest.fixture
def scenario_state():
    """Order id and the last ingestion result, carried between steps."""
    return {}
