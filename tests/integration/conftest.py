"""Shared fixtures for integration tests.

These hit the live NCBI and Anthropic services and are skipped unless
RUN_LIVE_TESTS=true is set in the environment or .env.
"""

import pytest

from anesthesia_hub.config import get_settings
from anesthesia_hub.data_sources.pubmed import PubMedClient


@pytest.fixture(autouse=True)
def _require_live_tests():
    if not get_settings().run_live_tests:
        pytest.skip("RUN_LIVE_TESTS not set; skipping live integration test")


@pytest.fixture
async def pubmed_client():
    """Create and tear down a PubMedClient."""
    c = PubMedClient()
    yield c
    await c.close()
