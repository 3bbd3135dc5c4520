"""
Pytest configuration and fixtures for music graph crawler tests.
"""

import pytest
from hypothesis import settings, Verbosity
import tempfile
import shutil
import os

# Configure Hypothesis for faster test runs
settings.register_profile("fast", max_examples=10, deadline=None, verbosity=Verbosity.quiet)
settings.register_profile("thorough", max_examples=100, deadline=None, verbosity=Verbosity.normal)

settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "fast"))


@pytest.fixture(scope="function")
def temp_cache_dir():
    """Create a temporary directory for a test response cache."""
    temp_dir = tempfile.mkdtemp(prefix="music_graph_crawler_test_")
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line("markers", "property: property-based tests")
    config.addinivalue_line("markers", "integration: tests that run the full worker pool")

    # Configure logging for tests
    import logging
    logging.getLogger("music_graph_crawler").setLevel(logging.WARNING)
    logging.getLogger("hypothesis").setLevel(logging.WARNING)


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers."""
    for item in items:
        # Mark property-based tests
        if any(marker.name == "given" for marker in item.iter_markers()) or hasattr(item.obj, "hypothesis"):
            item.add_marker(pytest.mark.property)

        if "router" in item.fspath.basename:
            item.add_marker(pytest.mark.integration)
