"""
Pytest configuration and shared fixtures for the isostencil test suite.

This module provides common fixtures, test configuration, and utilities
used across the entire test suite.
"""

import pytest

from isostencil.catalog import load_catalog
from isostencil.config import ExecutionConfig, VerificationConfig

# =============================================================================
# Test Configuration
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (slower, cross-component)")
    config.addinivalue_line("markers", "slow: Slow tests (may take >10 seconds)")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test paths."""
    for item in items:
        test_path = str(item.fspath)

        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)


# =============================================================================
# Catalog Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def catalog():
    """The catalog shipped with the package."""
    return load_catalog()


@pytest.fixture(scope="session")
def laplacian_2d_family(catalog):
    """Laplacian 2D O(h^2): the smallest family, used for fast end-to-end checks."""
    return catalog.family("Laplacian", 2, 2)


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def sequential_config():
    """Run configuration executing checks in the calling thread."""
    return VerificationConfig(execution=ExecutionConfig(mode="sequential"))
