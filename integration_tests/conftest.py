"""Pytest configuration for live Drive tests."""

import os

import pytest

from axiom_log.sync.transport import DriveTransport


def pytest_collection_modifyitems(items):
    """Mark every test here as integration and skip them without a token."""
    skip = pytest.mark.skip(reason="AXIOM_TEST_TOKEN not set")
    for item in items:
        if "integration_tests" not in str(item.path):
            continue
        item.add_marker(pytest.mark.integration)
        if not os.environ.get("AXIOM_TEST_TOKEN"):
            item.add_marker(skip)


@pytest.fixture
def folder_name():
    return os.environ.get("AXIOM_TEST_FOLDER", "Axiom-integration")


@pytest.fixture
async def transport():
    token = os.environ["AXIOM_TEST_TOKEN"]
    async with DriveTransport(lambda: token) as drive:
        yield drive
