"""
Pytest configuration and fixtures for tool coordinator tests.
"""

import pytest

from helpers import Counter, FailingTool, LookupTool


@pytest.fixture
def lookup_tool():
    return LookupTool()


@pytest.fixture
def failing_tool():
    return FailingTool()


@pytest.fixture
def counter():
    return Counter()
