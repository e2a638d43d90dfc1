"""
Pytest configuration for the parley test suite.

Async tests are marked with ``@pytest.mark.anyio`` and run on asyncio only.
"""

import pytest


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
