"""Root conftest — shared pytest markers and global settings.

Markers
-------
unit        fast, no I/O, pure logic
integration requires Redis and Postgres (set PRESSOGRAPH_TEST_INTEGRATION=1)
slow        expected to take > 5 seconds
"""

from __future__ import annotations

import os
import pytest


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast, no I/O tests")
    config.addinivalue_line("markers", "integration: requires Redis / Postgres")
    config.addinivalue_line("markers", "slow: test is expected to take > 5 s")


# ── Skip guards ───────────────────────────────────────────────────────────────

requires_integration = pytest.mark.skipif(
    not os.getenv("PRESSOGRAPH_TEST_INTEGRATION"),
    reason="Set PRESSOGRAPH_TEST_INTEGRATION=1 to run integration tests",
)
