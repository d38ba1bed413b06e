"""Test configuration helpers."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Repository root must be importable when the project is not installed.
ROOT = Path(__file__).resolve().parent.parent
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from voting.clock import ManualClock  # noqa: E402

START = 1_700_000_000


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START)
