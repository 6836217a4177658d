import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Settings are read at import time; tests never open a connection
os.environ.setdefault("MYSQL_HOST", "localhost")
os.environ.setdefault("MYSQL_USER", "test")
os.environ.setdefault("MYSQL_PASSWORD", "test")
os.environ.setdefault("MYSQL_DATABASE", "community_test")

from community_search.config import PipelineConfig  # noqa: E402
from community_search.models.entities import MemberProfile  # noqa: E402


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, minutes: float = 0, seconds: float = 0) -> None:
        self.now_ms += int(minutes * 60_000 + seconds * 1000)


@pytest.fixture
def config():
    return PipelineConfig()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_profile():
    def _make(member_id: str, **fields) -> MemberProfile:
        return MemberProfile(member_id=member_id, **fields)
    return _make
