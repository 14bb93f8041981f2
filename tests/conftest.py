from __future__ import annotations

from pathlib import Path

import pytest

from newstype.core.storage import LocalStore


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.time = start

    def now(self) -> float:
        return self.time

    def advance(self, seconds: float) -> None:
        self.time += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def local_store(tmp_path: Path) -> LocalStore:
    """LocalStore backed by a temp file so tests don't touch ~/.newstype."""
    return LocalStore(tmp_path / "storage.json")
