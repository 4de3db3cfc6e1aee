"""
Shared fixtures: a credential store in a temporary directory, a clipboard
that records writes, and a clock the tests move by hand.
"""

import pytest

from clipboard_access import ClipboardUnavailable
from session import SessionController, SessionState
from storage import CredentialStore


class FakeClipboard:
    """Records every write; raises ClipboardUnavailable when *fail* is set."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.writes = []

    def write_all(self, text: str) -> None:
        if self.fail:
            raise ClipboardUnavailable("no clipboard backend")
        self.writes.append(text)


class ManualClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store(tmp_path):
    return CredentialStore(str(tmp_path / "passwords.csv"))


@pytest.fixture
def clipboard():
    return FakeClipboard()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def controller(store, clipboard, clock):
    return SessionController(store, clipboard, clock=clock, status_seconds=3.0)


@pytest.fixture
def state():
    return SessionState.initial()
