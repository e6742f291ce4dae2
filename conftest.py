"""
Shared fixtures for the coordination tests.
"""
import threading
from datetime import datetime, timedelta, timezone

import pytest

from agent_coord.coordination import JsonStore, LockManager, MailboxRepository


class FakeClock:
    """Deterministic clock for lock ages."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingWatch:
    """Watch factory stand-in that counts arm/release and never fires on its own."""

    def __init__(self, on_enter=None):
        self.on_enter = on_enter
        self.changed = threading.Event()
        self.entered = 0
        self.exited = 0
        self.paths = []

    def __call__(self, path):
        self.paths.append(path)
        return self

    def __enter__(self):
        self.entered += 1
        if self.on_enter is not None:
            self.on_enter()
        return self.changed

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.exited += 1


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def lock_store(tmp_path):
    return JsonStore(str(tmp_path / "locks.json"), lock_timeout=2.0)


@pytest.fixture
def mailbox_store(tmp_path):
    return JsonStore(str(tmp_path / "mailbox.json"), lock_timeout=2.0)


@pytest.fixture
def locks(lock_store, clock):
    return LockManager(lock_store, clock=clock)


@pytest.fixture
def mailbox(mailbox_store):
    return MailboxRepository(mailbox_store)
