"""
Mailbox Awaiter - block until messages arrive, without missing any.

The protocol is check-then-watch:

1. Read the mailbox. If anything is pending, drain and return it. No watch is
   armed in that case.
2. Otherwise arm a filesystem watch, then read again. A writer may have
   appended between the first read and the watch being armed, and only this
   second read can see it.
3. Each change notification (or, failing that, every ``poll_interval``) goes
   back to step 1, until messages show up, the timeout elapses or the wait is
   cancelled.
"""
import logging
import os
import threading
import time
from typing import Callable, ContextManager, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .mailbox import MailboxRepository
from .models import AwaitResult, AwaitState, Message

logger = logging.getLogger(__name__)

# Event types that mean the mailbox content may have changed. Opens and
# read-only closes are excluded: our own peeks would otherwise wake us.
CONTENT_EVENTS = frozenset({"created", "modified", "moved", "deleted"})

WatchFactory = Callable[[str], ContextManager[threading.Event]]


class _MailboxChangeHandler(FileSystemEventHandler):
    """Sets an event whenever the watched file is written or replaced."""

    def __init__(self, target: str, changed: threading.Event):
        super().__init__()
        self.target = target
        self.changed = changed

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in CONTENT_EVENTS:
            return
        paths = (event.src_path, getattr(event, "dest_path", ""))
        for path in paths:
            if path and os.path.abspath(os.fsdecode(path)) == self.target:
                self.changed.set()
                return


class MailboxWatch:
    """
    Watch a single file through its parent directory.

    Watching the directory rather than the file catches the atomic rename the
    store uses for writes, and works before the file exists.
    """

    def __init__(self, path: str):
        self.path = os.path.abspath(path)
        self.changed = threading.Event()
        self._observer = None

    def __enter__(self) -> threading.Event:
        directory = os.path.dirname(self.path)
        os.makedirs(directory, exist_ok=True)
        observer = Observer()
        observer.schedule(
            _MailboxChangeHandler(self.path, self.changed), directory, recursive=False
        )
        observer.start()
        self._observer = observer
        logger.debug("Watching %s", self.path)
        return self.changed

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            logger.debug("Stopped watching %s", self.path)


class MailboxAwaiter:
    """Blocking, timeout-bounded read of one agent's mailbox."""

    def __init__(
        self,
        repository: MailboxRepository,
        default_timeout: float = 30.0,
        poll_interval: float = 0.5,
        watch_factory: Optional[WatchFactory] = None,
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.repository = repository
        self.default_timeout = default_timeout
        self.poll_interval = poll_interval
        self.watch_factory = watch_factory or MailboxWatch
        self.state: Optional[AwaitState] = None
        # States visited during the most recent wait()
        self.history: List[AwaitState] = []

    def _enter(self, state: AwaitState):
        self.state = state
        self.history.append(state)

    def _check(self, agent_name: str) -> List[Message]:
        self._enter(AwaitState.CHECKING)
        if not self.repository.peek(agent_name):
            return []
        # Another reader may drain between our peek and drain; the caller
        # then simply keeps waiting.
        return self.repository.drain(agent_name)

    def wait(
        self,
        agent_name: str,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> AwaitResult:
        """
        Wait for at least one message for ``agent_name``.

        Args:
            agent_name: Mailbox to read
            timeout: Seconds to wait once watching; defaults to ``default_timeout``
            cancel: Optional event that aborts the wait when set

        Returns:
            AwaitResult in state DELIVERED (with messages), TIMED_OUT or
            CANCELLED (both with no messages)

        Raises:
            StoreWriteFailed: if draining the mailbox could not be persisted
        """
        if timeout is None:
            timeout = self.default_timeout
        self.history = []

        try:
            result = self._wait(agent_name, timeout, cancel)
        except KeyboardInterrupt:
            self._enter(AwaitState.CANCELLED)
            result = AwaitResult(AwaitState.CANCELLED)

        if result.delivered:
            logger.debug("Delivered %d message(s) to %s", len(result.messages), agent_name)
        elif result.timed_out:
            logger.info("No messages for %s after %.1fs", agent_name, timeout)
        else:
            logger.info("Wait for %s cancelled", agent_name)
        return result

    def _wait(self, agent_name: str, timeout: float, cancel: Optional[threading.Event]) -> AwaitResult:
        if cancel is not None and cancel.is_set():
            self._enter(AwaitState.CANCELLED)
            return AwaitResult(AwaitState.CANCELLED)

        messages = self._check(agent_name)
        if messages:
            self._enter(AwaitState.DELIVERED)
            return AwaitResult(AwaitState.DELIVERED, messages)

        with self.watch_factory(self.repository.path) as changed:
            self._enter(AwaitState.WATCHING)
            deadline = time.monotonic() + timeout
            while True:
                # Clear before reading: a write landing after the read sets it again.
                changed.clear()
                messages = self._check(agent_name)
                if messages:
                    self._enter(AwaitState.DELIVERED)
                    return AwaitResult(AwaitState.DELIVERED, messages)

                if cancel is not None and cancel.is_set():
                    self._enter(AwaitState.CANCELLED)
                    return AwaitResult(AwaitState.CANCELLED)

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._enter(AwaitState.TIMED_OUT)
                    return AwaitResult(AwaitState.TIMED_OUT)

                self._enter(AwaitState.WATCHING)
                changed.wait(min(remaining, self.poll_interval))
