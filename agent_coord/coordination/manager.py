"""
Wiring of the lock table, mailbox and awaiter from one set of settings.
"""
from typing import Optional

from ..config import Settings
from .awaiter import MailboxAwaiter, WatchFactory
from .locks import LockManager
from .mailbox import MailboxRepository
from .store import JsonStore


class CoordinationManager:
    """
    Entry point for a single agent process.
    Every component goes through the shared files; nothing is cached between calls.
    """

    def __init__(self, settings: Optional[Settings] = None, watch_factory: Optional[WatchFactory] = None):
        self.settings = settings or Settings()

        self.lock_store = JsonStore(self.settings.locks_path, self.settings.store_lock_timeout)
        self.mailbox_store = JsonStore(self.settings.mailbox_path, self.settings.store_lock_timeout)

        self.locks = LockManager(self.lock_store)
        self.mailbox = MailboxRepository(self.mailbox_store)
        self.awaiter = MailboxAwaiter(
            self.mailbox,
            default_timeout=self.settings.await_timeout,
            poll_interval=self.settings.poll_interval,
            watch_factory=watch_factory,
        )

    @classmethod
    def at(cls, coordination_dir: str, **overrides) -> 'CoordinationManager':
        """Build a manager rooted at ``coordination_dir``, ignoring the environment's location."""
        return cls(Settings(coordination_dir=coordination_dir, **overrides))
