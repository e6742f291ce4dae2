"""
Agent Coord - file-backed locks and mailboxes for cooperating agent processes.
"""

__version__ = "0.1.0"

from .config import Settings
from .coordination import (
    CoordinationManager,
    LockManager,
    MailboxAwaiter,
    MailboxRepository,
)

__all__ = [
    'Settings',
    'CoordinationManager',
    'LockManager',
    'MailboxRepository',
    'MailboxAwaiter',
]
