"""
File-backed coordination primitives: resource locks and agent mailboxes.
"""
from .awaiter import MailboxAwaiter, MailboxWatch
from .errors import CoordinationError, MalformedRecord, StoreUnavailable, StoreWriteFailed
from .file_lock import FileLock
from .locks import LockManager
from .mailbox import MailboxRepository
from .manager import CoordinationManager
from .models import (
    AwaitResult,
    AwaitState,
    LockAcquired,
    LockDenied,
    LockRecord,
    Message,
    format_duration,
)
from .store import JsonStore

__all__ = [
    'CoordinationManager',
    'JsonStore',
    'LockManager',
    'MailboxRepository',
    'MailboxAwaiter',
    'MailboxWatch',
    'FileLock',
    'LockRecord',
    'LockAcquired',
    'LockDenied',
    'Message',
    'AwaitState',
    'AwaitResult',
    'format_duration',
    'CoordinationError',
    'StoreUnavailable',
    'StoreWriteFailed',
    'MalformedRecord',
]
