"""
Error taxonomy for the coordination store and its clients.

Only ``StoreWriteFailed`` ever reaches callers. ``StoreUnavailable`` and
``MalformedRecord`` are recovered inside the store; lock denials, timeouts and
cancellations are result values, see ``models``.
"""
from typing import Any, Optional


class CoordinationError(Exception):
    """Base class for coordination failures."""


class StoreUnavailable(CoordinationError):
    """The backing file is missing, unreadable or not a JSON object."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class StoreWriteFailed(CoordinationError):
    """A replacement document could not be persisted."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to write {path}: {reason}")
        self.path = path
        self.reason = reason


class MalformedRecord(CoordinationError):
    """A single entry of a loaded document failed validation and was dropped."""

    def __init__(self, path: str, key: str, reason: str, value: Optional[Any] = None):
        super().__init__(f"{path}: dropped malformed entry {key!r}: {reason}")
        self.path = path
        self.key = key
        self.reason = reason
        self.value = value
