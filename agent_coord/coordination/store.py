"""
Whole-document JSON persistence shared by the lock table and the mailbox.

Every mutation is "read everything, compute new everything, write everything".
``update`` wraps that cycle in an advisory ``FileLock`` so two processes can no
longer interleave their read and write halves and silently lose an update.
Plain ``read`` never takes the lock.
"""
import json
import logging
import os
import tempfile
from contextlib import ExitStack, contextmanager
from typing import Any, Callable, Dict, List, Tuple, TypeVar

from .errors import MalformedRecord, StoreUnavailable, StoreWriteFailed
from .file_lock import FileLock

logger = logging.getLogger(__name__)

T = TypeVar("T")
V = TypeVar("V")


class JsonStore:
    """A single JSON object kept at a well-known path."""

    def __init__(self, path: str, lock_timeout: float = 10.0):
        self.path = os.path.abspath(path)
        self.lock_timeout = lock_timeout
        # Entries dropped by the most recent decode(); kept for diagnostics.
        self.dropped: List[MalformedRecord] = []

    def _read_raw(self) -> Dict[str, Any]:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            raise StoreUnavailable(self.path, "file does not exist")
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise StoreUnavailable(self.path, str(e))

        if not isinstance(data, dict):
            raise StoreUnavailable(self.path, f"expected a JSON object, got {type(data).__name__}")
        return data

    def read(self) -> Dict[str, Any]:
        """Load the full document; a missing or unreadable file reads as empty."""
        try:
            return self._read_raw()
        except StoreUnavailable as e:
            if os.path.exists(self.path):
                logger.warning("Treating store as empty: %s", e)
            else:
                logger.debug("Treating store as empty: %s", e)
            return {}

    def write(self, data: Dict[str, Any]):
        """
        Replace the full document.

        The new content lands in a temp file next to the target and is renamed
        over it, so lock-free readers see either the old or the new document.

        Raises:
            StoreWriteFailed: if the document cannot be serialized or persisted
        """
        directory = os.path.dirname(self.path)
        tmp_path = None
        try:
            payload = json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False)
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=directory, prefix=f".{os.path.basename(self.path)}.", suffix=".tmp"
            )
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(payload)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except (OSError, TypeError, ValueError) as e:
            raise StoreWriteFailed(self.path, str(e)) from e
        finally:
            if tmp_path is not None:
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass

    @contextmanager
    def locked(self):
        """Hold the advisory store lock for the duration of the block."""
        with ExitStack() as stack:
            try:
                os.makedirs(os.path.dirname(self.path), exist_ok=True)
                stack.enter_context(FileLock(self.path, timeout=self.lock_timeout))
            except TimeoutError as e:
                raise StoreWriteFailed(
                    self.path, f"store lock not acquired within {self.lock_timeout}s"
                ) from e
            except OSError as e:
                raise StoreWriteFailed(self.path, f"cannot open lock file: {e}") from e
            yield

    def update(self, mutate: Callable[[Dict[str, Any]], Tuple[Dict[str, Any], T]]) -> T:
        """
        Run one read-modify-write cycle under the store lock.

        ``mutate`` receives the current document and returns ``(new_document,
        result)``. Returning ``None`` as the new document skips the write. If the
        write fails nothing is applied and ``StoreWriteFailed`` propagates.
        """
        with self.locked():
            new_data, result = mutate(self.read())
            if new_data is not None:
                self.write(new_data)
            return result

    def decode(self, data: Dict[str, Any], parse: Callable[[str, Any], V]) -> Dict[str, V]:
        """
        Validate each entry of a raw document with ``parse(key, value)``.

        An entry that fails is dropped, logged and remembered on ``self.dropped``;
        the remaining entries still load.
        """
        self.dropped = []
        decoded: Dict[str, V] = {}
        for key, value in data.items():
            try:
                decoded[key] = parse(key, value)
            except (TypeError, ValueError) as e:
                record = MalformedRecord(self.path, key, str(e), value)
                self.dropped.append(record)
                logger.warning("%s", record)
        return decoded
