"""
Advisory file locking used to serialize read-modify-write cycles on a store.
"""
import fcntl
import logging
import time
from typing import Optional, TextIO

logger = logging.getLogger(__name__)


class FileLock:
    """
    OS-level exclusive lock on a sibling ``<path>.lock`` file using fcntl.
    Provides exclusive access across processes sharing the filesystem.
    """

    def __init__(self, file_path: str, timeout: float = 10.0, retry_interval: float = 0.05):
        """
        Initialize file lock.

        Args:
            file_path: Path to the file being guarded
            timeout: Maximum time to wait for lock acquisition (seconds)
            retry_interval: Delay between lock attempts (seconds)
        """
        self.file_path = file_path
        self.timeout = timeout
        self.retry_interval = retry_interval
        self.lock_file_path = f"{file_path}.lock"
        self.lock_fd: Optional[TextIO] = None

    def acquire(self) -> bool:
        """
        Acquire the file lock, waiting up to ``timeout``.

        Returns:
            True if lock acquired, False otherwise
        """
        if self.lock_fd is not None:
            return True

        self.lock_fd = open(self.lock_file_path, 'a')

        deadline = time.monotonic() + self.timeout
        while True:
            try:
                fcntl.flock(self.lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                return True
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    self.lock_fd.close()
                    self.lock_fd = None
                    logger.debug("Gave up waiting for %s", self.lock_file_path)
                    return False
                time.sleep(self.retry_interval)

    def release(self):
        """Release the file lock."""
        if self.lock_fd is not None:
            try:
                fcntl.flock(self.lock_fd, fcntl.LOCK_UN)
                self.lock_fd.close()
            finally:
                # Never unlinked: waiters may already hold this inode.
                self.lock_fd = None

    def __enter__(self):
        if not self.acquire():
            raise TimeoutError(f"Could not acquire lock for {self.file_path}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

    def __del__(self):
        self.release()

