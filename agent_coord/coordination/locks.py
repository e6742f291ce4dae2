"""
Lock Manager - tracks which agent owns which resource path.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from .models import LockAcquired, LockDenied, LockRecord, utcnow
from .store import JsonStore

logger = logging.getLogger(__name__)


class LockManager:
    """
    Mutual exclusion over named resources, persisted as one lock table.

    Each public method is one self-contained read-modify-write of the table.
    Identity is always passed in; nothing here reads the environment.
    """

    def __init__(self, store: JsonStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or utcnow

    def _table(self, data: Dict[str, Any]) -> Dict[str, LockRecord]:
        return self.store.decode(data, LockRecord.from_entry)

    @staticmethod
    def _serialize(table: Dict[str, LockRecord]) -> Dict[str, Any]:
        return {path: record.to_entry() for path, record in table.items()}

    def acquire_or_validate(self, resource_path: str, agent_id: str) -> Union[LockAcquired, LockDenied]:
        """
        Take the lock on ``resource_path`` for ``agent_id``, or confirm it is already held.

        Re-acquiring a lock the agent already owns succeeds without a write.

        Returns:
            LockAcquired on success, LockDenied naming the current owner otherwise

        Raises:
            StoreWriteFailed: if a new lock could not be persisted
        """
        if not agent_id:
            raise ValueError("agent_id must not be empty")

        def mutate(data):
            table = self._table(data)
            existing = table.get(resource_path)
            if existing is not None:
                if existing.owner_id == agent_id:
                    return None, LockAcquired(record=existing, created=False)
                return None, LockDenied(
                    resource_path=resource_path,
                    held_by=existing.owner_id,
                    held_since=existing.acquired_at,
                )

            now = self.clock()
            record = LockRecord(
                resource_path=resource_path,
                owner_id=agent_id,
                acquired_at=now,
                last_modified=now,
            )
            table[resource_path] = record
            return self._serialize(table), LockAcquired(record=record, created=True)

        result = self.store.update(mutate)
        if isinstance(result, LockDenied):
            logger.info("Denied %s to %s: %s", resource_path, agent_id, result.reason(self.clock()))
        elif result.created:
            logger.info("%s acquired %s", agent_id, resource_path)
        return result

    def touch(self, resource_path: str, agent_id: str) -> bool:
        """Bump ``last_modified`` if ``agent_id`` owns the resource. Never grants ownership."""
        def mutate(data):
            table = self._table(data)
            existing = table.get(resource_path)
            if existing is None or existing.owner_id != agent_id:
                return None, False
            table[resource_path] = existing.model_copy(update={"last_modified": self.clock()})
            return self._serialize(table), True

        return self.store.update(mutate)

    def release(self, resource_path: str, agent_id: str) -> bool:
        """Drop a single lock. Only the owner may release it."""
        def mutate(data):
            table = self._table(data)
            existing = table.get(resource_path)
            if existing is None or existing.owner_id != agent_id:
                return None, False
            del table[resource_path]
            return self._serialize(table), True

        released = self.store.update(mutate)
        if released:
            logger.info("%s released %s", agent_id, resource_path)
        return released

    def release_all_owned_by(self, agent_id: str) -> int:
        """
        Remove every lock owned by ``agent_id`` and return how many were removed.

        Safe to call when nothing is held: returns 0 after a no-op write.
        """
        def mutate(data):
            table = self._table(data)
            remaining = {path: rec for path, rec in table.items() if rec.owner_id != agent_id}
            return self._serialize(remaining), len(table) - len(remaining)

        count = self.store.update(mutate)
        logger.info("Released %d lock(s) held by %s", count, agent_id)
        return count

    def get(self, resource_path: str) -> Optional[LockRecord]:
        return self._table(self.store.read()).get(resource_path)

    def list_locks(self) -> List[LockRecord]:
        table = self._table(self.store.read())
        return sorted(table.values(), key=lambda rec: rec.resource_path)
