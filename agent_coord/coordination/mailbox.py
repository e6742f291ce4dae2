"""
Mailbox Repository - one FIFO message queue per recipient agent.
"""
import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from .errors import MalformedRecord
from .models import Message
from .store import JsonStore

logger = logging.getLogger(__name__)


class MailboxRepository:
    """
    Per-agent message queues persisted as ``{agent: [message, ...]}``.

    Delivery is pull-based and fire-and-forget: ``send`` only guarantees the
    message was written, not that anyone will read it.
    """

    def __init__(self, store: JsonStore):
        self.store = store

    @property
    def path(self) -> str:
        return self.store.path

    def _parse_queue(self, agent_name: str, value: Any) -> List[Message]:
        if not isinstance(value, list):
            raise TypeError(f"expected a list of messages, got {type(value).__name__}")
        queue = []
        for index, item in enumerate(value):
            try:
                queue.append(Message.model_validate(item))
            except ValidationError as e:
                record = MalformedRecord(self.path, f"{agent_name}[{index}]", str(e), item)
                self.store.dropped.append(record)
                logger.warning("%s", record)
        return queue

    def _mailboxes(self, data: Dict[str, Any]) -> Dict[str, List[Message]]:
        return self.store.decode(data, self._parse_queue)

    @staticmethod
    def _serialize(mailboxes: Dict[str, List[Message]]) -> Dict[str, Any]:
        return {
            name: [message.to_entry() for message in queue]
            for name, queue in mailboxes.items()
        }

    def register(self, agent_name: str):
        """Make sure ``agent_name`` has a (possibly empty) mailbox."""
        if not agent_name:
            raise ValueError("agent_name must not be empty")

        def mutate(data):
            mailboxes = self._mailboxes(data)
            if agent_name in mailboxes:
                return None, False
            mailboxes[agent_name] = []
            return self._serialize(mailboxes), True

        if self.store.update(mutate):
            logger.debug("Registered mailbox for %s", agent_name)

    def send(self, from_agent: str, to_agent: str, body: str) -> Message:
        """
        Append a message to ``to_agent``'s queue.

        Raises:
            ValueError: if either agent name is empty
            StoreWriteFailed: if the message could not be persisted
        """
        if not from_agent:
            raise ValueError("from_agent must not be empty")
        if not to_agent:
            raise ValueError("to_agent must not be empty")
        message = Message(sender=from_agent, body=body)

        def mutate(data):
            mailboxes = self._mailboxes(data)
            mailboxes.setdefault(to_agent, []).append(message)
            return self._serialize(mailboxes), len(mailboxes[to_agent])

        depth = self.store.update(mutate)
        logger.info("%s -> %s (queue depth %d)", from_agent, to_agent, depth)
        return message

    def peek(self, agent_name: str) -> List[Message]:
        """Snapshot of the pending messages for ``agent_name``. Does not consume."""
        return self._mailboxes(self.store.read()).get(agent_name, [])

    def drain(self, agent_name: str) -> List[Message]:
        """
        Return the pending messages for ``agent_name`` and delete its mailbox.

        A crash after this returns but before the caller handles the messages
        loses them; there is no acknowledgement step.
        """
        def mutate(data):
            mailboxes = self._mailboxes(data)
            if agent_name not in mailboxes:
                return None, []
            messages = mailboxes.pop(agent_name)
            return self._serialize(mailboxes), messages

        messages = self.store.update(mutate)
        if messages:
            logger.info("Drained %d message(s) for %s", len(messages), agent_name)
        return messages

    def close(self, agent_name: str) -> bool:
        """Delete one mailbox, pending messages included."""
        def mutate(data):
            mailboxes = self._mailboxes(data)
            if agent_name not in mailboxes:
                return None, False
            del mailboxes[agent_name]
            return self._serialize(mailboxes), True

        return self.store.update(mutate)

    def close_all(self) -> int:
        """Delete every mailbox and return how many there were."""
        def mutate(data):
            mailboxes = self._mailboxes(data)
            if not mailboxes:
                return None, 0
            return {}, len(mailboxes)

        return self.store.update(mutate)

    def list_agents(self) -> List[str]:
        return sorted(self._mailboxes(self.store.read()))
