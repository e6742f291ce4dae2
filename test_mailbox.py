#!/usr/bin/env python3
"""
Mailbox Repository: FIFO queues, drain semantics, legacy message shapes.
"""
import json

import pytest
from pydantic import ValidationError

from agent_coord.coordination import MailboxRepository, Message


def _bodies(messages):
    return [(m.sender, m.body) for m in messages]


def test_register_is_idempotent(mailbox):
    mailbox.register("Bob")
    mailbox.send("Alice", "Bob", "hi")
    mailbox.register("Bob")

    assert _bodies(mailbox.peek("Bob")) == [("Alice", "hi")]
    assert mailbox.list_agents() == ["Bob"]


def test_send_appends_in_order(mailbox):
    mailbox.send("Alice", "Bob", "hi")
    mailbox.send("Carol", "Bob", "hello")
    mailbox.send("Alice", "Bob", "there")

    assert _bodies(mailbox.peek("Bob")) == [
        ("Alice", "hi"),
        ("Carol", "hello"),
        ("Alice", "there"),
    ]


def test_peek_does_not_consume(mailbox):
    mailbox.send("Alice", "Bob", "hi")
    assert len(mailbox.peek("Bob")) == 1
    assert len(mailbox.peek("Bob")) == 1
    assert mailbox.peek("nobody") == []


def test_drain_returns_and_removes(mailbox):
    mailbox.send("Alice", "Bob", "hi")
    mailbox.send("Alice", "Carol", "other")

    drained = mailbox.drain("Bob")

    assert _bodies(drained) == [("Alice", "hi")]
    assert mailbox.peek("Bob") == []
    assert "Bob" not in mailbox.list_agents()
    assert _bodies(mailbox.peek("Carol")) == [("Alice", "other")]
    assert mailbox.drain("Bob") == []


def test_stored_shape(mailbox, mailbox_store):
    sent = mailbox.send("Alice", "Bob", "hi")

    with open(mailbox_store.path, encoding="utf-8") as f:
        data = json.load(f)

    assert data == {"Bob": [{"from": "Alice", "body": "hi", "timestamp": data["Bob"][0]["timestamp"]}]}
    assert Message.model_validate(data["Bob"][0]) == sent


def test_legacy_messages_are_normalized(mailbox_store):
    with open(mailbox_store.path, "w", encoding="utf-8") as f:
        json.dump({
            "Bob": [
                "plain string from an old writer",
                {"from": "Alice", "message": "old field name", "timestamp": 1767268800000},
                {"from": "Alice", "body": "current"},
            ]
        }, f)

    messages = MailboxRepository(mailbox_store).peek("Bob")

    assert _bodies(messages) == [
        ("unknown", "plain string from an old writer"),
        ("Alice", "old field name"),
        ("Alice", "current"),
    ]
    assert messages[1].sent_at.year == 2026


def test_malformed_messages_are_dropped_individually(mailbox_store):
    with open(mailbox_store.path, "w", encoding="utf-8") as f:
        json.dump({
            "Bob": [{"from": "Alice", "body": "keep"}, {"body": "no sender"}, 42],
            "Carol": "not a list",
            "Dave": [{"from": "Eve", "body": "also kept"}],
        }, f)

    mailbox = MailboxRepository(mailbox_store)

    assert _bodies(mailbox.peek("Bob")) == [("Alice", "keep")]
    assert mailbox.peek("Carol") == []
    assert sorted(d.key for d in mailbox_store.dropped) == ["Bob[1]", "Bob[2]", "Carol"]
    assert _bodies(mailbox.peek("Dave")) == [("Eve", "also kept")]


def test_close_one_mailbox(mailbox):
    mailbox.register("Bob")
    mailbox.send("Alice", "Carol", "hi")

    assert mailbox.close("Bob") is True
    assert mailbox.close("Bob") is False
    assert mailbox.list_agents() == ["Carol"]


def test_close_all_mailboxes(mailbox):
    assert mailbox.close_all() == 0
    mailbox.register("Bob")
    mailbox.send("Alice", "Carol", "hi")

    assert mailbox.close_all() == 2
    assert mailbox.list_agents() == []


def test_render_for_display():
    assert Message(sender="Alice", body="hi").render() == "Alice: hi"


@pytest.mark.parametrize("from_agent, to_agent, field", [
    ("", "Bob", "from_agent"),
    ("Alice", "", "to_agent"),
])
def test_send_rejects_empty_agent_names(mailbox, mailbox_store, from_agent, to_agent, field):
    with pytest.raises(ValueError, match=f"{field} must not be empty") as excinfo:
        mailbox.send(from_agent, to_agent, "hi")

    assert not isinstance(excinfo.value, ValidationError)
    assert mailbox_store.read() == {}


def test_register_rejects_empty_name(mailbox):
    with pytest.raises(ValueError, match="agent_name must not be empty"):
        mailbox.register("")
    assert mailbox.list_agents() == []
