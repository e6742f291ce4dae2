#!/usr/bin/env python3
"""
Whole-document JSON store: degraded reads, atomic writes, arbitration.
"""
import json
import os

import pytest

from agent_coord.coordination import FileLock, JsonStore, MalformedRecord, StoreWriteFailed


def test_missing_file_reads_as_empty(tmp_path):
    store = JsonStore(str(tmp_path / "nope" / "locks.json"))
    assert store.read() == {}


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]", "\"text\"", ""])
def test_unreadable_file_reads_as_empty(tmp_path, content):
    path = tmp_path / "locks.json"
    path.write_text(content, encoding="utf-8")
    assert JsonStore(str(path)).read() == {}


def test_write_replaces_whole_document(tmp_path):
    path = tmp_path / "sub" / "state.json"
    store = JsonStore(str(path))
    store.write({"b": 1, "a": [1, 2]})
    store.write({"c": True})

    assert json.loads(path.read_text(encoding="utf-8")) == {"c": True}
    assert store.read() == {"c": True}
    leftovers = [name for name in os.listdir(path.parent) if name.endswith(".tmp")]
    assert leftovers == []


def test_write_is_human_diffable(tmp_path):
    path = tmp_path / "state.json"
    JsonStore(str(path)).write({"z": 1, "a": 2})
    text = path.read_text(encoding="utf-8")
    assert text.index('"a"') < text.index('"z"')
    assert "\n  " in text


def test_write_failure_raises(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    store = JsonStore(str(blocker / "state.json"))

    with pytest.raises(StoreWriteFailed) as excinfo:
        store.write({"a": 1})
    assert excinfo.value.path == store.path


def test_unserializable_document_raises_write_failed(tmp_path):
    store = JsonStore(str(tmp_path / "state.json"))
    with pytest.raises(StoreWriteFailed):
        store.write({"a": object()})
    assert store.read() == {}


def test_update_persists_and_returns_result(tmp_path):
    store = JsonStore(str(tmp_path / "state.json"))
    store.write({"count": 1})

    result = store.update(lambda data: ({"count": data["count"] + 1}, "bumped"))

    assert result == "bumped"
    assert store.read() == {"count": 2}


def test_update_can_skip_write(tmp_path):
    path = tmp_path / "state.json"
    store = JsonStore(str(path))

    assert store.update(lambda data: (None, 42)) == 42
    assert not path.exists()


def test_update_gives_up_when_store_lock_is_held(tmp_path):
    store = JsonStore(str(tmp_path / "state.json"), lock_timeout=0.2)
    holder = FileLock(store.path)
    assert holder.acquire()
    try:
        with pytest.raises(StoreWriteFailed):
            store.update(lambda data: ({"x": 1}, None))
    finally:
        holder.release()

    assert store.read() == {}
    store.update(lambda data: ({"x": 1}, None))
    assert store.read() == {"x": 1}


def test_decode_drops_only_malformed_entries(tmp_path):
    store = JsonStore(str(tmp_path / "state.json"))

    def parse(key, value):
        if not isinstance(value, int):
            raise ValueError("not an int")
        return value

    decoded = store.decode({"a": 1, "b": "two", "c": 3}, parse)

    assert decoded == {"a": 1, "c": 3}
    assert len(store.dropped) == 1
    assert isinstance(store.dropped[0], MalformedRecord)
    assert store.dropped[0].key == "b"

    store.decode({"a": 1}, parse)
    assert store.dropped == []
def test_file_lock_is_exclusive_and_reusable(tmp_path):
    target = str(tmp_path / "state.json")
    first = FileLock(target, timeout=0.1)
    second = FileLock(target, timeout=0.1)

    assert first.acquire()
    assert not second.acquire()
    first.release()
    assert second.acquire()
    second.release()
    assert os.path.exists(f"{target}.lock")


def test_file_lock_context_manager_times_out(tmp_path):
    target = str(tmp_path / "state.json")
    with FileLock(target, timeout=0.1):
        with pytest.raises(TimeoutError):
            with FileLock(target, timeout=0.1):
                pass
    with FileLock(target, timeout=0.1):
        pass


def test_store_lock_is_released_after_failed_mutation(tmp_path):
    store = JsonStore(str(tmp_path / "state.json"), lock_timeout=0.2)

    def boom(data):
        raise RuntimeError("mutation failed")

    with pytest.raises(RuntimeError):
        store.update(boom)

    store.update(lambda data: ({"x": 1}, None))
    assert store.read() == {"x": 1}
