import threading

import pytest

from ragchat.core.models.chat import ChatMessage, Role
from ragchat.core.services.conversation_store import ConversationStore


def _msg(content, role=Role.USER):
    return ChatMessage(role=role, content=content)


def test_append_creates_and_orders(store):
    store.append("c1", _msg("a"))
    store.append("c1", _msg("b", Role.ASSISTANT))

    assert [m.content for m in store.history("c1")] == ["a", "b"]
    assert "c1" in store
    assert len(store) == 1


def test_history_returns_copy(store):
    store.append("c1", _msg("a"))

    history = store.history("c1")
    history.append(_msg("tampered"))

    assert [m.content for m in store.history("c1")] == ["a"]


def test_unknown_and_empty_ids(store):
    store.append("", _msg("ignored"))

    assert store.history("missing") == []
    assert store.history("") == []
    assert len(store) == 0


def test_end_discards_history(store):
    store.append("c1", _msg("a"))
    store.append("c2", _msg("b"))

    store.end("c1")
    store.end("never-started")

    assert "c1" not in store
    assert store.history("c2")[0].content == "b"


def test_invalid_shard_count():
    with pytest.raises(ValueError):
        ConversationStore(shards=0)


def test_concurrent_appends_are_not_lost():
    store = ConversationStore(shards=2)

    def worker(conversation_id):
        for i in range(200):
            store.append(conversation_id, _msg(str(i)))

    threads = [threading.Thread(target=worker, args=(f"c{n % 3}",)) for n in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(len(store.history(f"c{n}")) for n in range(3)) == 1200
    for n in range(3):
        assert len(store.history(f"c{n}")) == 400


def test_unencodable_id_does_not_break_sharding(store):
    store.append("\ud800", _msg("a"))

    assert [m.content for m in store.history("\ud800")] == ["a"]


def test_other_shard_not_blocked_by_held_lock():
    store = ConversationStore(shards=4)
    busy = "c-busy"
    other = next(
        f"c-{i}" for i in range(100) if store._shard(f"c-{i}") is not store._shard(busy)
    )

    with store._shard(busy).lock:
        writer = threading.Thread(target=store.append, args=(other, _msg("x")))
        writer.start()
        writer.join(timeout=2)
        assert not writer.is_alive()

    assert [m.content for m in store.history(other)] == ["x"]
