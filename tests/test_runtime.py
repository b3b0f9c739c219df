"""In-process runtime and memory store."""
import threading
from uuid import uuid4

from conftest import AGENT_ID, FakeLLM
from mention_agent.models import MemoryEntry
from mention_agent.runtime import LocalRuntime, MemoryStore


def entry(conversation_id, created_at, text="hello", message_id=None, actor_id=None):
    return MemoryEntry(id=message_id or uuid4(), conversation_id=conversation_id, actor_id=actor_id or uuid4(),
                       agent_id=AGENT_ID, text=text, source="common", created_at=created_at)


class TestMemoryStore:
    def test_insert_if_absent(self):
        store = MemoryStore()
        first = entry(uuid4(), 1, "first")
        assert store.insert_if_absent(first) is True
        assert store.insert_if_absent(entry(first.conversation_id, 2, "second", message_id=first.id)) is False
        assert store.get(first.id).text == "first"
        assert len(store) == 1

    def test_concurrent_inserts_of_same_id(self):
        store = MemoryStore()
        e = entry(uuid4(), 1)
        results = []
        threads = [threading.Thread(target=lambda: results.append(store.insert_if_absent(e))) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results.count(True) == 1
        assert len(store) == 1

    def test_recent_is_per_conversation_and_ordered(self):
        store = MemoryStore()
        room, other = uuid4(), uuid4()
        for ts in (3, 1, 2):
            store.insert_if_absent(entry(room, ts, f"m{ts}"))
        store.insert_if_absent(entry(other, 0, "elsewhere"))
        assert [e.text for e in store.recent(room)] == ["m1", "m2", "m3"]
        assert [e.text for e in store.recent(room, limit=2)] == ["m2", "m3"]


class TestLocalRuntime:
    def test_state_names_participants(self):
        rt = LocalRuntime(AGENT_ID, FakeLLM())
        room, alice = uuid4(), uuid4()
        rt.ensure_connection(alice, room, "alice", "common")
        rt.create_memory(entry(room, 1, "hi @agent", actor_id=alice))
        reply = entry(room, 2, "hello alice", actor_id=AGENT_ID)
        rt.create_memory(reply)

        state = rt.compose_state(reply, {"agent_name": "agent"})
        assert state["recent_messages"] == "alice: hi @agent\nagent: hello alice"
        assert state["message_text"] == "hello alice"
        assert state["sender_name"] == "agent"

    def test_unknown_action_is_ignored(self):
        rt = LocalRuntime(AGENT_ID, FakeLLM())
        rt.process_actions(entry(uuid4(), 1), [], {}, "NOPE")

    def test_actions_match_case_insensitively(self):
        rt = LocalRuntime(AGENT_ID, FakeLLM())
        calls = []
        rt.register_action("follow_up", lambda memory, responses, state: calls.append(memory.id))
        m = entry(uuid4(), 1)
        rt.process_actions(m, [], {}, "FOLLOW_UP")
        assert calls == [m.id]

    def test_reads_wait_for_writers(self):
        store = MemoryStore()
        e = entry(uuid4(), 1)
        store.insert_if_absent(e)
        results = []
        with store._lock:
            readers = [threading.Thread(target=lambda: results.append(len(store))),
                       threading.Thread(target=lambda: results.append(store.get(e.id)))]
            for t in readers:
                t.start()
            for t in readers:
                t.join(timeout=0.2)
            assert results == []
        for t in readers:
            t.join()
        assert len(results) == 2
        assert 1 in results
        assert e in results
