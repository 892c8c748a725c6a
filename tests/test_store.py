import pytest

from conftest import FakeHandle
from realtime.registry import Registry
from realtime.store import MessageStore


@pytest.fixture
def store():
    registry = Registry()
    registry.connect("f1", FakeHandle())
    registry.register_fellow("f1", "Ada")
    return MessageStore(registry)


def test_coach_messages_keep_insertion_order(store):
    first = store.append_coach_message("f1", "user", "hello")
    second = store.append_coach_message("f1", "admin", "hi")
    third = store.append_coach_message("f1", "user", "hello")
    assert store.get_coach_history("f1") == [first, second, third]
    assert first.to_wire() == {
        "from": "user",
        "text": "hello",
        "timestamp": first.timestamp,
        "userId": "f1",
        "userName": "Ada",
    }


def test_user_name_is_captured_at_write_time(store):
    before = store.append_coach_message("f1", "user", "one")
    store.registry.register_fellow("f1", "Ada L.")
    after = store.append_coach_message("f1", "user", "two")
    assert before.user_name == "Ada"
    assert after.user_name == "Ada L."


def test_assistant_messages_are_separate_from_coach_thread(store):
    store.append_coach_message("f1", "user", "to coach")
    msg = store.append_assistant_message("f1", "user", "to assistant")
    assert store.get_assistant_history("f1") == [msg]
    assert [m.text for m in store.get_coach_history("f1")] == ["to coach"]
    assert msg.to_wire() == {"role": "user", "text": "to assistant", "timestamp": msg.timestamp}


def test_unknown_fellow_is_a_silent_noop(store):
    assert store.append_coach_message("gone", "user", "x") is None
    assert store.append_assistant_message("gone", "user", "x") is None
    assert store.get_coach_history("gone") == []
    assert store.get_assistant_history("gone") == []
    assert store.get_coach_history(None) == []


def test_coach_connection_has_no_logs(store):
    store.registry.connect("c1", FakeHandle())
    store.registry.register_coach("c1")
    assert store.append_coach_message("c1", "user", "x") is None


def test_history_is_a_copy(store):
    store.append_coach_message("f1", "user", "hello")
    history = store.get_coach_history("f1")
    history.clear()
    assert len(store.get_coach_history("f1")) == 1


def test_logs_are_discarded_on_disconnect(store):
    store.append_coach_message("f1", "user", "hello")
    store.append_assistant_message("f1", "user", "hello")
    store.registry.unregister("f1")
    assert store.get_coach_history("f1") == []
    assert store.get_assistant_history("f1") == []
