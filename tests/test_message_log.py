"""
Tests for friday.message_log (ordering, in-place updates, reset, persistence).
"""

import json

import pytest

from friday.history_store import HistoryStore
from friday.message_log import MessageLog
from friday.models import Message

WELCOME = "FRIDAY online. Secure channel active."


def _user(message_id, text="hi", ts=1):
    return Message(id=message_id, sender="user", text=text, timestamp=ts)


class TestMessageLogInvariants:
    def test_fresh_log_has_single_welcome(self, log):
        assert len(log) == 1
        welcome = log.messages[0]
        assert welcome.sender == "assistant"
        assert welcome.text == WELCOME
        assert welcome.timestamp is None

    def test_empty_seed_is_replaced_by_welcome(self, history):
        log = MessageLog(history, messages=[])
        assert len(log) == 1
        assert log.messages[0].text == WELCOME

    def test_append_preserves_arrival_order(self, log):
        log.append(_user("b", ts=20))
        log.append(_user("a", ts=10))
        assert [m.id for m in log.messages][1:] == ["b", "a"]

    def test_duplicate_id_rejected(self, log):
        log.append(_user("x"))
        with pytest.raises(ValueError):
            log.append(_user("x"))

    def test_reset_yields_one_welcome(self, log):
        for i in range(5):
            log.append(_user(f"m{i}"))
        log.reset()
        assert len(log) == 1
        assert log.messages[0].sender == "assistant"
        assert log.messages[0].text == WELCOME

    def test_generation_bumps_on_reset_and_replace(self, log):
        assert log.generation == 0
        log.append(_user("x"))
        assert log.generation == 0
        log.reset()
        assert log.generation == 1
        log.replace_all([_user("y")])
        assert log.generation == 2

    def test_replace_all_empty_seeds_welcome(self, log):
        log.replace_all([])
        assert len(log) == 1
        assert log.messages[0].text == WELCOME


class TestUpdateById:
    def test_missing_id_leaves_log_unchanged(self, log):
        log.append(_user("u1", "hello"))
        before = log.to_json()
        assert log.update_by_id("nope", lambda m: m.model_copy(update={"text": "changed"})) is False
        assert log.to_json() == before

    def test_repeated_updates_touch_only_target(self, log):
        log.append(_user("u1", "question"))
        log.append(Message(id="a1", sender="assistant", text="", timestamp=2))
        for partial in ("Hel", "Hello", "Hello!"):
            assert log.set_text("a1", partial)
        assert log.get("a1").text == "Hello!"
        assert log.get("u1").text == "question"
        assert [m.id for m in log.messages].count("a1") == 1

    def test_mutator_cannot_change_id(self, log):
        log.append(_user("u1"))
        log.update_by_id("u1", lambda m: m.model_copy(update={"id": "other", "text": "x"}))
        assert log.get("u1").text == "x"
        assert log.get("other") is None

    def test_image_messages_are_final(self, log):
        log.append(Message(id="img", sender="assistant", text="Generated", image="data:image/png;base64,AA==", timestamp=3))
        assert log.set_text("img", "edited") is False
        assert log.get("img").text == "Generated"


class TestPersistence:
    def test_every_mutation_is_snapshotted(self, storage, history):
        log = MessageLog(history)
        log.append(_user("u1", "persist me"))
        stored = json.loads(storage.get("test_history"))
        assert stored[-1] == {"id": "u1", "from": "user", "text": "persist me", "ts": 1}

        log.set_text("u1", "edited")
        stored = json.loads(storage.get("test_history"))
        assert stored[-1]["text"] == "edited"

    def test_reload_restores_log(self, storage, history):
        log = MessageLog(history)
        log.append(_user("u1", "again"))
        reloaded = MessageLog(HistoryStore(storage, key="test_history", welcome_text=WELCOME))
        assert [m.id for m in reloaded.messages] == [m.id for m in log.messages]

    def test_reset_clears_storage_key(self, storage, history):
        log = MessageLog(history)
        log.append(_user("u1"))
        log.reset()
        assert storage.get("test_history") is None

    def test_json_round_trip(self, log):
        log.append(_user("u1", "héllo"))
        log.append(Message(id="img", sender="assistant", text="pic", image="data:image/png;base64,AA==", timestamp=5))
        original = log.messages
        log.replace_all(MessageLog.from_json(log.to_json()))
        assert log.messages == original

    def test_from_json_rejects_non_list(self):
        with pytest.raises(ValueError):
            MessageLog.from_json('{"id": "x"}')
