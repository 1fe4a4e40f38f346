"""
Session state machine: start, data operations, close and destroy.
"""

import logging

import pytest

from harrier.sessions.core import (
    Session,
    SessionFailure,
    SessionResult,
    SessionState,
)
from harrier.sessions.faults import (
    SessionAlreadyStartedFault,
    SessionEncodingFault,
    SessionNotActiveFault,
    SessionPreconditionFault,
    SessionStoreUnavailableFault,
    SessionValueFault,
)
from harrier.sessions.serializers import JsonSessionSerializer
from harrier.sessions.store import FileStore, MemoryStore

from tests.conftest import FlakyStore, sequential_ids


# ============================================================================
# start()
# ============================================================================

class TestStart:

    @pytest.mark.asyncio
    async def test_start_without_id_generates_one(self, store):
        session = Session(store)
        result = await session.start()

        assert result
        assert result.reason is None
        assert len(session.id) == 32
        assert session.state is SessionState.ACTIVE
        assert session.started is True
        assert session.to_dict() == {}

    @pytest.mark.asyncio
    async def test_start_with_unknown_id_gives_empty_data(self, store):
        session = Session(store)
        assert await session.start("abc")
        assert session.id == "abc"
        assert session.keys() == []

    @pytest.mark.asyncio
    async def test_start_loads_existing_payload(self, store):
        await store.save("abc", {"user_id": 42, "roles": ["admin"]})

        session = Session(store)
        assert await session.start("abc")
        assert session.get("user_id") == 42
        assert session.get("roles") == ["admin"]

    @pytest.mark.asyncio
    async def test_start_twice_fails_and_keeps_first_state(self, store):
        session = Session(store)
        await session.start("abc")
        session.set("k", "v")

        result = await session.start("other")

        assert not result
        assert result.reason is SessionFailure.PRECONDITION
        assert isinstance(result.fault, SessionAlreadyStartedFault)
        assert session.id == "abc"
        assert session.get("k") == "v"
        assert session.state is SessionState.ACTIVE

    @pytest.mark.asyncio
    async def test_load_failure_leaves_session_idle(self, flaky_store):
        flaky_store.fail_load = True
        session = Session(flaky_store)

        result = await session.start("abc")

        assert not result
        assert result.reason is SessionFailure.STORE_UNAVAILABLE
        assert isinstance(result.fault, SessionStoreUnavailableFault)
        assert session.state is SessionState.IDLE
        assert session.id is None
        with pytest.raises(SessionNotActiveFault):
            session.get("k")

    @pytest.mark.asyncio
    async def test_failed_start_can_be_retried(self, flaky_store):
        flaky_store.fail_load = True
        session = Session(flaky_store)
        assert not await session.start("abc")

        flaky_store.fail_load = False
        assert await session.start("abc")
        assert session.started

    @pytest.mark.asyncio
    async def test_custom_id_factory(self, store):
        session = Session(store, id_factory=sequential_ids("sid"))
        await session.start()
        assert session.id == "sid-1"


# ============================================================================
# Data operations
# ============================================================================

class TestDataOperations:

    @pytest.mark.asyncio
    async def test_set_get_has_unset(self, store):
        session = Session(store)
        await session.start()

        session.set("user_id", 42)
        assert session.has("user_id")
        assert session.get("user_id") == 42

        session.unset("user_id")
        assert not session.has("user_id")
        assert session.get("user_id", "gone") == "gone"

    @pytest.mark.asyncio
    async def test_get_returns_default_for_missing_keys(self, store):
        session = Session(store)
        await session.start()

        assert session.get("never") is None
        assert session.get("never", 7) == 7

    @pytest.mark.asyncio
    async def test_unset_missing_key_is_noop(self, store):
        session = Session(store)
        await session.start()
        session.unset("never")
        assert session.keys() == []

    @pytest.mark.asyncio
    async def test_clear_keeps_session_alive(self, store):
        session = Session(store)
        await session.start("abc")
        session.set("a", 1)
        session.set("b", 2)

        session.clear()

        assert session.keys() == []
        assert session.id == "abc"
        assert session.started

    @pytest.mark.asyncio
    async def test_mapping_protocol(self, store):
        session = Session(store)
        await session.start()

        session["cart"] = [1, 2]
        assert "cart" in session
        assert session["cart"] == [1, 2]
        assert dict(session.items()) == {"cart": [1, 2]}

        del session["cart"]
        assert "cart" not in session
        with pytest.raises(KeyError):
            session["cart"]

    @pytest.mark.asyncio
    async def test_empty_session_is_truthy(self, store):
        session = Session(store)
        await session.start()
        assert session

    @pytest.mark.asyncio
    async def test_nested_values_accepted(self, store):
        session = Session(store)
        await session.start()

        session.set("prefs", {"theme": "dark", "langs": ["en", "fr"], "beta": None})
        session.set("ratio", 0.5)
        session.set("flag", False)

        assert session.get("prefs")["langs"] == ["en", "fr"]

    @pytest.mark.asyncio
    async def test_tuples_stored_as_lists(self, store):
        session = Session(store)
        await session.start()
        session.set("point", (1, 2))
        assert session.get("point") == [1, 2]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [
        object(),
        {1: "int key"},
        {"nested": {"bad": {1, 2}}},
        [b"bytes"],
    ])
    async def test_unsupported_values_rejected(self, store, value):
        session = Session(store)
        await session.start()

        with pytest.raises(SessionValueFault):
            session.set("k", value)
        assert not session.has("k")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", [1, 2.5, None, ("a", "b")])
    async def test_non_string_keys_rejected(self, store, key):
        session = Session(store)
        await session.start()

        with pytest.raises(SessionValueFault):
            session.set(key, "v")
        with pytest.raises(SessionValueFault):
            session[key] = "v"
        assert session.to_dict() == {}

    @pytest.mark.asyncio
    async def test_string_keys_round_trip_through_file_store(self, tmp_path):
        store = FileStore(tmp_path)
        session = Session(store)
        await session.start()
        session.set("1", "v")
        await session.close()

        resumed = Session(store)
        await resumed.start(session.id)
        assert resumed.get("1") == "v"

    @pytest.mark.asyncio
    async def test_to_dict_is_a_copy(self, store):
        session = Session(store)
        await session.start()
        session.set("cart", [1])

        snapshot = session.to_dict()
        snapshot["cart"].append(2)

        assert session.get("cart") == [1]

    @pytest.mark.parametrize("call", [
        lambda s: s.get("k"),
        lambda s: s.set("k", "v"),
        lambda s: s.unset("k"),
        lambda s: s.has("k"),
        lambda s: s.clear(),
        lambda s: s.keys(),
        lambda s: s.to_dict(),
        lambda s: s["k"],
        lambda s: "k" in s,
    ])
    def test_data_ops_before_start_raise(self, store, call):
        session = Session(store)
        with pytest.raises(SessionNotActiveFault) as exc_info:
            call(session)
        assert isinstance(exc_info.value, SessionPreconditionFault)
        assert exc_info.value.metadata["state"] == "idle"

    @pytest.mark.asyncio
    async def test_data_ops_after_close_raise(self, store):
        session = Session(store)
        await session.start()
        await session.close()

        with pytest.raises(SessionNotActiveFault):
            session.set("k", "v")

    @pytest.mark.asyncio
    async def test_data_ops_after_destroy_raise(self, store):
        session = Session(store)
        await session.start()
        await session.destroy()

        with pytest.raises(SessionNotActiveFault) as exc_info:
            session.get("k", "default")
        assert exc_info.value.metadata["state"] == "destroyed"


# ============================================================================
# close()
# ============================================================================

class TestClose:

    @pytest.mark.asyncio
    async def test_round_trip_through_store(self, store):
        session = Session(store)
        await session.start()
        session.set("user_id", 42)
        result = await session.close()
        sid = session.id

        assert result
        assert sid is not None

        resumed = Session(store)
        await resumed.start(sid)
        assert resumed.get("user_id", None) == 42

    @pytest.mark.asyncio
    async def test_round_trip_preserves_every_pair(self, store):
        pairs = {
            "s": "text",
            "i": 7,
            "f": 1.25,
            "b": True,
            "n": None,
            "l": [1, "two", [3]],
            "d": {"x": {"y": "z"}},
        }
        session = Session(store)
        await session.start()
        for key, value in pairs.items():
            session.set(key, value)
        await session.close()

        resumed = Session(store)
        await resumed.start(session.id)
        assert resumed.to_dict() == pairs

    @pytest.mark.asyncio
    async def test_close_replaces_stored_payload(self, store):
        await store.save("abc", {"keep": 1, "drop": 2})

        session = Session(store)
        await session.start("abc")
        session.unset("drop")
        await session.close()

        assert await store.load("abc") == {"keep": 1}

    @pytest.mark.asyncio
    async def test_close_when_idle_reports_nothing_to_close(self, store):
        session = Session(store)
        result = await session.close()

        assert not result
        assert result.reason is SessionFailure.PRECONDITION
        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_close_twice(self, store):
        session = Session(store)
        await session.start()
        assert await session.close()
        assert not await session.close()

    @pytest.mark.asyncio
    async def test_save_failure_is_reported_and_session_goes_idle(self, flaky_store):
        session = Session(flaky_store)
        await session.start("abc")
        session.set("k", "v")
        flaky_store.fail_save = True

        result = await session.close()

        assert not result
        assert result.reason is SessionFailure.STORE_UNAVAILABLE
        assert session.state is SessionState.IDLE
        assert session.id == "abc"
        assert not await flaky_store.exists("abc")

    @pytest.mark.asyncio
    async def test_no_internal_retry(self, flaky_store):
        session = Session(flaky_store)
        await session.start("abc")
        flaky_store.fail_save = True

        await session.close()

        assert flaky_store.ops().count("save") == 1

    @pytest.mark.asyncio
    async def test_session_can_be_restarted_after_close(self, store):
        session = Session(store)
        await session.start("abc")
        session.set("n", 1)
        await session.close()

        assert await session.start("abc")
        assert session.get("n") == 1

    @pytest.mark.asyncio
    async def test_failure_can_be_raised(self, flaky_store):
        session = Session(flaky_store)
        await session.start("abc")
        flaky_store.fail_save = True

        result = await session.close()

        with pytest.raises(SessionStoreUnavailableFault):
            result.raise_for_failure()

    @pytest.mark.asyncio
    async def test_store_holds_no_reference_to_live_data(self, store):
        session = Session(store)
        await session.start("abc")
        session.set("cart", [1])
        await session.close()

        await session.start("abc")
        session.get("cart").append(2)

        assert await store.load("abc") == {"cart": [1]}


# ============================================================================
# destroy()
# ============================================================================

class TestDestroy:

    @pytest.mark.asyncio
    async def test_destroy_then_close(self, store):
        await store.save("abc", {"user_id": 42})

        session = Session(store)
        await session.start("abc")
        result = await session.destroy()

        assert result
        assert session.id is None
        assert session.get_id() is None
        assert session.destroyed is True
        assert session.state is SessionState.DESTROYED
        assert not await store.exists("abc")

        close_result = await session.close()
        assert close_result
        assert session.id is None
        assert session.state is SessionState.IDLE
        assert not await store.exists("abc")

    @pytest.mark.asyncio
    async def test_destroy_deletes_eagerly_without_close(self, flaky_store):
        await flaky_store.save("abc", {"k": "v"})
        session = Session(flaky_store)
        await session.start("abc")

        await session.destroy()

        assert ("delete", "abc") in flaky_store.calls
        assert not await flaky_store.exists("abc")

    @pytest.mark.asyncio
    async def test_close_after_destroy_does_no_store_io(self, flaky_store):
        session = Session(flaky_store)
        await session.start("abc")
        await session.destroy()
        calls_before = list(flaky_store.calls)

        await session.close()

        assert flaky_store.calls == calls_before

    @pytest.mark.asyncio
    async def test_close_after_destroy_is_idempotent(self, flaky_store):
        session = Session(flaky_store)
        await session.start("abc")
        await session.destroy()
        calls_before = list(flaky_store.calls)

        first = await session.close()
        second = await session.close()

        assert first and second
        assert session.id is None
        assert session.state is SessionState.IDLE
        assert flaky_store.calls == calls_before

    @pytest.mark.asyncio
    async def test_close_after_restart_and_close_fails_again(self, store):
        session = Session(store)
        await session.start("abc")
        await session.destroy()
        await session.start()
        assert await session.close()

        result = await session.close()

        assert not result
        assert result.reason is SessionFailure.PRECONDITION

    @pytest.mark.asyncio
    async def test_destroy_when_idle_fails(self, store):
        session = Session(store)
        result = await session.destroy()

        assert not result
        assert result.reason is SessionFailure.PRECONDITION

    @pytest.mark.asyncio
    async def test_destroy_twice_fails(self, store):
        session = Session(store)
        await session.start()
        assert await session.destroy()
        assert not await session.destroy()

    @pytest.mark.asyncio
    async def test_delete_failure_still_destroys(self, flaky_store):
        session = Session(flaky_store)
        await session.start("abc")
        flaky_store.fail_delete = True

        result = await session.destroy()

        assert not result
        assert result.reason is SessionFailure.STORE_UNAVAILABLE
        assert session.id is None
        assert session.destroyed

    @pytest.mark.asyncio
    async def test_start_after_destroy_gets_fresh_identifier(self, store):
        session = Session(store, id_factory=sequential_ids())
        await session.start("abc")
        await session.destroy()

        assert await session.start()
        assert session.id == "id-1"
        assert session.destroyed is False
        assert session.to_dict() == {}


# ============================================================================
# Result & logging
# ============================================================================

class TestResultAndLogging:

    def test_result_truthiness(self):
        assert SessionResult.success()
        failed = SessionResult.failure(SessionAlreadyStartedFault())
        assert not failed
        assert failed.reason is SessionFailure.PRECONDITION

    def test_success_raise_for_failure_is_noop(self):
        SessionResult.success().raise_for_failure()

    @pytest.mark.asyncio
    async def test_serializer_failure_on_close_is_encoding(self, tmp_path):
        class RefusingSerializer(JsonSessionSerializer):
            def serialize(self, data):
                raise ValueError("cannot encode")

        session = Session(FileStore(tmp_path, serializer=RefusingSerializer()))
        await session.start()
        session.set("user_id", 42)

        result = await session.close()

        assert not result
        assert result.reason is SessionFailure.ENCODING
        assert isinstance(result.fault, SessionEncodingFault)
        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_repr_hides_identifier(self, store):
        session = Session(store)
        await session.start()
        assert session.id not in repr(session)
        assert "active" in repr(session)

    @pytest.mark.asyncio
    async def test_logs_never_contain_raw_identifier(self, caplog):
        caplog.set_level(logging.DEBUG, logger="harrier.sessions")
        store = FlakyStore()
        session = Session(store)

        await session.start()
        sid = session.id
        session.regenerate_id()
        await session.close()
        new_sid = session.id
        await session.start(new_sid)
        await session.destroy()

        assert caplog.records
        for record in caplog.records:
            message = record.getMessage()
            assert sid not in message
            assert new_sid not in message
