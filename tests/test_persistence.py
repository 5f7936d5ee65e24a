import asyncio

import pytest

from conftest import FakeQuoteStore, run
from quote_builder.core.exceptions import IdentityInvariantViolation, PersistenceError
from quote_builder.domain.persistence import DraftPersistenceClient


def test_first_save_creates_then_updates():
    store = FakeQuoteStore()
    client = DraftPersistenceClient(store)

    async def scenario():
        first = await client.save({"clientName": "A"})
        second = await client.save({"clientName": "B"})
        return first, second

    first, second = run(scenario())

    assert first.ok and first.created
    assert first.serverId == 1
    assert first.number == "Q-0001"
    assert second.ok and not second.created
    assert client.server_id == 1
    assert len(store.creates) == 1
    assert store.updates == [("update", 1, {"clientName": "B"})]


def test_save_during_pending_create_waits_and_updates():
    store = FakeQuoteStore()
    client = DraftPersistenceClient(store)

    async def scenario():
        store.hold()
        first = asyncio.ensure_future(client.save({"clientName": "first"}))
        await asyncio.sleep(0)
        second = asyncio.ensure_future(client.save({"clientName": "second"}))
        await asyncio.sleep(0.01)
        assert client.create_in_flight
        assert len(store.calls) == 1
        store.release()
        return await first, await second

    first, second = run(scenario())

    assert len(store.creates) == 1
    assert store.updates[0][1] == 1
    assert store.updates[0][2] == {"clientName": "second"}
    assert first.created and not second.created
    assert second.sequence > first.sequence
    assert not first.stale and not second.stale


def test_failed_create_leaves_identity_unset_and_retry_creates():
    store = FakeQuoteStore()
    store.fail_next = 1
    client = DraftPersistenceClient(store)

    async def scenario():
        failed = await client.save({"clientName": "A"})
        assert client.server_id is None
        retried = await client.save({"clientName": "A"})
        return failed, retried

    failed, retried = run(scenario())

    assert not failed.ok
    assert isinstance(failed.error, PersistenceError)
    assert failed.error.retryable
    assert retried.ok and retried.created
    assert client.server_id == 1


def test_failed_update_keeps_identity():
    store = FakeQuoteStore()
    client = DraftPersistenceClient(store, server_id=7)
    store.fail_next = 1

    result = run(client.save({"clientName": "A"}))

    assert not result.ok
    assert result.serverId == 7
    assert client.server_id == 7
    assert store.creates == []


def test_adopted_identity_means_updates_only():
    store = FakeQuoteStore()
    client = DraftPersistenceClient(store, server_id=42)
    result = run(client.save({"clientName": "A"}))
    assert result.ok and not result.created
    assert store.updates[0][1] == 42
    assert store.creates == []


def test_create_arriving_after_identity_acquired_elsewhere_is_discarded():
    store = FakeQuoteStore()
    client = DraftPersistenceClient(store)

    async def scenario():
        store.hold()
        pending = asyncio.ensure_future(client.save({"clientName": "A"}))
        await asyncio.sleep(0.01)
        client.adopt(99)
        store.release()
        return await pending

    result = run(scenario())

    assert not result.ok
    assert isinstance(result.error, IdentityInvariantViolation)
    assert client.server_id == 99


def test_adopting_a_different_identity_is_refused():
    client = DraftPersistenceClient(FakeQuoteStore(), server_id=3)
    with pytest.raises(IdentityInvariantViolation):
        client.adopt(4)
    client.adopt(3)


class OutOfOrderStore(FakeQuoteStore):
    """Updates answer in reverse dispatch order."""

    def __init__(self) -> None:
        super().__init__()
        self.gates = []

    async def update_quote(self, quote_id, payload):
        gate = asyncio.Event()
        self.gates.append(gate)
        self.calls.append(("update", quote_id, payload))
        await gate.wait()
        return {**payload, "id": quote_id, "number": "Q-0001"}


def test_late_response_of_older_dispatch_is_marked_stale():
    store = OutOfOrderStore()
    client = DraftPersistenceClient(store, server_id=1)

    async def scenario():
        older = asyncio.ensure_future(client.save({"v": 1}))
        newer = asyncio.ensure_future(client.save({"v": 2}))
        await asyncio.sleep(0.01)
        store.gates[1].set()
        newer_result = await newer
        store.gates[0].set()
        older_result = await older
        return older_result, newer_result

    older, newer = run(scenario())

    assert newer.ok and not newer.stale
    assert older.ok and older.stale


def test_malformed_create_response_is_a_persistence_error():
    class NoIdStore(FakeQuoteStore):
        async def create_quote(self, payload):
            self.calls.append(("create", None, payload))
            return {"status": "DRAFT"}

    client = DraftPersistenceClient(NoIdStore())
    result = run(client.save({}))
    assert not result.ok
    assert isinstance(result.error, PersistenceError)
    assert client.server_id is None


def test_unexpected_store_exception_is_converted():
    class BrokenStore(FakeQuoteStore):
        async def create_quote(self, payload):
            raise ConnectionResetError("peer reset")

    result = run(DraftPersistenceClient(BrokenStore()).save({}))
    assert not result.ok
    assert isinstance(result.error, PersistenceError)
    assert "peer reset" in result.error.message
