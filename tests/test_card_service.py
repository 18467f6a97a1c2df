import asyncio
import json
import threading
import time

import pytest

from cardstore.core.errors import StoreWriteError
from cardstore.services import cards as cards_module
from cardstore.services import records
from cardstore.services.cards import CardService, Outcome
from cardstore.services.store_file import CardStoreFile


@pytest.fixture
def service(store_path):
    store = CardStoreFile(store_path)
    store.initialize()
    return CardService(store)


def run(coro):
    return asyncio.run(coro)


def test_create_reports_added_and_total(service):
    result = run(service.create_or_upsert([{"front": "a", "back": "b"}, {"front": "c", "back": "d"}]))
    assert result.outcome is Outcome.OK
    assert (result.added, result.total) == (2, 2)


def test_create_with_nothing_valid_writes_nothing(service, store_path):
    before = store_path.read_text()
    result = run(service.create_or_upsert([{"front": ""}, 42]))
    assert result.outcome is Outcome.INVALID_PAYLOAD
    assert store_path.read_text() == before


def test_upsert_existing_id_replaces_in_place(service):
    run(service.create_or_upsert([{"id": "x1", "front": "a", "back": "b"}, {"id": "x2", "front": "c", "back": "d"}]))
    original = run(service.list_all())[0][0]

    result = run(service.create_or_upsert({"id": "x1", "front": "a", "back": "B!"}))
    assert result.total == 2

    cards, count = run(service.list_all())
    assert count == 2
    assert [c.id for c in cards] == ["x1", "x2"]
    assert cards[0].back == "B!"
    assert cards[0].created_at == original.created_at


def test_duplicate_ids_in_one_batch_merge(service):
    result = run(service.create_or_upsert([
        {"id": "same", "front": "a", "back": "first"},
        {"id": "same", "front": "a", "back": "second"},
    ]))
    assert result.total == 1
    assert run(service.list_all())[0][0].back == "second"


def test_generated_id_collision_is_redrawn(service, monkeypatch):
    run(service.create_or_upsert({"id": "taken0000000", "front": "a", "back": "b"}))
    monkeypatch.setattr(records, "new_card_id", lambda: "taken0000000")
    monkeypatch.setattr(cards_module, "new_card_id", lambda: "fresh0000000")

    result = run(service.create_or_upsert({"front": "c", "back": "d"}))
    assert result.total == 2
    cards, _ = run(service.list_all())
    assert {c.id: c.back for c in cards} == {"taken0000000": "b", "fresh0000000": "d"}


def test_patch_outcomes(service):
    run(service.create_or_upsert({"id": "p1", "front": "a", "back": "b"}))

    assert run(service.patch_by_id("p1", {"lapses": 1})) is Outcome.UPDATED
    assert run(service.patch_by_id("nope", {"lapses": 1})) is Outcome.NOT_FOUND
    assert run(service.patch_by_id("p1", {"front": ""})) is Outcome.INVALID_PAYLOAD
    assert run(service.patch_by_id("p1", ["not", "a", "patch"])) is Outcome.INVALID_PAYLOAD

    card = run(service.list_all())[0][0]
    assert (card.front, card.lapses) == ("a", 1)


def test_delete_outcomes(service):
    run(service.create_or_upsert({"id": "del", "front": "a", "back": "b"}))
    assert run(service.delete_by_id("del")) is Outcome.DELETED
    assert run(service.delete_by_id("del")) is Outcome.NOT_FOUND
    assert run(service.list_all()) == ([], 0)


def test_concurrent_mutations_apply_in_arrival_order(service, store_path):
    async def main():
        await service.create_or_upsert({"id": "base", "front": "a", "back": "b", "interval": 0})
        await asyncio.gather(
            service.create_or_upsert([{"id": f"n{i}", "front": "f", "back": "b"} for i in range(3)]),
            service.patch_by_id("base", {"interval": 1}),
            service.delete_by_id("n1"),
            service.patch_by_id("base", {"interval": 2}),
            service.create_or_upsert({"id": "n3", "front": "f", "back": "b"}),
        )

    run(main())
    on_disk = json.loads(store_path.read_text(encoding="utf-8"))
    assert [c["id"] for c in on_disk] == ["base", "n0", "n2", "n3"]
    assert on_disk[0]["interval"] == 2


def test_uncommitted_write_raises(service, monkeypatch):
    def broken_save(cards):
        raise OSError("read-only filesystem")

    monkeypatch.setattr(service.store, "save", broken_save)
    with pytest.raises(StoreWriteError):
        run(service.delete_by_id("anything"))


def test_legacy_entry_without_id_can_be_patched(service, store_path):
    store_path.write_text(json.dumps([{"portuguese": "cão", "translation": "Hund"}]), encoding="utf-8")
    card_id = run(service.list_all())[0][0].id

    assert run(service.patch_by_id(card_id, {"interval": 5})) is Outcome.UPDATED
    stored = json.loads(store_path.read_text(encoding="utf-8"))[0]
    assert (stored["id"], stored["front"], stored["interval"]) == (card_id, "cão", 5)


def test_cancelled_caller_does_not_cancel_its_write(service, store_path, monkeypatch):
    lock = threading.Lock()
    state = {"active": 0, "peak": 0}
    real_save = service.store.save

    def slow_save(cards):
        with lock:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
        time.sleep(0.2)
        real_save(cards)
        with lock:
            state["active"] -= 1

    monkeypatch.setattr(service.store, "save", slow_save)

    async def main():
        caller = asyncio.create_task(service.create_or_upsert({"id": "a", "front": "a", "back": "a"}))
        await asyncio.sleep(0.05)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        await service.create_or_upsert({"id": "b", "front": "b", "back": "b"})

    run(main())
    assert state["peak"] == 1
    assert [c["id"] for c in json.loads(store_path.read_text(encoding="utf-8"))] == ["a", "b"]
