from __future__ import annotations

import threading
from decimal import Decimal

import pytest

from gradebook.domain.models import RecordCandidate
from gradebook.errors import IngestionFailed
from gradebook.store import AbstractRecordStore, MemoryRecordStore, RecordStore


def _candidates(prefix: str, n: int):
    return [
        RecordCandidate(external_id=f"{prefix}{i}", name=f"Student {i}", total_score=100, obtained_score=i)
        for i in range(n)
    ]


def test_satisfies_store_protocol(memory_store):
    assert isinstance(memory_store, RecordStore)
    assert isinstance(memory_store, AbstractRecordStore)
    assert memory_store.name == "memory"


def test_empty_store(memory_store):
    assert memory_store.count() == 0
    assert memory_store.page(0, 10) == (0, [])
    assert memory_store.stats() == (0, None)


def test_replace_assigns_ids_and_one_timestamp_per_batch(memory_store):
    result = memory_store.replace(_candidates("A", 3))

    total, records = memory_store.page(0, 10)
    assert result == {"inserted_count": 3}
    assert total == 3
    assert len({r.id for r in records}) == 3
    assert len({r.created_at for r in records}) == 1
    assert records[1].percentage == Decimal("1.00")


def test_ties_keep_insertion_order(memory_store):
    memory_store.replace(_candidates("A", 5))

    _, records = memory_store.page(0, 5)

    assert [r.external_id for r in records] == ["A0", "A1", "A2", "A3", "A4"]


def test_replace_discards_previous_batch(memory_store):
    memory_store.replace(_candidates("A", 4))
    memory_store.replace(_candidates("B", 2))

    total, records = memory_store.page(0, 10)

    assert total == 2
    assert {r.external_id for r in records} == {"B0", "B1"}


def test_update_keeps_position_and_timestamp(memory_store):
    memory_store.replace(_candidates("A", 2))
    (first,) = memory_store.page(0, 1)[1]
    memory_store.update(first.id, "Renamed", 10, 5)

    _, records = memory_store.page(0, 10)

    assert [r.external_id for r in records] == ["A0", "A1"]
    assert records[0].name == "Renamed"
    assert records[0].created_at == first.created_at


def test_page_slices(memory_store):
    memory_store.replace(_candidates("A", 7))

    assert [r.external_id for r in memory_store.page(5, 5)[1]] == ["A5", "A6"]
    assert memory_store.page(20, 5) == (7, [])


def test_generation_advances_per_publish(memory_store):
    start = memory_store.generation
    memory_store.replace(_candidates("A", 1))
    memory_store.clear_all()

    assert memory_store.generation == start + 2


def test_failed_replace_keeps_current_dataset(clock):
    calls = {"n": 0}

    def flaky_ids():
        calls["n"] += 1
        if calls["n"] > 3:
            raise RuntimeError("id source exhausted")
        return f"id-{calls['n']}"

    store = MemoryRecordStore(clock=clock, id_factory=flaky_ids)
    store.replace(_candidates("A", 2))

    with pytest.raises(IngestionFailed):
        store.replace(_candidates("B", 5))

    total, records = store.page(0, 10)
    assert total == 2
    assert {r.external_id for r in records} == {"A0", "A1"}


def test_duplicate_generated_id_aborts_replace(clock):
    store = MemoryRecordStore(clock=clock, id_factory=lambda: "same")

    with pytest.raises(IngestionFailed):
        store.replace(_candidates("A", 2))
    assert store.count() == 0


def test_get_update_delete(memory_store):
    memory_store.replace(_candidates("A", 2))
    record = memory_store.page(0, 1)[1][0]

    assert memory_store.get(record.id) == record
    updated = memory_store.update(record.id, "Ada", 50, 25)
    assert updated.percentage == Decimal("50.00")
    assert updated.id == record.id
    assert memory_store.get(record.id).name == "Ada"

    assert memory_store.delete(record.id) is True
    assert memory_store.delete(record.id) is False
    assert memory_store.get(record.id) is None
    assert memory_store.update(record.id, "x", 1, 1) is None
    assert memory_store.count() == 1


def test_clear_all(memory_store):
    memory_store.replace(_candidates("A", 3))

    assert memory_store.clear_all() == {"removed_count": 3}
    assert memory_store.clear_all() == {"removed_count": 0}
    assert memory_store.count() == 0


def test_stats_reports_latest_timestamp(memory_store, clock):
    memory_store.replace(_candidates("A", 1))
    memory_store.replace(_candidates("B", 1))

    count, latest = memory_store.stats()

    assert count == 1
    assert latest == clock.current


def test_readers_never_see_a_mixed_dataset():
    store = MemoryRecordStore()
    batches = [_candidates("A", 50), _candidates("B", 80)]
    store.replace(batches[0])
    stop = threading.Event()
    observed = []

    def writer():
        for i in range(60):
            store.replace(batches[i % 2])
        stop.set()

    def reader():
        while True:
            total, records = store.page(0, 200)
            observed.append((total, {r.external_id[0] for r in records}))
            if stop.is_set():
                break

    threads = [threading.Thread(target=writer)] + [threading.Thread(target=reader) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert observed
    for total, prefixes in observed:
        assert (total, prefixes) in [(50, {"A"}), (80, {"B"})]


def test_concurrent_replaces_leave_exactly_one_batch():
    store = MemoryRecordStore()
    barrier = threading.Barrier(4)

    def ingest(prefix):
        barrier.wait()
        store.replace(_candidates(prefix, 25))

    threads = [threading.Thread(target=ingest, args=(p,)) for p in "ABCD"]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    total, records = store.page(0, 100)
    assert total == 25
    assert len({r.external_id[0] for r in records}) == 1
