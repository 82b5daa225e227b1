from __future__ import annotations

from course_import.db.store import InMemoryRecordStore, RecordStore
from course_import.models.store_records import EditionInfo


def test_ids_are_sequential_per_entity():
    store = InMemoryRecordStore()
    assert store.create("companies", {"name": "A"}) == 1
    assert store.create("companies", {"name": "B"}) == 2
    assert store.create("students", {"firstName": "Mario"}) == 1
    assert store.create_calls == 3


def test_find_by_natural_key_returns_label():
    store = InMemoryRecordStore()
    store.create("companies", {"name": "Edilizia Rossi S.r.l.", "vatNumber": "12345678903"})
    found = store.find_by_natural_key("companies", ("vatNumber",), ("12345678903",))
    assert found.id == 1
    assert found.label == "Edilizia Rossi S.r.l."
    assert store.find_by_natural_key("companies", ("vatNumber",), ("98765432103",)) is None
    assert store.lookup_calls == 2


def test_records_is_a_copy():
    store = InMemoryRecordStore()
    store.create("students", {"firstName": "Mario"})
    store.records("students").clear()
    assert len(store.records("students")) == 1


def test_editions():
    store = InMemoryRecordStore([EditionInfo(1, "Sicurezza", 15000)])
    store.add_edition(EditionInfo(2, "Antincendio", 9000))
    assert store.get_edition(2).price == 9000
    assert store.get_edition(3) is None


def test_satisfies_protocol():
    store: RecordStore = InMemoryRecordStore()
    assert store.get_edition(1) is None
