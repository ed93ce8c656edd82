"""
Shared pytest fixtures for govtrack tests.

Provides an in-memory record store so repository tests don't touch disk,
and a disk-backed tracker for end-to-end tests.
"""

import copy
from typing import Any, Optional

import pytest

from govtrack.entities import EntityRepository
from govtrack.government import GovernmentRegistry
from govtrack.issues import IssueTracker
from govtrack.relations import RelationEngine
from govtrack.similarity import SimilarityEngine
from govtrack.tracker import Tracker
from govtrack.types import utc_now


class MemoryRecordStore:
    """
    Dict-of-lists record store with the same contract as RecordStore.

    Records are deep-copied in and out so callers can't mutate stored state.
    """

    def __init__(self):
        self._collections: dict[str, list[dict[str, Any]]] = {}
        self.writes = 0

    def _records(self, collection: str) -> list[dict[str, Any]]:
        return self._collections.setdefault(collection, [])

    def append(self, collection: str, record: dict[str, Any]) -> None:
        self.writes += 1
        self._records(collection).append(copy.deepcopy(record))

    def write_all(self, collection: str, records: list[dict[str, Any]]) -> None:
        self.writes += 1
        self._collections[collection] = copy.deepcopy(records)

    def update(self, collection: str, id: str, updates: dict[str, Any]) -> Optional[dict[str, Any]]:
        records = self._records(collection)
        for i, record in enumerate(records):
            if record.get("id") == id:
                self.writes += 1
                records[i] = {**record, **copy.deepcopy(updates), "updated_at": utc_now()}
                return copy.deepcopy(records[i])
        return None

    def delete(self, collection: str, id: str) -> bool:
        records = self._records(collection)
        remaining = [r for r in records if r.get("id") != id]
        if len(remaining) == len(records):
            return False
        self._collections[collection] = remaining
        return True

    def read_all(self, collection: str) -> list[dict[str, Any]]:
        return copy.deepcopy(self._records(collection))

    def find_by_id(self, collection: str, id: str) -> Optional[dict[str, Any]]:
        return self.find_by(collection, "id", id)

    def find_by(self, collection: str, field: str, value: Any) -> Optional[dict[str, Any]]:
        for record in self._records(collection):
            if record.get(field) == value:
                return copy.deepcopy(record)
        return None

    def filter(self, collection: str, criteria: dict[str, Any]) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(r) for r in self._records(collection)
            if all(r.get(k) == v for k, v in criteria.items())
        ]

    def is_unique(self, collection: str, field: str, value: Any,
                  exclude_id: Optional[str] = None) -> bool:
        return not any(
            r.get(field) == value and r.get("id") != exclude_id
            for r in self._records(collection)
        )

    def find_by_relation(self, collection: str, target_id: str,
                         relation_type: Optional[str] = None) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(r) for r in self._records(collection)
            if any(
                rel.get("target") == target_id
                and (relation_type is None or rel.get("type") == relation_type)
                for rel in r.get("relations") or []
            )
        ]

    def count(self, collection: str) -> int:
        return len(self._records(collection))

    def exists(self, collection: str, id: str) -> bool:
        return any(r.get("id") == id for r in self._records(collection))


@pytest.fixture
def store():
    """Fresh in-memory record store."""
    return MemoryRecordStore()


@pytest.fixture
def governments(store):
    return GovernmentRegistry(store)


@pytest.fixture
def entities(store, governments):
    return EntityRepository(store, governments)


@pytest.fixture
def relations(entities):
    return RelationEngine(entities)


@pytest.fixture
def similarity(entities):
    return SimilarityEngine(entities)


@pytest.fixture
def issues(store, governments):
    return IssueTracker(store, governments)


@pytest.fixture
def tracker(tmp_path):
    """Disk-backed tracker in a temporary data directory."""
    with Tracker(tmp_path / ".govtrack", ops_log=False) as tr:
        yield tr


@pytest.fixture
def make(entities):
    """Shorthand factory: make("problem", "Broken light", relations=[...])."""
    def _make(type_: str, title: str, **data):
        return entities.create(type_, {"title": title, **data})
    return _make
