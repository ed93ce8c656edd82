"""
Protocol definitions for govtrack storage and lookups.

Defines interface contracts for the collaborators the core consumes:
- RecordStoreProtocol: flat record storage (JSONL locally, in-memory in tests)
- GovernmentLookup: resolution of a government id or slug
"""

from typing import Any, Optional, Protocol, runtime_checkable

from .types import Government


@runtime_checkable
class RecordStoreProtocol(Protocol):
    """
    Flat record storage keyed by ``id`` within named collections.

    Implemented by:
    - RecordStore (one JSONL file per collection)
    - in-memory doubles in the test suite
    """

    # -- Write operations --

    def append(self, collection: str, record: dict[str, Any]) -> None: ...

    def write_all(self, collection: str, records: list[dict[str, Any]]) -> None: ...

    def update(
        self,
        collection: str,
        id: str,
        updates: dict[str, Any],
    ) -> Optional[dict[str, Any]]: ...

    def delete(self, collection: str, id: str) -> bool: ...

    # -- Read operations --

    def read_all(self, collection: str) -> list[dict[str, Any]]: ...

    def find_by_id(self, collection: str, id: str) -> Optional[dict[str, Any]]: ...

    def find_by(self, collection: str, field: str, value: Any) -> Optional[dict[str, Any]]: ...

    def filter(self, collection: str, criteria: dict[str, Any]) -> list[dict[str, Any]]: ...

    def is_unique(
        self,
        collection: str,
        field: str,
        value: Any,
        exclude_id: Optional[str] = None,
    ) -> bool: ...

    def find_by_relation(
        self,
        collection: str,
        target_id: str,
        relation_type: Optional[str] = None,
    ) -> list[dict[str, Any]]: ...

    def count(self, collection: str) -> int: ...

    def exists(self, collection: str, id: str) -> bool: ...


@runtime_checkable
class GovernmentLookup(Protocol):
    """Resolves a government by opaque id or human slug."""

    def find(self, id_or_slug: str) -> Optional[Government]: ...
