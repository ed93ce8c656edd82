"""
Record store using line-delimited JSON files.

Each collection ("entities", "governments", "issues") is one ``.jsonl``
file in the data directory, one JSON object per line. Reads parse the
whole file; mutations read, modify and rewrite the whole file.

There is no locking: concurrent writers race and the last full rewrite
wins. govtrack assumes a single writer at a time.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from .types import utc_now

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".jsonl"


class RecordStore:
    """
    JSONL-backed store for flat records keyed by ``id``.

    Records are plain dicts. The store stamps ``updated_at`` on update and
    otherwise leaves field semantics to its callers.
    """

    def __init__(self, root: Path):
        """
        Args:
            root: Directory holding one ``<collection>.jsonl`` per collection
        """
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, collection: str) -> Path:
        """Path to the JSONL file backing a collection."""
        return self._root / f"{collection}{RECORD_SUFFIX}"

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def append(self, collection: str, record: dict[str, Any]) -> None:
        """Append one record to the end of a collection."""
        path = self.path_for(collection)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")
        logger.debug("Appended %s to %s", record.get("id"), collection)

    def write_all(self, collection: str, records: list[dict[str, Any]]) -> None:
        """Replace the whole collection with the given records."""
        path = self.path_for(collection)
        path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(r, ensure_ascii=False) for r in records]
        content = "\n".join(lines) + ("\n" if lines else "")
        path.write_text(content, encoding="utf-8")

    def update(
        self,
        collection: str,
        id: str,
        updates: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        """
        Merge updates into a record and rewrite the collection.

        Stamps ``updated_at`` on the merged record.

        Returns:
            The updated record, or None if no record has this id
        """
        records = self.read_all(collection)
        found = None
        for i, record in enumerate(records):
            if record.get("id") == id:
                found = {**record, **updates, "updated_at": utc_now()}
                records[i] = found
                break

        if found is not None:
            self.write_all(collection, records)
        return found

    def delete(self, collection: str, id: str) -> bool:
        """
        Delete a record by id.

        Returns:
            True if a record existed and was removed
        """
        records = self.read_all(collection)
        remaining = [r for r in records if r.get("id") != id]
        if len(remaining) == len(records):
            return False
        self.write_all(collection, remaining)
        return True

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def read_all(self, collection: str) -> list[dict[str, Any]]:
        """All records of a collection in file order (empty if missing)."""
        path = self.path_for(collection)
        if not path.exists():
            return []
        content = path.read_text(encoding="utf-8")
        return [json.loads(line) for line in content.splitlines() if line.strip()]

    def find_by_id(self, collection: str, id: str) -> Optional[dict[str, Any]]:
        return self.find_by(collection, "id", id)

    def find_by(self, collection: str, field: str, value: Any) -> Optional[dict[str, Any]]:
        """First record whose field equals value, or None."""
        for record in self.read_all(collection):
            if record.get(field) == value:
                return record
        return None

    def filter(self, collection: str, criteria: dict[str, Any]) -> list[dict[str, Any]]:
        """
        Records matching every key/value in criteria.

        A criterion of None matches records where the field is null or absent.
        """
        def matches(record: dict) -> bool:
            return all(record.get(k) == v for k, v in criteria.items())

        return [r for r in self.read_all(collection) if matches(r)]

    def is_unique(
        self,
        collection: str,
        field: str,
        value: Any,
        exclude_id: Optional[str] = None,
    ) -> bool:
        """True if no record other than exclude_id has field == value."""
        return not any(
            r.get(field) == value and r.get("id") != exclude_id
            for r in self.read_all(collection)
        )

    def find_by_relation(
        self,
        collection: str,
        target_id: str,
        relation_type: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Records holding a relation edge that points at target_id."""
        def points_at(record: dict) -> bool:
            return any(
                rel.get("target") == target_id
                and (relation_type is None or rel.get("type") == relation_type)
                for rel in record.get("relations") or []
            )

        return [r for r in self.read_all(collection) if points_at(r)]

    def count(self, collection: str) -> int:
        return len(self.read_all(collection))

    def exists(self, collection: str, id: str) -> bool:
        return self.find_by_id(collection, id) is not None
