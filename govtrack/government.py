"""
Organizational units (governments) that entities and issues are filed under.

Governments are addressed either by opaque id (``gt-1a2b``) or by a
human-readable slug (``travis-county``).
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from .errors import ValidationError
from .ids import generate_id, generate_slug, is_valid_id, make_slug_unique
from .protocol import RecordStoreProtocol
from .types import Government, utc_now

logger = logging.getLogger(__name__)

COLLECTION = "governments"
PREFIX = "gt"

GOVERNMENT_TYPES = ("city", "county", "state", "federal", "district", "other")
GOVERNMENT_STATUSES = ("active", "inactive")

MAX_NAME_LENGTH = 200
_STATE_RE = re.compile(r"^[A-Z]{2}$")


def _validate_name(name: Any) -> str:
    if not name or not isinstance(name, str):
        raise ValidationError("Government name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Government name must be {MAX_NAME_LENGTH} characters or less")
    return name.strip()


class GovernmentRegistry:
    """CRUD over government records, with slug-or-id resolution."""

    def __init__(self, store: RecordStoreProtocol):
        self._store = store

    def create(self, data: dict[str, Any]) -> Government:
        """
        Create a government.

        Args:
            data: ``name`` (required), optional ``type``, ``state``,
                ``slug`` and ``metadata``

        Raises:
            ValidationError: bad name, type or state code
        """
        name = _validate_name(data.get("name"))

        type_ = data.get("type") or "city"
        if type_ not in GOVERNMENT_TYPES:
            raise ValidationError(
                f"Invalid government type. Must be one of: {', '.join(GOVERNMENT_TYPES)}"
            )

        state = data.get("state")
        if state and not _STATE_RE.match(state):
            raise ValidationError("State must be a 2-letter uppercase code (e.g., TX, CA)")

        slug = make_slug_unique(
            data.get("slug") or generate_slug(data["name"]),
            lambda s: not self._store.is_unique(COLLECTION, "slug", s),
        )
        id = generate_id(
            PREFIX, {"name": name, "type": type_, "slug": slug},
            lambda i: self._store.exists(COLLECTION, i),
        )

        now = utc_now()
        gov = Government(
            id=id,
            slug=slug,
            name=name,
            type=type_,
            state=state or None,
            status="active",
            created_at=now,
            updated_at=now,
            metadata=data.get("metadata") or {},
        )
        self._store.append(COLLECTION, gov.to_dict())
        logger.info("Created government %s (%s)", gov.id, gov.slug)
        return gov

    def list(self, filters: Optional[dict[str, Any]] = None) -> list[Government]:
        filters = filters or {}
        records = self._store.read_all(COLLECTION)
        for key in ("type", "state", "status"):
            if filters.get(key):
                records = [r for r in records if r.get(key) == filters[key]]
        return [Government.from_dict(r) for r in records]

    def find(self, id_or_slug: str) -> Optional[Government]:
        """Resolve by id when it looks like one, otherwise by slug."""
        if not id_or_slug:
            return None
        if is_valid_id(id_or_slug, PREFIX):
            record = self._store.find_by_id(COLLECTION, id_or_slug)
        else:
            record = self._store.find_by(COLLECTION, "slug", id_or_slug)
        return Government.from_dict(record) if record else None

    def update(self, id_or_slug: str, updates: dict[str, Any]) -> Optional[Government]:
        """Update name, status or metadata (merged). None if not found."""
        gov = self.find(id_or_slug)
        if gov is None:
            return None

        allowed: dict[str, Any] = {}
        if "name" in updates:
            allowed["name"] = _validate_name(updates["name"])
        if "status" in updates:
            if updates["status"] not in GOVERNMENT_STATUSES:
                raise ValidationError(
                    f"Invalid status. Must be one of: {', '.join(GOVERNMENT_STATUSES)}"
                )
            allowed["status"] = updates["status"]
        if "metadata" in updates:
            allowed["metadata"] = {**gov.metadata, **(updates["metadata"] or {})}

        record = self._store.update(COLLECTION, gov.id, allowed)
        return Government.from_dict(record) if record else None

    def remove(self, id_or_slug: str) -> bool:
        gov = self.find(id_or_slug)
        if gov is None:
            return False
        return self._store.delete(COLLECTION, gov.id)

    @staticmethod
    def types() -> list[str]:
        return list(GOVERNMENT_TYPES)

    @staticmethod
    def statuses() -> list[str]:
        return list(GOVERNMENT_STATUSES)
