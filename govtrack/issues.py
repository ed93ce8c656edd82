"""
Legacy flat issues.

Issues predate the goal/problem/idea/action model and are kept in their
own collection. Unlike entities, a new issue always starts ``open``
regardless of its type, and only resolved/closed/wont_fix count as closed.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .entities import (
    validate_body,
    validate_location,
    validate_priority,
    validate_title,
)
from .errors import NotFoundError, ValidationError
from .ids import generate_id
from .protocol import GovernmentLookup, RecordStoreProtocol
from .types import DEFAULT_PRIORITY, Issue, utc_now

logger = logging.getLogger(__name__)

COLLECTION = "issues"
PREFIX = "gi"

ISSUE_TYPES = ("report", "request", "complaint", "other")
ISSUE_STATUSES = ("open", "in_progress", "resolved", "closed", "wont_fix")
ISSUE_CLOSED_STATUSES = frozenset({"resolved", "closed", "wont_fix"})


class IssueTracker:
    """CRUD and lifecycle for legacy issue records."""

    def __init__(self, store: RecordStoreProtocol, governments: GovernmentLookup):
        self._store = store
        self._governments = governments

    def _resolve_gov(self, id_or_slug: str) -> str:
        gov = self._governments.find(id_or_slug)
        if gov is None:
            raise NotFoundError(f"Government not found: {id_or_slug}")
        return gov.id

    def _history_update(self, issue: Issue, updates: dict[str, Any],
                        entries: list[dict[str, Any]]) -> Optional[Issue]:
        if entries:
            updates["history"] = [*issue.history, *entries]
        record = self._store.update(COLLECTION, issue.id, updates)
        return Issue.from_dict(record) if record else None

    def create(self, data: dict[str, Any]) -> Issue:
        title = validate_title(data.get("title"), kind="Issue")
        body = validate_body(data.get("body"), kind="Issue")

        type_ = data.get("type") or "report"
        if type_ not in ISSUE_TYPES:
            raise ValidationError(f"Invalid issue type. Must be one of: {', '.join(ISSUE_TYPES)}")

        priority = validate_priority(
            data["priority"] if data.get("priority") is not None else DEFAULT_PRIORITY
        )
        gov_id = self._resolve_gov(data["gov_id"]) if data.get("gov_id") else None
        location = validate_location(data.get("location"))

        id = generate_id(
            PREFIX, {"title": title, "gov_id": gov_id},
            lambda i: self._store.exists(COLLECTION, i),
        )
        now = utc_now()
        issue = Issue(
            id=id,
            gov_id=gov_id,
            title=title,
            body=body,
            type=type_,
            priority=priority,
            status="open",
            location=location,
            created_at=now,
            updated_at=now,
            metadata=dict(data.get("metadata") or {}),
            history=[{"timestamp": now, "action": "created"}],
        )
        self._store.append(COLLECTION, issue.to_dict())
        logger.info("Created issue %s", id)
        return issue

    def find(self, id: str) -> Optional[Issue]:
        record = self._store.find_by_id(COLLECTION, id)
        return Issue.from_dict(record) if record else None

    def list(self, filters: Optional[dict[str, Any]] = None) -> list[Issue]:
        filters = filters or {}
        records = self._store.read_all(COLLECTION)

        if filters.get("gov_id"):
            gov = self._governments.find(filters["gov_id"])
            gov_id = gov.id if gov else filters["gov_id"]
            records = [r for r in records if r.get("gov_id") == gov_id]
        if filters.get("unfiled"):
            records = [r for r in records if r.get("gov_id") is None]
        for key in ("status", "type"):
            if filters.get(key):
                records = [r for r in records if r.get(key) == filters[key]]
        if filters.get("priority") is not None:
            priority = validate_priority(filters["priority"])
            records = [r for r in records if r.get("priority") == priority]

        sort_field = filters.get("sort") or "created_at"
        descending = (filters.get("order") or "desc") == "desc"
        records.sort(key=lambda r: str(r.get(sort_field) or ""), reverse=descending)

        if filters.get("limit"):
            offset = filters.get("offset") or 0
            records = records[offset:offset + filters["limit"]]
        return [Issue.from_dict(r) for r in records]

    def update(self, id: str, updates: dict[str, Any]) -> Optional[Issue]:
        issue = self.find(id)
        if issue is None:
            return None

        allowed: dict[str, Any] = {}
        entries: list[dict[str, Any]] = []
        now = utc_now()

        if "title" in updates:
            allowed["title"] = validate_title(updates["title"], kind="Issue")
            entries.append({
                "timestamp": now, "action": "title_changed", "field": "title",
                "old_value": issue.title, "new_value": allowed["title"],
            })
        if "body" in updates:
            allowed["body"] = validate_body(updates["body"], kind="Issue")
        if "status" in updates:
            status = updates["status"]
            if status not in ISSUE_STATUSES:
                raise ValidationError(f"Invalid status. Must be one of: {', '.join(ISSUE_STATUSES)}")
            allowed["status"] = status
            entries.append({
                "timestamp": now, "action": "status_changed", "field": "status",
                "old_value": issue.status, "new_value": status,
            })
            if status in ISSUE_CLOSED_STATUSES:
                allowed["closed_at"] = now
            elif issue.closed_at and status == "open":
                allowed["closed_at"] = None
        if "priority" in updates:
            allowed["priority"] = validate_priority(updates["priority"])
            entries.append({
                "timestamp": now, "action": "priority_changed", "field": "priority",
                "old_value": issue.priority, "new_value": allowed["priority"],
            })

        return self._history_update(issue, allowed, entries)

    def assign(self, id: str, gov_id_or_slug: Optional[str]) -> Optional[Issue]:
        """File an issue under a government, or unfile it with None."""
        issue = self.find(id)
        if issue is None:
            return None
        gov_id = self._resolve_gov(gov_id_or_slug) if gov_id_or_slug else None
        entry = {
            "timestamp": utc_now(),
            "action": "assigned" if gov_id else "unassigned",
            "field": "gov_id",
            "old_value": issue.gov_id,
            "new_value": gov_id,
        }
        return self._history_update(issue, {"gov_id": gov_id}, [entry])

    def close(self, id: str, *, wont_fix: bool = False,
              reason: Optional[str] = None) -> Optional[Issue]:
        issue = self.find(id)
        if issue is None:
            return None
        status = "wont_fix" if wont_fix else "resolved"
        now = utc_now()
        entry: dict[str, Any] = {
            "timestamp": now, "action": "closed", "field": "status",
            "old_value": issue.status, "new_value": status,
        }
        updates: dict[str, Any] = {"status": status, "closed_at": now}
        if reason:
            entry["reason"] = reason
            updates["metadata"] = {**issue.metadata, "close_reason": reason}
        return self._history_update(issue, updates, [entry])

    def reopen(self, id: str) -> Optional[Issue]:
        issue = self.find(id)
        if issue is None:
            return None
        entry = {
            "timestamp": utc_now(), "action": "reopened", "field": "status",
            "old_value": issue.status, "new_value": "open",
        }
        return self._history_update(issue, {"status": "open", "closed_at": None}, [entry])

    def remove(self, id: str) -> bool:
        return self._store.delete(COLLECTION, id)

    def counts_by_gov(self, gov_id: str) -> dict[str, int]:
        counts = {"total": 0, **{s: 0 for s in ISSUE_STATUSES}}
        for issue in self.list({"gov_id": gov_id}):
            counts["total"] += 1
            if issue.status in counts:
                counts[issue.status] += 1
        return counts

    @staticmethod
    def types() -> list[str]:
        return list(ISSUE_TYPES)

    @staticmethod
    def statuses() -> list[str]:
        return list(ISSUE_STATUSES)
