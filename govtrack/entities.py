"""
Entity repository for the four-column model: goals, problems, ideas, actions.

All validation runs before the record store is touched, so a failing
create or update leaves the store unchanged. Every change to a tracked
field (title, status, priority, gov_id, relations) appends a history entry
with the old and new value.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from typing import Any, Optional

from .errors import ConflictError, CycleError, NotFoundError, ValidationError
from .ids import generate_id, prefix_for_type
from .protocol import GovernmentLookup, RecordStoreProtocol
from .types import (
    CLOSING_STATUSES,
    DEFAULT_PRIORITY,
    DEPENDENCY_RELATIONS,
    ENTITY_STATUSES,
    ENTITY_TYPES,
    MAX_ADDRESS_LENGTH,
    MAX_BODY_LENGTH,
    MAX_TITLE_LENGTH,
    PRIORITIES,
    RELATION_ENDPOINTS,
    Entity,
    RelationType,
    utc_now,
)

logger = logging.getLogger(__name__)

COLLECTION = "entities"

_PRIORITY_RE = re.compile(r"^P?(\d)$", re.IGNORECASE)

# Terminal status chosen by close(), per entity type
_CLOSE_STATUS = {
    "goal": "deprecated",
    "problem": "resolved",
}


# ---------------------------------------------------------------------------
# Field validation (shared with the legacy issue tracker)
# ---------------------------------------------------------------------------

def validate_title(title: Any, kind: str = "Entity") -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError(f"{kind} title is required")
    title = title.strip()
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"{kind} title must be {MAX_TITLE_LENGTH} characters or less")
    return title


def validate_body(body: Any, kind: str = "Entity") -> Optional[str]:
    if body is None:
        return None
    if not isinstance(body, str):
        raise ValidationError(f"{kind} body must be text")
    if len(body) > MAX_BODY_LENGTH:
        raise ValidationError(f"{kind} body must be {MAX_BODY_LENGTH} characters or less")
    return body.strip() or None


def validate_priority(priority: Any) -> int:
    """Accept 0-4 or 'P0'-'P4' (case-insensitive); return the integer."""
    normalized = priority
    if isinstance(priority, str):
        match = _PRIORITY_RE.match(priority.strip())
        if match:
            normalized = int(match.group(1))
    # bool is an int subclass; True must not pass as priority 1
    if isinstance(normalized, bool) or normalized not in PRIORITIES:
        raise ValidationError("Invalid priority. Must be 0-4 or P0-P4")
    return normalized


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_location(location: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Validate address, lat and lng independently; None if nothing remains."""
    if not location:
        return None

    validated: dict[str, Any] = {}
    address = location.get("address")
    if address:
        if not isinstance(address, str):
            raise ValidationError("Location address must be text")
        if len(address) > MAX_ADDRESS_LENGTH:
            raise ValidationError(
                f"Location address must be {MAX_ADDRESS_LENGTH} characters or less"
            )
        validated["address"] = address
    lat = location.get("lat")
    if lat is not None:
        if not _is_number(lat) or not -90 <= lat <= 90:
            raise ValidationError("Latitude must be between -90 and 90")
        validated["lat"] = lat
    lng = location.get("lng")
    if lng is not None:
        if not _is_number(lng) or not -180 <= lng <= 180:
            raise ValidationError("Longitude must be between -180 and 180")
        validated["lng"] = lng
    return validated or None


def validate_type(type_: str) -> None:
    if type_ not in ENTITY_TYPES:
        raise ValidationError(f"Invalid entity type. Must be one of: {', '.join(ENTITY_TYPES)}")


def validate_status(status: str, type_: str) -> None:
    valid = ENTITY_STATUSES.get(type_)
    if valid and status not in valid:
        raise ValidationError(f"Invalid status for {type_}. Must be one of: {', '.join(valid)}")


def _history(action: str, field: str, old: Any, new: Any, now: str) -> dict[str, Any]:
    return {
        "timestamp": now,
        "action": action,
        "field": field,
        "old_value": old,
        "new_value": new,
    }


def _sort_key(value: Any) -> tuple:
    # None sorts before any value; mixed str/int fields compare per kind
    if value is None:
        return (0, "")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (1, value)
    return (2, str(value))


class EntityRepository:
    """
    CRUD, validation and relation bookkeeping over typed entities.

    Args:
        store: Record storage (JSONL on disk, or an in-memory double)
        governments: Lookup used to resolve ``gov_id`` slugs and ids
    """

    def __init__(self, store: RecordStoreProtocol, governments: GovernmentLookup):
        self._store = store
        self._governments = governments

    # -------------------------------------------------------------------------
    # Validation helpers
    # -------------------------------------------------------------------------

    def _resolve_gov(self, id_or_slug: str) -> str:
        gov = self._governments.find(id_or_slug)
        if gov is None:
            raise NotFoundError(f"Government not found: {id_or_slug}")
        return gov.id

    def validate_relation(self, relation: Any, source_type: str) -> dict[str, str]:
        """
        Check a ``{type, target}`` relation against its declared endpoints.

        Raises:
            ValidationError: malformed relation, unknown type, or source/target
                type mismatch
            NotFoundError: target entity does not exist
        """
        if not isinstance(relation, dict) or not relation.get("type") or not relation.get("target"):
            raise ValidationError("Relation must have type and target")

        kind = RelationType.lookup(relation["type"])
        if kind is None:
            valid = ", ".join(r.value for r in RelationType)
            raise ValidationError(f"Invalid relation type: {relation['type']}. Valid types: {valid}")

        if kind.source_type != source_type:
            raise ValidationError(
                f"Relation type '{kind.value}' is not valid from '{source_type}' entities"
            )

        target = self._store.find_by_id(COLLECTION, relation["target"])
        if target is None:
            raise NotFoundError(f"Relation target not found: {relation['target']}")

        if kind.target_type != target.get("type"):
            raise ValidationError(
                f"Relation type '{kind.value}' expects target type "
                f"'{kind.target_type}', got '{target.get('type')}'"
            )

        return {"type": kind.value, "target": relation["target"]}

    def validate_relations(
        self,
        relations: Optional[list[Any]],
        source_type: str,
        source_id: Optional[str] = None,
        existing: Optional[list[dict[str, str]]] = None,
    ) -> list[dict[str, str]]:
        """
        Validate a full outgoing edge list for one entity.

        Edges already in ``existing`` are kept without re-resolving their
        target, so dangling edges survive unrelated edits.

        Raises:
            ValidationError: a bad edge, or an edge targeting source_id itself
            NotFoundError: a target does not exist
            ConflictError: the same (type, target) appears twice
            CycleError: a dependency edge whose target already reaches source_id
        """
        kept = [(r["type"], r["target"]) for r in existing or []]
        validated = [
            {"type": rel["type"], "target": rel["target"]}
            if isinstance(rel, dict) and (rel.get("type"), rel.get("target")) in kept
            else self.validate_relation(rel, source_type)
            for rel in relations or []
        ]
        seen = set()
        for rel in validated:
            if source_id is not None and rel["target"] == source_id:
                raise ValidationError("Cannot create a relation to itself")
            key = (rel["type"], rel["target"])
            if key in seen:
                raise ConflictError(f"Duplicate relation: {rel['type']} -> {rel['target']}")
            seen.add(key)
            if (source_id is not None and rel["type"] in DEPENDENCY_RELATIONS
                    and self.depends_transitively(rel["target"], source_id)):
                raise CycleError(
                    f"Adding this relation would create a cycle: "
                    f"{source_id} --[{rel['type']}]--> {rel['target']}"
                )
        return validated

    def depends_transitively(self, start_id: str, goal_id: str) -> bool:
        """
        True if goal_id is reachable from start_id over dependency edges.

        Breadth-first search along depends_on, requires and blocks; dangling
        targets end their branch.
        """
        visited: set[str] = set()
        queue = deque([start_id])
        while queue:
            current_id = queue.popleft()
            if current_id == goal_id:
                logger.debug("Dependency path: %s reaches %s", start_id, goal_id)
                return True
            if current_id in visited:
                continue
            visited.add(current_id)

            current = self.find(current_id)
            if current is None:
                continue
            for rel in current.relations:
                if rel["type"] in DEPENDENCY_RELATIONS and rel["target"] not in visited:
                    queue.append(rel["target"])
        return False

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    def create(self, type_: str, data: dict[str, Any]) -> Entity:
        """
        Create an entity of the given type.

        Args:
            type_: One of goal, problem, idea, action
            data: ``title`` (required) and optional ``body``, ``priority``,
                ``status``, ``gov_id``, ``relations``, ``metadata`` plus
                type-specific fields

        Raises:
            ValidationError: any field violates its constraint
            NotFoundError: the government or a relation target does not exist
        """
        validate_type(type_)
        title = validate_title(data.get("title"))
        body = validate_body(data.get("body"))

        gov_id = None
        if data.get("gov_id"):
            gov_id = self._resolve_gov(data["gov_id"])

        priority = validate_priority(
            data["priority"] if data.get("priority") is not None else DEFAULT_PRIORITY
        )

        location = validate_location(data.get("location")) if type_ == "problem" else None

        relations = self.validate_relations(data.get("relations"), type_)

        status = data.get("status") or ENTITY_STATUSES[type_][0]
        validate_status(status, type_)

        id = generate_id(
            prefix_for_type(type_),
            {"title": title, "type": type_, "gov_id": gov_id},
            lambda i: self._store.exists(COLLECTION, i),
        )
        now = utc_now()

        entity = Entity(
            id=id,
            type=type_,
            title=title,
            body=body,
            priority=priority,
            status=status,
            gov_id=gov_id,
            relations=relations,
            metadata=dict(data.get("metadata") or {}),
            created_at=now,
            updated_at=now,
            closed_at=now if status in CLOSING_STATUSES else None,
            history=[{"timestamp": now, "action": "created"}],
        )

        if type_ == "problem":
            entity.location = location
            entity.report_count = data.get("report_count") or 1
        elif type_ == "idea":
            supporters = list(dict.fromkeys(data.get("supporters") or []))
            entity.supporters = supporters
            entity.support_count = len(supporters)
            entity.similar_ideas = list(data.get("similar_ideas") or [])
            entity.ai_classification = data.get("ai_classification")
        elif type_ == "action":
            entity.assignee = data.get("assignee")
            entity.due_date = data.get("due_date")

        self._store.append(COLLECTION, entity.to_dict())
        logger.info("Created %s %s", type_, id)
        return entity

    def find(self, id: str) -> Optional[Entity]:
        record = self._store.find_by_id(COLLECTION, id)
        return Entity.from_dict(record) if record else None

    def get(self, id: str) -> Entity:
        """Like find(), but raises NotFoundError for a missing id."""
        entity = self.find(id)
        if entity is None:
            raise NotFoundError(f"Entity not found: {id}")
        return entity

    def all(self) -> list[Entity]:
        """Every entity in storage order."""
        return [Entity.from_dict(r) for r in self._store.read_all(COLLECTION)]

    def list(self, filters: Optional[dict[str, Any]] = None) -> list[Entity]:
        """
        List entities with optional filtering, sorting and paging.

        Filters: ``type``, ``gov_id`` (slug or id), ``unfiled``, ``status``,
        ``priority``, ``related_to``, ``sort`` (default created_at),
        ``order`` (default desc), ``limit``, ``offset``.
        """
        filters = filters or {}
        records = self._store.read_all(COLLECTION)

        if filters.get("type"):
            records = [r for r in records if r.get("type") == filters["type"]]

        if filters.get("gov_id"):
            gov = self._governments.find(filters["gov_id"])
            gov_id = gov.id if gov else filters["gov_id"]
            records = [r for r in records if r.get("gov_id") == gov_id]

        if filters.get("unfiled"):
            records = [r for r in records if r.get("gov_id") is None]

        if filters.get("status"):
            records = [r for r in records if r.get("status") == filters["status"]]

        if filters.get("priority") is not None:
            priority = validate_priority(filters["priority"])
            records = [r for r in records if r.get("priority") == priority]

        if filters.get("related_to"):
            target = filters["related_to"]
            records = [
                r for r in records
                if any(rel.get("target") == target for rel in r.get("relations") or [])
            ]

        sort_field = filters.get("sort") or "created_at"
        descending = (filters.get("order") or "desc") == "desc"
        records.sort(key=lambda r: _sort_key(r.get(sort_field)), reverse=descending)

        if filters.get("limit"):
            offset = filters.get("offset") or 0
            records = records[offset:offset + filters["limit"]]

        return [Entity.from_dict(r) for r in records]

    def update(self, id: str, updates: dict[str, Any]) -> Optional[Entity]:
        """
        Apply a partial update.

        Only keys present in ``updates`` are touched. Metadata is merged into
        the existing mapping rather than replacing it.

        Returns:
            The updated entity, or None if no entity has this id
        """
        entity = self.find(id)
        if entity is None:
            return None

        allowed: dict[str, Any] = {}
        history: list[dict[str, Any]] = []
        now = utc_now()

        if "title" in updates:
            title = validate_title(updates["title"])
            allowed["title"] = title
            history.append(_history("title_changed", "title", entity.title, title, now))

        if "body" in updates:
            allowed["body"] = validate_body(updates["body"])

        if "status" in updates:
            status = updates["status"]
            validate_status(status, entity.type)
            allowed["status"] = status
            history.append(_history("status_changed", "status", entity.status, status, now))
            if status in CLOSING_STATUSES:
                allowed["closed_at"] = now
            elif entity.closed_at:
                allowed["closed_at"] = None

        if "priority" in updates:
            priority = validate_priority(updates["priority"])
            allowed["priority"] = priority
            history.append(_history("priority_changed", "priority", entity.priority, priority, now))

        if "gov_id" in updates:
            gov_id = self._resolve_gov(updates["gov_id"]) if updates["gov_id"] else None
            allowed["gov_id"] = gov_id
            action = "assigned" if gov_id else "unassigned"
            history.append(_history(action, "gov_id", entity.gov_id, gov_id, now))

        if "relations" in updates:
            relations = self.validate_relations(
                updates["relations"], entity.type, id, existing=entity.relations
            )
            allowed["relations"] = relations
            history.append(_history("relations_changed", "relations", entity.relations, relations, now))

        if entity.type == "problem":
            if "location" in updates:
                allowed["location"] = validate_location(updates["location"])
            if "report_count" in updates:
                allowed["report_count"] = updates["report_count"]

        if entity.type == "action":
            for key in ("assignee", "due_date"):
                if key in updates:
                    allowed[key] = updates[key]

        if entity.type == "idea":
            if "supporters" in updates:
                supporters = list(dict.fromkeys(updates["supporters"] or []))
                allowed["supporters"] = supporters
                allowed["support_count"] = len(supporters)
            for key in ("similar_ideas", "ai_classification"):
                if key in updates:
                    allowed[key] = updates[key]

        if "metadata" in updates:
            allowed["metadata"] = {**entity.metadata, **(updates["metadata"] or {})}

        if history:
            allowed["history"] = [*entity.history, *history]

        record = self._store.update(COLLECTION, id, allowed)
        if record is None:
            return None
        if history:
            logger.info("Updated %s: %s", id, ", ".join(h["action"] for h in history))
        return Entity.from_dict(record)

    def remove(self, id: str) -> bool:
        """
        Hard-delete an entity.

        Relations in other entities that point at it are left in place;
        readers skip targets that no longer resolve.
        """
        removed = self._store.delete(COLLECTION, id)
        if removed:
            logger.info("Deleted %s", id)
        return removed

    # -------------------------------------------------------------------------
    # Relations
    # -------------------------------------------------------------------------

    def add_relation(self, source_id: str, relation_type: str, target_id: str) -> Entity:
        entity = self.get(source_id)
        relation = self.validate_relation(
            {"type": relation_type, "target": target_id}, entity.type
        )
        if any(r["type"] == relation["type"] and r["target"] == relation["target"]
               for r in entity.relations):
            raise ConflictError(
                f"Relation already exists: {source_id} --[{relation_type}]--> {target_id}"
            )
        return self.update(source_id, {"relations": [*entity.relations, relation]})

    def remove_relation(self, source_id: str, relation_type: str, target_id: str) -> Entity:
        entity = self.get(source_id)
        remaining = [
            r for r in entity.relations
            if not (r["type"] == relation_type and r["target"] == target_id)
        ]
        if len(remaining) == len(entity.relations):
            raise NotFoundError(
                f"Relation not found: {source_id} --[{relation_type}]--> {target_id}"
            )
        return self.update(source_id, {"relations": remaining})

    def find_related_from(
        self,
        target_id: str,
        relation_type: Optional[str] = None,
    ) -> list[Entity]:
        """Entities holding an edge that points at target_id."""
        return [
            Entity.from_dict(r)
            for r in self._store.find_by_relation(COLLECTION, target_id, relation_type)
        ]

    def get_graph_data(self, filters: Optional[dict[str, Any]] = None) -> dict[str, list]:
        """Nodes and edges for every relation between listed entities."""
        entities = self.list(filters)
        nodes = [
            {
                "id": e.id,
                "type": e.type,
                "title": e.title,
                "status": e.status,
                "priority": e.priority,
                "gov_id": e.gov_id,
            }
            for e in entities
        ]
        node_ids = {e.id for e in entities}
        edges = [
            {"source": e.id, "target": r["target"], "type": r["type"]}
            for e in entities
            for r in e.relations
            if r["target"] in node_ids
        ]
        return {"nodes": nodes, "edges": edges}

    # -------------------------------------------------------------------------
    # Lifecycle helpers
    # -------------------------------------------------------------------------

    def add_support(self, idea_id: str, supporter_id: str) -> Entity:
        """
        Record a supporter on an idea.

        Raises:
            NotFoundError: no entity with this id
            ValidationError: the entity is not an idea
            ConflictError: supporter already recorded
        """
        entity = self.find(idea_id)
        if entity is None:
            raise NotFoundError(f"Idea not found: {idea_id}")
        if entity.type != "idea":
            raise ValidationError(f"Entity {idea_id} is not an idea")

        supporters = entity.supporters or []
        if supporter_id in supporters:
            raise ConflictError(f"Already supported by: {supporter_id}")
        return self.update(idea_id, {"supporters": [*supporters, supporter_id]})

    def close(
        self,
        id: str,
        *,
        rejected: bool = False,
        cancelled: bool = False,
        reason: Optional[str] = None,
    ) -> Optional[Entity]:
        """Move an entity into its type's terminal status."""
        entity = self.find(id)
        if entity is None:
            return None

        if entity.type == "idea":
            status = "rejected" if rejected else "accepted"
        elif entity.type == "action":
            status = "cancelled" if cancelled else "completed"
        else:
            status = _CLOSE_STATUS[entity.type]

        updates: dict[str, Any] = {"status": status}
        if reason:
            updates["metadata"] = {"close_reason": reason}
        return self.update(id, updates)

    def reopen(self, id: str) -> Optional[Entity]:
        """Return an entity to its type's initial status."""
        entity = self.find(id)
        if entity is None:
            return None
        return self.update(id, {"status": ENTITY_STATUSES[entity.type][0]})

    def get_counts(self, gov_id: Optional[str] = None) -> dict[str, Any]:
        entities = self.list({"gov_id": gov_id} if gov_id else None)
        counts: dict[str, Any] = {
            "total": len(entities),
            "by_type": {t: 0 for t in ENTITY_TYPES},
            "by_status": {},
        }
        for e in entities:
            counts["by_type"][e.type] = counts["by_type"].get(e.type, 0) + 1
            counts["by_status"][e.status] = counts["by_status"].get(e.status, 0) + 1
        return counts

    # -------------------------------------------------------------------------
    # Vocabulary
    # -------------------------------------------------------------------------

    @staticmethod
    def types() -> list[str]:
        return list(ENTITY_TYPES)

    @staticmethod
    def statuses(type_: str) -> list[str]:
        return list(ENTITY_STATUSES.get(type_, ()))

    @staticmethod
    def relation_types() -> dict[str, dict[str, str]]:
        return {
            kind.value: {"from": source, "to": target}
            for kind, (source, target) in RELATION_ENDPOINTS.items()
        }

    @staticmethod
    def priorities() -> list[int]:
        return list(PRIORITIES)
