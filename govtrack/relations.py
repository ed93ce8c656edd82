"""
Relation engine: linking, cycle prevention and dependency traversal.

Edges live only on their source entity. Dependency-forming relations
(``depends_on``, ``requires``, ``blocks``) must keep the dependency graph
acyclic; every other relation type may form cycles freely.
"""

import logging
from collections import deque
from typing import Any, Optional

from .entities import EntityRepository
from .errors import CycleError, ValidationError
from .types import (
    DEPENDENCY_RELATIONS,
    RELATION_ENDPOINTS,
    RESOLVED_STATUSES,
    Entity,
    RelationType,
)

logger = logging.getLogger(__name__)


def _node(entity: Entity) -> dict[str, Any]:
    return {
        "id": entity.id,
        "type": entity.type,
        "title": entity.title,
        "status": entity.status,
    }


class RelationEngine:
    """Typed edge management over an EntityRepository."""

    def __init__(self, entities: EntityRepository):
        self._entities = entities

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def link(self, source_id: str, relation_type: str, target_id: str) -> Entity:
        """
        Add a typed edge from source to target.

        Raises:
            ValidationError: self-reference, unknown relation type, or
                endpoint type mismatch
            NotFoundError: source or target does not exist
            CycleError: a dependency edge would close a cycle
            ConflictError: the same edge already exists
        """
        if source_id == target_id:
            raise ValidationError("Cannot create a relation to itself")

        self._entities.get(source_id)
        self._entities.get(target_id)

        if self.would_create_cycle(source_id, target_id, relation_type):
            raise CycleError(
                f"Adding this relation would create a cycle: "
                f"{source_id} --[{relation_type}]--> {target_id}"
            )

        entity = self._entities.add_relation(source_id, relation_type, target_id)
        logger.info("Linked %s --[%s]--> %s", source_id, relation_type, target_id)
        return entity

    def unlink(self, source_id: str, relation_type: str, target_id: str) -> Entity:
        """Remove an edge; NotFoundError if it does not exist."""
        entity = self._entities.remove_relation(source_id, relation_type, target_id)
        logger.info("Unlinked %s --[%s]--> %s", source_id, relation_type, target_id)
        return entity

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_relations(self, entity_id: str) -> dict[str, list[dict[str, Any]]]:
        """
        Outgoing and incoming edges of an entity, with resolved endpoints.

        Incoming edges are found by scanning every entity. A dangling
        outgoing target resolves to None.
        """
        entity = self._entities.get(entity_id)

        outgoing = [
            {
                "type": rel["type"],
                "target": rel["target"],
                "target_entity": self._entities.find(rel["target"]),
            }
            for rel in entity.relations
        ]

        incoming = [
            {"type": rel["type"], "source": related.id, "source_entity": related}
            for related in self._entities.find_related_from(entity_id)
            for rel in related.relations
            if rel["target"] == entity_id
        ]

        return {"outgoing": outgoing, "incoming": incoming}

    def would_create_cycle(self, source_id: str, target_id: str, relation_type: str) -> bool:
        """True if adding source -> target would close a dependency cycle."""
        if relation_type not in DEPENDENCY_RELATIONS:
            return False
        return self._entities.depends_transitively(target_id, source_id)

    def find_dependencies(self, entity_id: str) -> list[Entity]:
        """Resolved ``depends_on`` targets; dangling targets are skipped."""
        entity = self._entities.find(entity_id)
        if entity is None:
            return []
        deps = (self._entities.find(t) for t in entity.targets(RelationType.DEPENDS_ON.value))
        return [d for d in deps if d is not None]

    def find_blocked(self, entity_id: str) -> list[Entity]:
        """Entities that depend on this one."""
        return self._entities.find_related_from(entity_id, RelationType.DEPENDS_ON.value)

    def is_blocked(self, entity_id: str) -> dict[str, Any]:
        """Blocked if any dependency has not reached a resolved status."""
        blockers = [
            d for d in self.find_dependencies(entity_id)
            if d.status not in RESOLVED_STATUSES
        ]
        return {
            "blocked": bool(blockers),
            "blockers": [{"id": b.id, "title": b.title, "status": b.status} for b in blockers],
        }

    def get_transitive_dependencies(self, entity_id: str) -> list[Entity]:
        """Root plus everything reachable over dependency edges, each once."""
        result: list[Entity] = []
        visited: set[str] = set()
        queue = deque([entity_id])
        while queue:
            current_id = queue.popleft()
            if current_id in visited:
                continue
            visited.add(current_id)

            current = self._entities.find(current_id)
            if current is None:
                continue
            result.append(current)
            for rel in current.relations:
                if rel["type"] in DEPENDENCY_RELATIONS and rel["target"] not in visited:
                    queue.append(rel["target"])
        return result

    def get_dependency_graph(self, root_id: Optional[str] = None) -> dict[str, list]:
        """
        Dependency graph projection.

        Nodes are the transitive dependencies of root_id, or every entity
        when no root is given. Edges are dependency relations whose both
        endpoints are nodes.
        """
        if root_id:
            entities = self.get_transitive_dependencies(root_id)
        else:
            entities = self._entities.list()

        node_ids = {e.id for e in entities}
        edges = [
            {"source": e.id, "target": rel["target"], "type": rel["type"]}
            for e in entities
            for rel in e.relations
            if rel["type"] in DEPENDENCY_RELATIONS and rel["target"] in node_ids
        ]
        return {"nodes": [_node(e) for e in entities], "edges": edges}

    # -------------------------------------------------------------------------
    # Vocabulary
    # -------------------------------------------------------------------------

    @staticmethod
    def validate_relation_type(
        relation_type: str,
        source_type: str,
        target_type: str,
    ) -> dict[str, Any]:
        """Non-raising endpoint check: ``{"is_valid": bool, "error": str|None}``."""
        kind = RelationType.lookup(relation_type)
        if kind is None:
            return {"is_valid": False, "error": f"Unknown relation type: {relation_type}"}
        if kind.source_type != source_type:
            return {
                "is_valid": False,
                "error": (f"Relation '{relation_type}' cannot originate from "
                          f"'{source_type}' (expected '{kind.source_type}')"),
            }
        if kind.target_type != target_type:
            return {
                "is_valid": False,
                "error": (f"Relation '{relation_type}' cannot target "
                          f"'{target_type}' (expected '{kind.target_type}')"),
            }
        return {"is_valid": True, "error": None}

    @staticmethod
    def suggested_relations(source_type: str, target_type: str) -> list[str]:
        """Relation types valid between two entity types."""
        return [
            kind.value for kind, endpoints in RELATION_ENDPOINTS.items()
            if endpoints == (source_type, target_type)
        ]

    @staticmethod
    def relations_by_source_type() -> dict[str, list[dict[str, str]]]:
        grouped: dict[str, list[dict[str, str]]] = {}
        for kind, (source, target) in RELATION_ENDPOINTS.items():
            grouped.setdefault(source, []).append({"type": kind.value, "to": target})
        return grouped
