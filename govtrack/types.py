"""
Data types for the civic entity tracker.

Entities, governments and legacy issues are stored as JSON records. The
dataclasses here are snapshots converted from and to those records; the
record dict is the wire format shared by the CLI, the store and any
HTTP consumer.
"""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_now() -> str:
    """Current UTC timestamp in ISO-8601 format.

    Microsecond precision keeps ``created_at`` ordering meaningful for
    records written in quick succession.
    """
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Entity types and status machines
# ---------------------------------------------------------------------------

ENTITY_TYPES = ("goal", "problem", "idea", "action")

ENTITY_STATUSES: dict[str, tuple[str, ...]] = {
    "goal": ("active", "deprecated"),
    "problem": ("unacknowledged", "acknowledged", "being_addressed", "resolved"),
    "idea": ("proposed", "under_review", "accepted", "rejected", "superseded"),
    "action": ("open", "in_progress", "blocked", "completed", "cancelled"),
}

# Entering one of these sets closed_at, leaving one clears it
CLOSING_STATUSES = frozenset({
    "resolved", "completed", "cancelled", "deprecated", "rejected", "superseded",
})

# A dependency in one of these states no longer blocks its dependents
RESOLVED_STATUSES = frozenset({
    "completed", "resolved", "accepted", "cancelled", "deprecated", "rejected",
})

PRIORITIES = (0, 1, 2, 3, 4)
DEFAULT_PRIORITY = 2

MAX_TITLE_LENGTH = 500
MAX_BODY_LENGTH = 10_000
MAX_ADDRESS_LENGTH = 500


# ---------------------------------------------------------------------------
# Relation kinds
# ---------------------------------------------------------------------------

class RelationType(str, Enum):
    """Closed set of relation kinds; endpoints live in RELATION_ENDPOINTS."""
    THREATENS = "threatens"
    ADDRESSES = "addresses"
    PURSUES = "pursues"
    COMPLEMENTS = "complements"
    CONFLICTS = "conflicts"
    REQUIRES = "requires"
    SIMILAR = "similar"
    DUPLICATE = "duplicate"
    SUPERSEDES = "supersedes"
    ALTERNATIVE = "alternative"
    EXTENDS = "extends"
    IMPLEMENTS = "implements"
    DEPENDS_ON = "depends_on"
    BLOCKS = "blocks"

    @property
    def source_type(self) -> str:
        return RELATION_ENDPOINTS[self][0]

    @property
    def target_type(self) -> str:
        return RELATION_ENDPOINTS[self][1]

    @classmethod
    def lookup(cls, value: str) -> Optional["RelationType"]:
        """Return the member for a stored string value, or None if unknown."""
        try:
            return cls(value)
        except ValueError:
            return None


RELATION_ENDPOINTS: dict[RelationType, tuple[str, str]] = {
    RelationType.THREATENS: ("problem", "goal"),
    RelationType.ADDRESSES: ("idea", "problem"),
    RelationType.PURSUES: ("idea", "goal"),
    RelationType.COMPLEMENTS: ("idea", "idea"),
    RelationType.CONFLICTS: ("idea", "idea"),
    RelationType.REQUIRES: ("idea", "idea"),
    RelationType.SIMILAR: ("idea", "idea"),
    RelationType.DUPLICATE: ("idea", "idea"),
    RelationType.SUPERSEDES: ("idea", "idea"),
    RelationType.ALTERNATIVE: ("idea", "idea"),
    RelationType.EXTENDS: ("idea", "idea"),
    RelationType.IMPLEMENTS: ("action", "idea"),
    RelationType.DEPENDS_ON: ("action", "action"),
    RelationType.BLOCKS: ("action", "action"),
}

# Stored relations carry plain strings, so membership checks use values
DEPENDENCY_RELATIONS = frozenset({
    RelationType.DEPENDS_ON.value,
    RelationType.REQUIRES.value,
    RelationType.BLOCKS.value,
})


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

# Fields serialized only for the matching entity type
_TYPE_FIELDS: dict[str, tuple[str, ...]] = {
    "goal": (),
    "problem": ("location", "report_count"),
    "idea": ("supporters", "support_count", "similar_ideas", "ai_classification"),
    "action": ("assignee", "due_date"),
}

_COMMON_FIELDS = (
    "id", "type", "title", "body", "priority", "status", "gov_id",
    "relations", "metadata", "created_at", "updated_at", "closed_at", "history",
)


def _known_fields(cls, d: dict) -> dict:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in d.items() if k in names}


@dataclass
class Entity:
    """
    A tracked goal, problem, idea or action.

    Relations are outgoing only: ``[{"type": ..., "target": ...}]``.
    Incoming edges are found by scanning other entities.
    """
    id: str
    type: str
    title: str
    body: Optional[str] = None
    priority: int = DEFAULT_PRIORITY
    status: str = ""
    gov_id: Optional[str] = None
    relations: list[dict[str, str]] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""
    closed_at: Optional[str] = None
    history: list[dict[str, Any]] = field(default_factory=list)

    # problem
    location: Optional[dict[str, Any]] = None
    report_count: Optional[int] = None

    # idea
    supporters: Optional[list[str]] = None
    support_count: Optional[int] = None
    similar_ideas: Optional[list[Any]] = None
    ai_classification: Optional[dict[str, Any]] = None

    # action
    assignee: Optional[str] = None
    due_date: Optional[str] = None

    @property
    def text(self) -> str:
        """Title and body joined, as used by similarity scoring."""
        return f"{self.title} {self.body or ''}"

    @property
    def is_closed(self) -> bool:
        return self.closed_at is not None

    def targets(self, relation_type: Optional[str] = None) -> list[str]:
        """Target ids of outgoing relations, optionally of one type."""
        return [
            r["target"] for r in self.relations
            if relation_type is None or r["type"] == relation_type
        ]

    def has_relation(self, relation_type: str) -> bool:
        return any(r["type"] == relation_type for r in self.relations)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the stored JSON record shape."""
        d = asdict(self)
        keys = _COMMON_FIELDS + _TYPE_FIELDS.get(self.type, ())
        return {k: d[k] for k in keys}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Entity":
        return cls(**_known_fields(cls, d))

    def __str__(self) -> str:
        return f"{self.id} [{self.type}/{self.status}] P{self.priority}: {self.title[:60]}"


@dataclass
class Government:
    """An organizational unit that entities and issues may be filed under."""
    id: str
    slug: str
    name: str
    type: str = "city"
    state: Optional[str] = None
    status: str = "active"
    created_at: str = ""
    updated_at: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Government":
        return cls(**_known_fields(cls, d))


@dataclass
class Issue:
    """A legacy flat issue record, predating the four entity types."""
    id: str
    title: str
    gov_id: Optional[str] = None
    body: Optional[str] = None
    type: str = "report"
    priority: int = DEFAULT_PRIORITY
    status: str = "open"
    location: Optional[dict[str, Any]] = None
    created_at: str = ""
    updated_at: str = ""
    closed_at: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    history: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Issue":
        return cls(**_known_fields(cls, d))
