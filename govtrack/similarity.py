"""
Keyword classification and set-similarity heuristics.

Deterministic, no trained model: entity types are guessed from keyword
substring counts, and texts are compared by the Jaccard coefficient of
their word sets. Weak matches are reported as low scores, never as errors.
"""

import re
from typing import Any

from .entities import EntityRepository
from .errors import NotFoundError
from .types import ENTITY_TYPES, Entity, RelationType

# Iteration order is goal, problem, idea, action and decides ties
TYPE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "goal": (
        "improve", "increase", "reduce", "enhance", "promote", "ensure",
        "achieve", "establish", "create", "build", "develop", "maintain",
        "safe", "sustainable", "accessible", "affordable", "efficient",
        "vision", "objective", "target", "aim", "aspiration",
    ),
    "problem": (
        "broken", "damaged", "issue", "problem", "complaint", "concern",
        "pothole", "graffiti", "noise", "pollution", "crime", "dangerous",
        "unsafe", "blocked", "flooded", "cracked", "missing", "faulty",
        "abandoned", "neglected", "deteriorating", "overcrowded",
    ),
    "idea": (
        "suggest", "propose", "idea", "solution", "could", "should", "might",
        "consider", "implement", "install", "create", "establish", "introduce",
        "program", "initiative", "pilot", "project", "scheme", "plan",
    ),
    "action": (
        "task", "action", "do", "complete", "fix", "repair", "install",
        "remove", "clean", "paint", "replace", "update", "review", "inspect",
        "schedule", "assign", "deadline", "responsible", "priority",
    ),
}

DEFAULT_TYPE = "idea"
UNIFORM_CONFIDENCE = 0.25

# Minimum similarity for a relation suggestion
RELEVANCE_FLOOR = 0.2
DUPLICATE_THRESHOLD = 0.8
SIMILAR_THRESHOLD = 0.5
BODY_WEIGHT = 0.8

_PUNCT_RE = re.compile(r"[^\w\s]")
_SPACE_RE = re.compile(r"\s+")
_SENTENCE_RE = re.compile(r"[.\n]")


# ---------------------------------------------------------------------------
# Pure functions
# ---------------------------------------------------------------------------

def normalize_text(text: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace."""
    text = _PUNCT_RE.sub("", text.lower())
    return _SPACE_RE.sub(" ", text).strip()


def _words(text: str) -> set[str]:
    normalized = normalize_text(text)
    return set(normalized.split(" ")) if normalized else set()


def calculate_similarity(text1: str, text2: str) -> float:
    """Jaccard coefficient of the two texts' word sets, in [0, 1]."""
    if not text1 or not text2:
        return 0.0
    words1, words2 = _words(text1), _words(text2)
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def classify_text(text: str) -> dict[str, Any]:
    """
    Guess the entity type of free text by keyword counts.

    Each keyword found as a case-insensitive substring adds one to its
    type's score. Confidence is the best score over the total, or 0.25
    when nothing matched.
    """
    lower = text.lower()
    scores = {
        type_: sum(1 for kw in keywords if kw in lower)
        for type_, keywords in TYPE_KEYWORDS.items()
    }

    best_type, best_score = DEFAULT_TYPE, 0
    for type_ in ENTITY_TYPES:
        if scores[type_] > best_score:
            best_type, best_score = type_, scores[type_]

    total = sum(scores.values())
    confidence = best_score / total if total else UNIFORM_CONFIDENCE

    matched = [kw for kw in TYPE_KEYWORDS[best_type] if kw in lower]
    if matched:
        reasoning = f"Matched keywords: {', '.join(matched[:5])}"
    else:
        reasoning = "Default classification (no strong keyword matches)"

    return {
        "type": best_type,
        "confidence": round(confidence, 2),
        "scores": scores,
        "reasoning": reasoning,
        "suggestions": [
            {"type": t, "score": s}
            for t, s in sorted(scores.items(), key=lambda kv: kv[1], reverse=True)
        ],
    }


def suggest_entity(text: str) -> dict[str, Any]:
    """Classify free text and split it into a suggested title and body."""
    classification = classify_text(text)

    first_line = _SENTENCE_RE.split(text, maxsplit=1)[0].strip()
    title = first_line[:100] + "..." if len(first_line) > 100 else first_line
    body = text[len(first_line):].strip() if len(text) > len(title) + 5 else ""

    return {
        "suggested_type": classification["type"],
        "confidence": classification["confidence"],
        "reasoning": classification["reasoning"],
        "prefilled": {"title": title, "body": body or None},
        "alternatives": classification["suggestions"][1:3],
    }


def _ranked(pairs: list[tuple[Entity, float]], limit: int) -> list[tuple[Entity, float]]:
    above = [(e, s) for e, s in pairs if s > RELEVANCE_FLOOR]
    return sorted(above, key=lambda p: p[1], reverse=True)[:limit]


# ---------------------------------------------------------------------------
# Candidate-pool searches
# ---------------------------------------------------------------------------

class SimilarityEngine:
    """Similarity searches and recommendations over stored entities."""

    def __init__(self, entities: EntityRepository):
        self._entities = entities

    def _idea(self, idea_id: str) -> Entity:
        idea = self._entities.find(idea_id)
        if idea is None or idea.type != "idea":
            raise NotFoundError(f"Idea not found: {idea_id}")
        return idea

    def find_similar_ideas(
        self,
        text: str,
        threshold: float = 0.3,
        limit: int = 5,
    ) -> list[dict[str, Any]]:
        """
        Ideas whose title or body resembles text.

        Body similarity is weighted by 0.8 so that title matches rank higher.
        """
        results = []
        for idea in self._entities.list({"type": "idea"}):
            title_sim = calculate_similarity(text, idea.title)
            body_sim = calculate_similarity(text, idea.body) if idea.body else 0.0
            similarity = max(title_sim, body_sim * BODY_WEIGHT)
            if similarity >= threshold:
                results.append({
                    "idea": idea,
                    "similarity": round(similarity, 2),
                    "matched_on": "title" if title_sim >= body_sim else "body",
                })
        results.sort(key=lambda r: r["similarity"], reverse=True)
        return results[:limit]

    def find_duplicates(self, idea_id: str, threshold: float = SIMILAR_THRESHOLD) -> list[dict[str, Any]]:
        """Other ideas at or above threshold, flagged duplicate (>= 0.8) or similar."""
        target = self._idea(idea_id)
        results = []
        for idea in self._entities.list({"type": "idea"}):
            if idea.id == idea_id:
                continue
            title_sim = calculate_similarity(target.title, idea.title)
            body_sim = (
                calculate_similarity(target.body, idea.body)
                if target.body and idea.body else 0.0
            )
            similarity = max(title_sim, body_sim)
            if similarity >= threshold:
                results.append({
                    "idea": idea,
                    "similarity": round(similarity, 2),
                    "is_duplicate": similarity >= DUPLICATE_THRESHOLD,
                    "is_similar": SIMILAR_THRESHOLD <= similarity < DUPLICATE_THRESHOLD,
                })
        results.sort(key=lambda r: r["similarity"], reverse=True)
        return results

    def categorize_idea(self, idea_id: str) -> dict[str, Any]:
        """Classification verdict plus candidate problems, goals and similar ideas."""
        idea = self._idea(idea_id)
        text = idea.text
        classification = classify_text(text)

        similar = [
            s for s in self.find_similar_ideas(text, 0.3, 3)
            if s["idea"].id != idea_id
        ]

        def related(type_: str) -> list[Entity]:
            pairs = [
                (e, calculate_similarity(text, e.text))
                for e in self._entities.list({"type": type_})
            ]
            return [e for e, _ in _ranked(pairs, 3)]

        verdict = classification["type"]
        return {
            "idea": idea,
            "classification": "confirmed" if verdict == "idea" else f"maybe_{verdict}",
            "confidence": classification["confidence"],
            "similar": similar[:3],
            "suggested_problems": related("problem"),
            "suggested_goals": related("goal"),
        }

    def get_insights(self, entity_id: str) -> dict[str, Any]:
        """
        Recommendations for an entity based on what it is missing.

        Problems without relations get goals they may threaten, ideas
        without ``addresses`` get problems, actions without ``implements``
        get accepted ideas, and ideas get duplicate warnings.
        """
        entity = self._entities.get(entity_id)
        recommendations: list[dict[str, Any]] = []

        def suggest(message: str, pairs: list[tuple[Entity, float]], limit: int,
                    relation: RelationType) -> None:
            ranked = _ranked(pairs, limit)
            if ranked:
                recommendations.append({
                    "type": "suggest_relation",
                    "message": message,
                    "suggestions": [
                        {"id": e.id, "title": e.title, "relation_type": relation.value}
                        for e, _ in ranked
                    ],
                })

        if entity.type == "problem" and not entity.relations:
            goals = self._entities.list({"type": "goal"})
            suggest(
                "This problem might threaten the following goals:",
                [(g, calculate_similarity(entity.title, g.title)) for g in goals],
                2, RelationType.THREATENS,
            )

        if entity.type == "idea" and not entity.has_relation(RelationType.ADDRESSES.value):
            problems = self._entities.list({"type": "problem"})
            suggest(
                "This idea might address the following problems:",
                [(p, calculate_similarity(entity.text, p.text)) for p in problems],
                3, RelationType.ADDRESSES,
            )

        if entity.type == "action" and not entity.has_relation(RelationType.IMPLEMENTS.value):
            ideas = self._entities.list({"type": "idea", "status": "accepted"})
            suggest(
                "This action might implement the following ideas:",
                [(i, calculate_similarity(entity.title, i.title)) for i in ideas],
                2, RelationType.IMPLEMENTS,
            )

        if entity.type == "idea":
            duplicates = self.find_duplicates(entity_id, SIMILAR_THRESHOLD)
            if duplicates:
                recommendations.append({
                    "type": "potential_duplicates",
                    "message": "Found similar existing ideas:",
                    "duplicates": [
                        {
                            "id": d["idea"].id,
                            "title": d["idea"].title,
                            "similarity": d["similarity"],
                            "is_duplicate": d["is_duplicate"],
                        }
                        for d in duplicates[:3]
                    ],
                })

        return {"entity": entity, "recommendations": recommendations}
