"""
Tests for the entity repository.

Covers creation defaults per type, field validation, history tracking,
closed_at bookkeeping, listing filters and idea support.
"""

import pytest

from govtrack.entities import validate_location, validate_priority
from govtrack.errors import ConflictError, CycleError, NotFoundError, ValidationError
from govtrack.types import ENTITY_STATUSES


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class TestCreateEntity:
    @pytest.mark.parametrize("type_, prefix, status", [
        ("goal", "gg-", "active"),
        ("problem", "gp-", "unacknowledged"),
        ("idea", "gd-", "proposed"),
        ("action", "ga-", "open"),
    ])
    def test_defaults(self, entities, type_, prefix, status):
        entity = entities.create(type_, {"title": "Something"})
        assert entity.id.startswith(prefix)
        assert entity.status == status
        assert entity.priority == 2
        assert entity.relations == []
        assert entity.closed_at is None
        assert entity.history == [{"timestamp": entity.created_at, "action": "created"}]

    def test_id_checked_against_store(self, entities, store, monkeypatch):
        taken = []
        real_exists = store.exists

        def exists(collection, id):
            taken.append((collection, id))
            return len(taken) == 1 or real_exists(collection, id)

        monkeypatch.setattr(store, "exists", exists)
        goal = entities.create("goal", {"title": "Safe streets"})
        assert len(taken) == 2
        assert taken[0][0] == "entities"
        assert goal.id == taken[1][1]

    def test_persisted(self, entities, store):
        entity = entities.create("goal", {"title": "Safe streets"})
        assert store.find_by_id("entities", entity.id)["title"] == "Safe streets"
        assert entities.find(entity.id) == entity

    def test_title_trimmed(self, entities):
        assert entities.create("goal", {"title": "  Safe streets  "}).title == "Safe streets"

    def test_problem_fields(self, entities):
        problem = entities.create("problem", {
            "title": "Pothole",
            "location": {"address": "1 Main St", "lat": 30.2, "lng": -97.7},
        })
        assert problem.report_count == 1
        assert problem.location == {"address": "1 Main St", "lat": 30.2, "lng": -97.7}
        record = problem.to_dict()
        assert "supporters" not in record
        assert "assignee" not in record

    def test_idea_supporters_deduplicated(self, entities):
        idea = entities.create("idea", {"title": "Bike lanes", "supporters": ["a", "b", "a"]})
        assert idea.supporters == ["a", "b"]
        assert idea.support_count == 2

    def test_action_fields(self, entities):
        action = entities.create("action", {"title": "Repave", "assignee": "pw", "due_date": "2026-01-01"})
        assert action.assignee == "pw"
        assert action.due_date == "2026-01-01"
        assert "location" not in action.to_dict()

    def test_priority_label(self, entities):
        assert entities.create("goal", {"title": "x", "priority": "P0"}).priority == 0

    def test_gov_by_slug(self, entities, governments):
        gov = governments.create({"name": "Austin"})
        entity = entities.create("problem", {"title": "Pothole", "gov_id": "austin"})
        assert entity.gov_id == gov.id

    def test_unknown_gov(self, entities, store):
        with pytest.raises(NotFoundError):
            entities.create("problem", {"title": "Pothole", "gov_id": "atlantis"})
        assert store.read_all("entities") == []

    def test_closing_initial_status_sets_closed_at(self, entities):
        goal = entities.create("goal", {"title": "Old goal", "status": "deprecated"})
        assert goal.closed_at == goal.created_at

    def test_with_relations(self, make):
        goal = make("goal", "Safe streets")
        problem = make("problem", "Broken light", relations=[{"type": "threatens", "target": goal.id}])
        assert problem.relations == [{"type": "threatens", "target": goal.id}]

    def test_duplicate_relations_rejected(self, make):
        goal = make("goal", "Safe streets")
        rel = {"type": "threatens", "target": goal.id}
        with pytest.raises(ConflictError):
            make("problem", "Broken light", relations=[rel, dict(rel)])


class TestCreateValidation:
    @pytest.mark.parametrize("type_, data", [
        ("widget", {"title": "x"}),
        ("goal", {}),
        ("goal", {"title": ""}),
        ("goal", {"title": "   \t\n"}),
        ("goal", {"title": 42}),
        ("goal", {"title": "x" * 501}),
        ("goal", {"title": "x", "body": "y" * 10001}),
        ("goal", {"title": "x", "priority": 5}),
        ("goal", {"title": "x", "priority": "P9"}),
        ("goal", {"title": "x", "status": "open"}),
        ("problem", {"title": "x", "location": {"lat": 91}}),
        ("problem", {"title": "x", "location": {"lng": -181}}),
        ("problem", {"title": "x", "location": {"address": "a" * 501}}),
        ("problem", {"title": "x", "location": {"address": 123}}),
        ("problem", {"title": "x", "location": {"lat": True}}),
        ("problem", {"title": "x", "location": {"lng": False}}),
    ])
    def test_rejected_without_writing(self, entities, store, type_, data):
        with pytest.raises(ValidationError):
            entities.create(type_, data)
        assert store.read_all("entities") == []

    def test_wrong_relation_source(self, make):
        problem = make("problem", "Pothole")
        with pytest.raises(ValidationError):
            make("problem", "Another", relations=[{"type": "addresses", "target": problem.id}])

    def test_wrong_relation_target(self, make):
        other = make("problem", "Pothole")
        with pytest.raises(ValidationError):
            make("problem", "Broken light", relations=[{"type": "threatens", "target": other.id}])

    def test_unknown_relation_type(self, make):
        goal = make("goal", "Safe streets")
        with pytest.raises(ValidationError):
            make("problem", "Pothole", relations=[{"type": "loves", "target": goal.id}])

    def test_missing_relation_target(self, make):
        with pytest.raises(NotFoundError):
            make("problem", "Pothole", relations=[{"type": "threatens", "target": "gg-ffff"}])

    def test_malformed_relation(self, make):
        with pytest.raises(ValidationError):
            make("problem", "Pothole", relations=[{"type": "threatens"}])


class TestValidators:
    def test_priority_forms(self):
        assert validate_priority(3) == 3
        assert validate_priority("p1") == 1
        assert validate_priority("4") == 4

    def test_priority_rejects_bool(self):
        with pytest.raises(ValidationError):
            validate_priority(True)

    def test_location_empty(self):
        assert validate_location(None) is None
        assert validate_location({}) is None
        assert validate_location({"address": ""}) is None

    def test_location_partial(self):
        assert validate_location({"lat": 0}) == {"lat": 0}

    def test_location_rejects_non_text_address(self):
        with pytest.raises(ValidationError):
            validate_location({"address": ["1 Main St"]})

    def test_location_rejects_bool_coordinates(self):
        with pytest.raises(ValidationError):
            validate_location({"lat": True, "lng": 0})


# ---------------------------------------------------------------------------
# Update and lifecycle
# ---------------------------------------------------------------------------


class TestUpdateEntity:
    def test_status_change_history(self, make, entities):
        problem = make("problem", "Pothole")
        updated = entities.update(problem.id, {"status": "acknowledged"})
        entry = updated.history[-1]
        assert entry["action"] == "status_changed"
        assert entry["field"] == "status"
        assert entry["old_value"] == "unacknowledged"
        assert entry["new_value"] == "acknowledged"
        assert len(updated.history) == 2

    def test_title_and_priority_history(self, make, entities):
        goal = make("goal", "Safe streets")
        updated = entities.update(goal.id, {"title": "Safer streets", "priority": "P1"})
        actions = [h["action"] for h in updated.history]
        assert actions == ["created", "title_changed", "priority_changed"]
        assert updated.priority == 1

    def test_body_not_tracked(self, make, entities):
        goal = make("goal", "Safe streets")
        updated = entities.update(goal.id, {"body": "More detail"})
        assert updated.body == "More detail"
        assert len(updated.history) == 1

    def test_gov_assignment_history(self, make, entities, governments):
        gov = governments.create({"name": "Austin"})
        goal = make("goal", "Safe streets")
        assigned = entities.update(goal.id, {"gov_id": "austin"})
        assert assigned.gov_id == gov.id
        assert assigned.history[-1]["action"] == "assigned"
        unassigned = entities.update(goal.id, {"gov_id": None})
        assert unassigned.gov_id is None
        assert unassigned.history[-1]["action"] == "unassigned"

    def test_closing_status_sets_and_clears_closed_at(self, make, entities):
        problem = make("problem", "Pothole")
        resolved = entities.update(problem.id, {"status": "resolved"})
        assert resolved.closed_at is not None
        reopened = entities.update(problem.id, {"status": "acknowledged"})
        assert reopened.closed_at is None

    def test_metadata_merged(self, entities):
        goal = entities.create("goal", {"title": "x", "metadata": {"a": 1}})
        assert entities.update(goal.id, {"metadata": {"b": 2}}).metadata == {"a": 1, "b": 2}

    def test_invalid_status_leaves_entity(self, make, entities):
        goal = make("goal", "Safe streets")
        with pytest.raises(ValidationError):
            entities.update(goal.id, {"status": "resolved"})
        assert entities.find(goal.id).status == "active"

    def test_type_specific_fields_scoped(self, make, entities):
        goal = make("goal", "Safe streets")
        updated = entities.update(goal.id, {"assignee": "someone"})
        assert updated.assignee is None

    def test_missing(self, entities):
        assert entities.update("gg-ffff", {"title": "x"}) is None

    def test_updated_at_advances(self, make, entities):
        goal = make("goal", "Safe streets")
        updated = entities.update(goal.id, {"title": "Safer"})
        assert updated.updated_at >= goal.updated_at
        assert updated.created_at == goal.created_at

    def test_whitespace_title_rejected(self, make, entities):
        goal = make("goal", "Safe streets")
        with pytest.raises(ValidationError):
            entities.update(goal.id, {"title": "   "})
        assert entities.find(goal.id).title == "Safe streets"


class TestUpdateRelations:
    def test_relations_changed_history(self, make, entities):
        goal = make("goal", "Safe streets")
        problem = make("problem", "Pothole")
        rel = {"type": "threatens", "target": goal.id}
        updated = entities.update(problem.id, {"relations": [rel]})
        entry = updated.history[-1]
        assert entry["action"] == "relations_changed"
        assert entry["field"] == "relations"
        assert entry["old_value"] == []
        assert entry["new_value"] == [rel]

        cleared = entities.update(problem.id, {"relations": []})
        assert cleared.history[-1]["old_value"] == [rel]
        assert cleared.history[-1]["new_value"] == []

    def test_duplicate_edges_rejected(self, make, entities):
        goal = make("goal", "Safe streets")
        problem = make("problem", "Pothole")
        rel = {"type": "threatens", "target": goal.id}
        with pytest.raises(ConflictError):
            entities.update(problem.id, {"relations": [rel, dict(rel)]})
        assert entities.find(problem.id).relations == []

    def test_self_target_rejected(self, make, entities):
        idea = make("idea", "Bike lanes")
        with pytest.raises(ValidationError):
            entities.update(idea.id, {"relations": [{"type": "complements", "target": idea.id}]})
        assert entities.find(idea.id).relations == []

    def test_dependency_cycle_rejected(self, make, entities):
        a = make("action", "A")
        b = make("action", "B", relations=[{"type": "depends_on", "target": a.id}])
        with pytest.raises(CycleError):
            entities.update(a.id, {"relations": [{"type": "depends_on", "target": b.id}]})
        assert entities.find(a.id).relations == []
        assert entities.find(b.id).relations == [{"type": "depends_on", "target": a.id}]

    def test_longer_dependency_cycle_rejected(self, make, entities):
        a = make("action", "A")
        b = make("action", "B", relations=[{"type": "blocks", "target": a.id}])
        c = make("action", "C", relations=[{"type": "depends_on", "target": b.id}])
        with pytest.raises(CycleError):
            entities.update(a.id, {"relations": [{"type": "depends_on", "target": c.id}]})

    def test_non_dependency_cycle_allowed(self, make, entities):
        a = make("idea", "A")
        b = make("idea", "B", relations=[{"type": "complements", "target": a.id}])
        updated = entities.update(a.id, {"relations": [{"type": "complements", "target": b.id}]})
        assert updated.relations == [{"type": "complements", "target": b.id}]

    def test_dangling_edge_survives_edit(self, make, entities):
        goal = make("goal", "Safe streets")
        other = make("goal", "Clean parks")
        problem = make("problem", "Pothole", relations=[
            {"type": "threatens", "target": goal.id},
            {"type": "threatens", "target": other.id},
        ])
        entities.remove(goal.id)

        updated = entities.remove_relation(problem.id, "threatens", other.id)
        assert updated.relations == [{"type": "threatens", "target": goal.id}]

    def test_new_edge_to_missing_target_rejected(self, make, entities):
        problem = make("problem", "Pothole")
        with pytest.raises(NotFoundError):
            entities.update(problem.id, {"relations": [{"type": "threatens", "target": "gg-ffff"}]})


class TestLifecycle:
    @pytest.mark.parametrize("type_, kwargs, status", [
        ("goal", {}, "deprecated"),
        ("problem", {}, "resolved"),
        ("idea", {}, "accepted"),
        ("idea", {"rejected": True}, "rejected"),
        ("action", {}, "completed"),
        ("action", {"cancelled": True}, "cancelled"),
    ])
    def test_close(self, entities, type_, kwargs, status):
        entity = entities.create(type_, {"title": "x"})
        closed = entities.close(entity.id, **kwargs)
        assert closed.status == status

    def test_close_reason(self, make, entities):
        problem = make("problem", "Pothole")
        closed = entities.close(problem.id, reason="Fixed by crew")
        assert closed.metadata["close_reason"] == "Fixed by crew"
        assert closed.closed_at is not None

    def test_reopen(self, make, entities):
        action = make("action", "Repave")
        entities.close(action.id)
        reopened = entities.reopen(action.id)
        assert reopened.status == ENTITY_STATUSES["action"][0]
        assert reopened.closed_at is None

    def test_close_missing(self, entities):
        assert entities.close("gg-ffff") is None
        assert entities.reopen("gg-ffff") is None


class TestSupport:
    def test_add_support(self, make, entities):
        idea = make("idea", "Bike lanes")
        updated = entities.add_support(idea.id, "alice")
        assert updated.supporters == ["alice"]
        assert updated.support_count == 1

    def test_duplicate_support(self, make, entities):
        idea = make("idea", "Bike lanes")
        entities.add_support(idea.id, "alice")
        with pytest.raises(ConflictError):
            entities.add_support(idea.id, "alice")

    def test_support_non_idea(self, make, entities):
        goal = make("goal", "Safe streets")
        with pytest.raises(ValidationError):
            entities.add_support(goal.id, "alice")

    def test_support_missing(self, entities):
        with pytest.raises(NotFoundError):
            entities.add_support("gd-ffff", "alice")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestListEntities:
    @pytest.fixture
    def populated(self, make, governments):
        gov = governments.create({"name": "Austin"})
        goal = make("goal", "Safe streets", gov_id=gov.id, priority=1)
        problem = make("problem", "Pothole", relations=[{"type": "threatens", "target": goal.id}])
        idea = make("idea", "Bike lanes", gov_id=gov.id, priority=0)
        return {"gov": gov, "goal": goal, "problem": problem, "idea": idea}

    def test_filter_type(self, entities, populated):
        assert [e.id for e in entities.list({"type": "problem"})] == [populated["problem"].id]

    def test_filter_gov_by_slug(self, entities, populated):
        ids = {e.id for e in entities.list({"gov_id": "austin"})}
        assert ids == {populated["goal"].id, populated["idea"].id}

    def test_unfiled(self, entities, populated):
        assert [e.id for e in entities.list({"unfiled": True})] == [populated["problem"].id]

    def test_related_to(self, entities, populated):
        result = entities.list({"related_to": populated["goal"].id})
        assert [e.id for e in result] == [populated["problem"].id]

    def test_priority_filter(self, entities, populated):
        assert [e.id for e in entities.list({"priority": "P0"})] == [populated["idea"].id]

    def test_sort_by_priority(self, entities, populated):
        result = entities.list({"sort": "priority", "order": "asc"})
        assert [e.priority for e in result] == [0, 1, 2]

    def test_limit_offset(self, entities, populated):
        result = entities.list({"sort": "priority", "order": "asc", "limit": 1, "offset": 1})
        assert [e.id for e in result] == [populated["goal"].id]

    def test_counts(self, entities, populated):
        counts = entities.get_counts()
        assert counts["total"] == 3
        assert counts["by_type"] == {"goal": 1, "problem": 1, "idea": 1, "action": 0}
        assert counts["by_status"]["active"] == 1

    def test_counts_for_gov(self, entities, populated):
        assert entities.get_counts("austin")["total"] == 2

    def test_graph_data(self, entities, populated):
        graph = entities.get_graph_data()
        assert len(graph["nodes"]) == 3
        assert graph["edges"] == [
            {"source": populated["problem"].id, "target": populated["goal"].id, "type": "threatens"}
        ]


class TestRemoveEntity:
    def test_remove_leaves_dangling_relations(self, make, entities):
        goal = make("goal", "Safe streets")
        problem = make("problem", "Pothole", relations=[{"type": "threatens", "target": goal.id}])
        assert entities.remove(goal.id) is True
        assert entities.find(goal.id) is None
        assert entities.find(problem.id).relations == [{"type": "threatens", "target": goal.id}]

    def test_remove_missing(self, entities):
        assert entities.remove("gg-ffff") is False

    def test_get_missing_raises(self, entities):
        with pytest.raises(NotFoundError):
            entities.get("gg-ffff")


class TestVocabulary:
    def test_types(self, entities):
        assert entities.types() == ["goal", "problem", "idea", "action"]

    def test_statuses(self, entities):
        assert entities.statuses("goal") == ["active", "deprecated"]

    def test_relation_types(self, entities):
        assert entities.relation_types()["threatens"] == {"from": "problem", "to": "goal"}

    def test_priorities(self, entities):
        assert entities.priorities() == [0, 1, 2, 3, 4]
