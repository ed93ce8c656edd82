"""Tests for the government registry."""

import pytest

from govtrack.errors import ValidationError


class TestCreateGovernment:
    def test_defaults(self, governments):
        gov = governments.create({"name": "Austin"})
        assert gov.id.startswith("gt-")
        assert gov.slug == "austin"
        assert gov.type == "city"
        assert gov.status == "active"
        assert gov.state is None
        assert gov.created_at == gov.updated_at

    def test_slug_from_name(self, governments):
        gov = governments.create({"name": "  Travis County!!! ", "type": "county", "state": "TX"})
        assert gov.slug == "travis-county"
        assert gov.name == "Travis County!!!"

    def test_custom_slug(self, governments):
        assert governments.create({"name": "Austin", "slug": "atx"}).slug == "atx"

    def test_slugs_are_unique(self, governments):
        a = governments.create({"name": "Springfield"})
        b = governments.create({"name": "Springfield"})
        c = governments.create({"name": "Springfield"})
        assert [a.slug, b.slug, c.slug] == ["springfield", "springfield-2", "springfield-3"]

    @pytest.mark.parametrize("data", [
        {},
        {"name": ""},
        {"name": "x" * 201},
        {"name": "Austin", "type": "kingdom"},
        {"name": "Austin", "state": "tx"},
        {"name": "Austin", "state": "TEX"},
    ])
    def test_invalid(self, governments, data, store):
        with pytest.raises(ValidationError):
            governments.create(data)
        assert store.read_all("governments") == []


class TestFindGovernment:
    def test_by_id_and_slug(self, governments):
        gov = governments.create({"name": "Austin"})
        assert governments.find(gov.id).id == gov.id
        assert governments.find("austin").id == gov.id

    def test_missing(self, governments):
        assert governments.find("nowhere") is None
        assert governments.find("gt-ffff") is None
        assert governments.find("") is None

    def test_list_filters(self, governments):
        governments.create({"name": "Austin", "state": "TX"})
        governments.create({"name": "Travis", "type": "county", "state": "TX"})
        governments.create({"name": "Portland", "state": "OR"})
        assert len(governments.list()) == 3
        assert len(governments.list({"state": "TX"})) == 2
        assert [g.name for g in governments.list({"type": "county"})] == ["Travis"]


class TestUpdateGovernment:
    def test_update_name_and_metadata(self, governments):
        gov = governments.create({"name": "Austin", "metadata": {"pop": 1}})
        updated = governments.update("austin", {"name": "City of Austin", "metadata": {"mayor": "x"}})
        assert updated.name == "City of Austin"
        assert updated.slug == "austin"
        assert updated.metadata == {"pop": 1, "mayor": "x"}
        assert updated.id == gov.id

    def test_invalid_status(self, governments):
        governments.create({"name": "Austin"})
        with pytest.raises(ValidationError):
            governments.update("austin", {"status": "dissolved"})

    def test_update_missing(self, governments):
        assert governments.update("nowhere", {"name": "x"}) is None

    def test_remove(self, governments):
        governments.create({"name": "Austin"})
        assert governments.remove("austin") is True
        assert governments.find("austin") is None
        assert governments.remove("austin") is False

    def test_vocabulary(self, governments):
        assert "county" in governments.types()
        assert governments.statuses() == ["active", "inactive"]
