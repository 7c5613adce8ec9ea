"""
Tests for group persistence and upload validation.

Tests cover:
    - validate_company_data error cases (shape, required fields, depth, nesting)
    - Group create/read/update/delete on both backends
    - Tag upsert-by-type and removal
    - Comment add/edit/delete
"""

import json

import pytest

from company_mapper.errors import GroupNotFoundError, InvalidInputError
from company_mapper.models import CustomTag, DiliTrustModule, TagType
from company_mapper.storage import (
    JsonFileGroupStore,
    MemoryGroupStore,
    generate_group_id,
    slugify,
    validate_company_data,
)


@pytest.fixture(params=["memory", "file"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return MemoryGroupStore()
    return JsonFileGroupStore(tmp_path / "data")


@pytest.fixture
def saved_group(any_store, company_data):
    return any_store.create_group("Énergie Groupe", company_data, description="desc")


def chain(levels: int) -> dict:
    node = {"accountId": f"n{levels}", "name": "leaf", "allTags": [], "depth": levels, "subsidiaries": []}
    for level in range(levels - 1, -1, -1):
        node = {"accountId": f"n{level}", "name": "n", "allTags": [], "depth": level, "subsidiaries": [node]}
    return {"company": node, "metadata": {}}


# ============================================================
# UPLOAD VALIDATION
# ============================================================

class TestValidateCompanyData:

    def test_valid_document(self, raw_document):
        data = validate_company_data(raw_document)
        assert data.company.account_id == "acc-a"
        assert data.metadata.total_companies_scraped == 4

    @pytest.mark.parametrize("raw", [None, [], "text", 42])
    def test_document_must_be_object(self, raw):
        with pytest.raises(InvalidInputError, match="must be an object"):
            validate_company_data(raw)

    def test_company_required(self, raw_document):
        del raw_document["company"]
        with pytest.raises(InvalidInputError, match='"company"'):
            validate_company_data(raw_document)

    def test_metadata_required(self, raw_document):
        del raw_document["metadata"]
        with pytest.raises(InvalidInputError, match='"metadata"'):
            validate_company_data(raw_document)

    @pytest.mark.parametrize("field", ["accountId", "name", "allTags", "depth"])
    def test_required_company_fields(self, raw_document, field):
        del raw_document["company"][field]
        with pytest.raises(InvalidInputError, match=field):
            validate_company_data(raw_document)

    def test_root_depth_must_be_zero(self, raw_document):
        raw_document["company"]["depth"] = 1
        with pytest.raises(InvalidInputError, match="expected 0"):
            validate_company_data(raw_document)

    def test_child_depth_must_be_parent_plus_one(self, raw_document):
        raw_document["company"]["subsidiaries"][0]["subsidiaries"][0]["depth"] = 5
        with pytest.raises(InvalidInputError, match="expected 2"):
            validate_company_data(raw_document)

    def test_subsidiary_must_be_object(self, raw_document):
        raw_document["company"]["subsidiaries"].append("not a company")
        with pytest.raises(InvalidInputError, match="must be an object"):
            validate_company_data(raw_document)

    def test_nesting_limit(self):
        assert validate_company_data(chain(10), max_depth=10).company.depth == 0
        with pytest.raises(InvalidInputError, match="deeper than 10"):
            validate_company_data(chain(11), max_depth=10)

    def test_model_errors_become_invalid_input(self, raw_document):
        raw_document["company"]["allTags"] = "Energy"
        with pytest.raises(InvalidInputError, match="allTags"):
            validate_company_data(raw_document)


# ============================================================
# IDENTIFIERS
# ============================================================

class TestIdentifiers:

    def test_slugify_strips_accents(self):
        assert slugify("Énergie & Groupe SA") == "energie-groupe-sa"

    def test_slugify_never_empty(self):
        assert slugify("!!!") == "group"

    def test_group_id_is_slug_plus_suffix(self):
        assert generate_group_id("Énergie Groupe").startswith("energie-groupe-")


# ============================================================
# GROUPS
# ============================================================

class TestGroups:

    def test_create_and_get(self, any_store, saved_group, company_data):
        group = any_store.get_group(saved_group.id)
        assert group.metadata.name == "Énergie Groupe"
        assert group.metadata.is_public
        assert group.data == company_data

    def test_unknown_or_malformed_id(self, any_store):
        assert any_store.get_group("missing-1") is None
        assert any_store.get_group("../etc/passwd") is None

    def test_same_name_gets_distinct_ids(self, any_store, company_data):
        first = any_store.create_group("Dup", company_data)
        second = any_store.create_group("Dup", company_data)
        assert first.id != second.id

    def test_list_public_only(self, any_store, company_data):
        public = any_store.create_group("Public", company_data)
        private = any_store.create_group("Private", company_data, is_public=False)
        assert {g.id for g in any_store.list_groups()} == {public.id, private.id}
        assert [g.id for g in any_store.list_groups(public_only=True)] == [public.id]

    def test_update_metadata(self, any_store, saved_group):
        updated = any_store.update_group(saved_group.id, {"name": "Renamed", "is_public": False})
        assert updated.name == "Renamed"
        assert not updated.is_public
        assert updated.created_at == saved_group.created_at
        assert updated.updated_at >= saved_group.updated_at
        assert any_store.get_group_metadata(saved_group.id).name == "Renamed"

    def test_update_replaces_data(self, any_store, saved_group):
        new_data = validate_company_data(chain(1))
        any_store.update_group(saved_group.id, {}, new_data)
        assert any_store.get_group(saved_group.id).data.company.account_id == "n0"

    def test_update_rejects_unknown_fields(self, any_store, saved_group):
        with pytest.raises(InvalidInputError):
            any_store.update_group(saved_group.id, {"id": "hijack"})

    def test_update_missing_group(self, any_store):
        assert any_store.update_group("missing-1", {"name": "x"}) is None

    def test_delete_drops_annotations(self, any_store, saved_group):
        any_store.add_tag(saved_group.id, "acc-b", CustomTag(type=TagType.TOP20))
        any_store.add_comment(saved_group.id, "acc-b", "note")
        assert any_store.delete_group(saved_group.id)
        assert any_store.get_group(saved_group.id) is None
        assert any_store.get_tags(saved_group.id) == {}
        assert any_store.get_comments(saved_group.id) == {}
        assert not any_store.delete_group(saved_group.id)


def test_file_store_layout(tmp_path, company_data):
    data_dir = tmp_path / "data"
    store = JsonFileGroupStore(data_dir)
    assert not data_dir.exists()

    meta = store.create_group("Layout", company_data)
    state = json.loads((data_dir / "metadata.json").read_text(encoding="utf-8"))
    assert set(state) >= {"groups", "tags", "comments", "config"}
    assert state["groups"][meta.id]["isPublic"] is True
    saved = json.loads((data_dir / "groups" / f"{meta.id}.json").read_text(encoding="utf-8"))
    assert saved["company"]["accountId"] == "acc-a"

    # a second store over the same directory sees the same groups
    assert JsonFileGroupStore(data_dir).get_group(meta.id).metadata.name == "Layout"


# ============================================================
# TAGS
# ============================================================

class TestTags:

    def test_add_and_get(self, any_store, saved_group):
        any_store.add_tag(saved_group.id, "acc-b", CustomTag(type=TagType.TOP20))
        tags = any_store.get_tags(saved_group.id)
        assert [t.type for t in tags["acc-b"]] == [TagType.TOP20]

    def test_same_type_is_replaced(self, any_store, saved_group):
        gid = saved_group.id
        any_store.add_tag(gid, "acc-b", CustomTag(type=TagType.CLIENT_DILITRUST, modules=[DiliTrustModule.BP]))
        any_store.add_tag(gid, "acc-b", CustomTag(type=TagType.TOP50))
        result = any_store.add_tag(
            gid, "acc-b", CustomTag(type=TagType.CLIENT_DILITRUST, modules=[DiliTrustModule.CLM])
        )
        assert [t.type for t in result] == [TagType.TOP50, TagType.CLIENT_DILITRUST]
        assert result[-1].modules == [DiliTrustModule.CLM]
        assert any_store.get_tags(gid)["acc-b"] == result

    def test_remove(self, any_store, saved_group):
        gid = saved_group.id
        any_store.add_tag(gid, "acc-b", CustomTag(type=TagType.TOP20))
        assert any_store.remove_tag(gid, "acc-b", TagType.TOP20)
        assert "acc-b" not in any_store.get_tags(gid)
        assert not any_store.remove_tag(gid, "acc-b", TagType.TOP20)

    def test_unknown_group(self, any_store):
        with pytest.raises(GroupNotFoundError):
            any_store.add_tag("missing-1", "acc-b", CustomTag(type=TagType.TOP20))

    def test_modules_only_on_client_tags(self):
        with pytest.raises(ValueError):
            CustomTag(type=TagType.TOP20, modules=[DiliTrustModule.BP])


# ============================================================
# COMMENTS
# ============================================================

class TestComments:

    def test_add_defaults_author(self, any_store, saved_group):
        comment = any_store.add_comment(saved_group.id, "acc-c", "Met the CFO")
        assert comment.author == "Admin"
        assert comment.company_account_id == "acc-c"
        assert comment.id.startswith("comment-")
        assert any_store.get_comments(saved_group.id)["acc-c"] == [comment]

    def test_update(self, any_store, saved_group):
        comment = any_store.add_comment(saved_group.id, "acc-c", "draft", author="Jo")
        updated = any_store.update_comment(saved_group.id, comment.id, "final")
        assert updated.text == "final"
        assert updated.author == "Jo"
        assert updated.created_at == comment.created_at
        assert any_store.get_comments(saved_group.id)["acc-c"][0].text == "final"

    def test_delete(self, any_store, saved_group):
        comment = any_store.add_comment(saved_group.id, "acc-c", "gone soon")
        assert any_store.delete_comment(saved_group.id, comment.id)
        assert any_store.get_comments(saved_group.id) == {}
        assert not any_store.delete_comment(saved_group.id, comment.id)

    def test_missing_comment(self, any_store, saved_group):
        assert any_store.update_comment(saved_group.id, "comment-0-none", "x") is None

    def test_unknown_group(self, any_store):
        with pytest.raises(GroupNotFoundError):
            any_store.add_comment("missing-1", "acc-c", "text")
