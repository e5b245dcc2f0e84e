"""
Tests for nested-write directives and their normalization.
"""
import pytest

from prisma_client.errors import InvalidNestedWriteError
from prisma_client.inputs import (
    DIRECTIVE_ORDER,
    Connect,
    Create,
    Delete,
    Disconnect,
    Set,
    Update,
    Upsert,
    is_relation_input,
    normalize_relation_input,
)


class TestDirectives:
    """Test directive dataclasses."""

    def test_entries_wrap_single_values(self):
        assert Create({"title": "A"}).entries() == [{"title": "A"}]
        assert Connect([{"id": "1"}, {"id": "2"}]).entries() == [{"id": "1"}, {"id": "2"}]
        assert Disconnect().entries() == []

    def test_kinds(self):
        kinds = {cls(None).kind for cls in (Create, Connect, Delete, Disconnect, Set)}
        assert kinds == {"create", "connect", "delete", "disconnect", "set"}
        assert Update(data={}).kind == "update"
        assert Upsert(create={}, update={}).kind == "upsert"

    def test_is_relation_input(self):
        assert is_relation_input(Create({}))
        assert is_relation_input([Create({}), Connect({"id": "1"})])
        assert is_relation_input({"connect": {"id": "1"}})
        assert not is_relation_input({"title": "A"})
        assert not is_relation_input("text")
        assert not is_relation_input([])


class TestNormalizeList:
    """Test normalization on list relations."""

    def test_directives_sorted_in_application_order(self):
        directives = normalize_relation_input(
            [Connect({"id": "1"}), Create({"title": "A"}), Set([]), Disconnect({"id": "2"})],
            is_list=True,
        )
        assert [d.kind for d in directives] == ["set", "disconnect", "create", "connect"]
        assert DIRECTIVE_ORDER[0] == "set"

    def test_mapping_form(self):
        directives = normalize_relation_input(
            {
                "create": [{"title": "A"}],
                "update": [{"where": {"id": "1"}, "data": {"title": "B"}}],
                "upsert": [{"where": {"id": "2"}, "create": {"title": "C"}, "update": {"title": "D"}}],
                "delete": [{"id": "3"}],
            },
            is_list=True,
        )

        assert [d.kind for d in directives] == ["delete", "update", "upsert", "create"]
        update = directives[1]
        assert update.where == {"id": "1"}
        assert update.data == {"title": "B"}
        upsert = directives[2]
        assert upsert.create == {"title": "C"}
        assert upsert.update == {"title": "D"}

    def test_update_needs_where(self):
        with pytest.raises(InvalidNestedWriteError, match="needs `where`"):
            normalize_relation_input(Update(data={"title": "x"}), is_list=True, field_name="posts")

    def test_disconnect_needs_where(self):
        with pytest.raises(InvalidNestedWriteError, match="needs `where`"):
            normalize_relation_input(Disconnect(), is_list=True)

    def test_unknown_mapping_key(self):
        with pytest.raises(InvalidNestedWriteError, match="unknown nested-write keys"):
            normalize_relation_input({"create": {}, "attach": {}}, is_list=True)

    def test_scalar_value_rejected(self):
        with pytest.raises(InvalidNestedWriteError, match="expected nested-write directives"):
            normalize_relation_input("abc", is_list=True)


class TestNormalizeToOne:
    """Test normalization on to-one relations."""

    def test_single_directive(self):
        directives = normalize_relation_input(Connect({"id": "1"}), is_list=False)
        assert [d.kind for d in directives] == ["connect"]

    def test_only_one_directive(self):
        with pytest.raises(InvalidNestedWriteError, match="exactly one directive"):
            normalize_relation_input([Create({}), Connect({"id": "1"})], is_list=False)

    def test_set_only_on_lists(self):
        with pytest.raises(InvalidNestedWriteError, match="only valid on list"):
            normalize_relation_input(Set([{"id": "1"}]), is_list=False)

    def test_create_takes_single_value(self):
        with pytest.raises(InvalidNestedWriteError, match="single value"):
            normalize_relation_input(Create([{}, {}]), is_list=False)

    def test_disconnect_takes_no_selector(self):
        with pytest.raises(InvalidNestedWriteError, match="no selector"):
            normalize_relation_input(Disconnect({"id": "1"}), is_list=False)

    def test_mapping_booleans(self):
        directives = normalize_relation_input({"disconnect": True}, is_list=False)
        assert isinstance(directives[0], Disconnect)

        with pytest.raises(InvalidNestedWriteError, match="must be true"):
            normalize_relation_input({"delete": {"id": "1"}}, is_list=False)

    def test_mapping_update_and_upsert(self):
        [update] = normalize_relation_input({"update": {"bio": "hi"}}, is_list=False)
        assert update.data == {"bio": "hi"} and update.where is None

        [upsert] = normalize_relation_input({"upsert": {"create": {"bio": "a"}, "update": {"bio": "b"}}}, is_list=False)
        assert upsert.create == {"bio": "a"}
        assert upsert.update == {"bio": "b"}
