"""
Tests for where-filter evaluation in the local engine.
"""
import pytest

from prisma_client.engine import MutationExecutor, matches, scalar_matches
from prisma_client.errors import UnknownFieldError
from prisma_client.inputs import Create
from prisma_client.operations import Operation, OperationKind


@pytest.fixture
def executor(datamodel):
    """Three users: alice (ADMIN, 5), bob (ADMIN, 1, no name), carol (READER, 3)."""
    executor = MutationExecutor(datamodel)
    users = [
        {
            "email": "alice@example.com",
            "name": "Alice",
            "role": "ADMIN",
            "karma": 5,
            "posts": Create(
                [
                    {"slug": "hello", "title": "Hello", "published": True},
                    {"slug": "draft", "title": "Draft"},
                ]
            ),
        },
        {"email": "bob@example.com", "role": "ADMIN", "karma": 1, "profile": Create({"bio": "hi"})},
        {
            "email": "carol@example.com",
            "name": "Carol",
            "karma": 3,
            "posts": Create({"slug": "notes", "title": "Notes", "published": True}),
        },
    ]
    for data in users:
        executor.execute(Operation(OperationKind.CREATE, "User", data=data))
    return executor


def emails(executor, where):
    users = executor.execute(Operation(OperationKind.FIND_MANY, "User", where=where, order_by="email_ASC"))
    return [u["email"].split("@")[0] for u in users]


class TestLogicalOperators:
    """Test AND, OR and NOT."""

    def test_and(self, executor):
        assert emails(executor, {"AND": [{"role": "ADMIN"}, {"karma_lt": 5}]}) == ["bob"]

    def test_or(self, executor):
        assert emails(executor, {"OR": [{"karma": 1}, {"name": "Carol"}]}) == ["bob", "carol"]

    def test_empty_or_matches_everything(self, executor):
        assert emails(executor, {"OR": []}) == ["alice", "bob", "carol"]

    def test_not_combines_its_filters_by_and(self, executor):
        where = {"NOT": [{"role": "ADMIN"}, {"karma_gte": 5}]}
        assert emails(executor, where) == ["bob", "carol"]

    def test_not_with_single_filter(self, executor):
        assert emails(executor, {"NOT": {"role": "ADMIN", "karma_gte": 5}}) == ["bob", "carol"]
        assert emails(executor, {"NOT": {"role": "ADMIN"}}) == ["carol"]

    def test_nested(self, executor):
        where = {"OR": [{"AND": [{"role": "ADMIN"}, {"karma_gt": 1}]}, {"NOT": {"karma_gte": 2}}]}
        assert emails(executor, where) == ["alice", "bob"]


class TestRelationFilters:
    """Test list and to-one relation filters."""

    def test_some(self, executor):
        assert emails(executor, {"posts_some": {"published": False}}) == ["alice"]

    def test_every(self, executor):
        assert emails(executor, {"posts_every": {"published": True}}) == ["bob", "carol"]

    def test_every_on_empty_relation_is_true(self, executor):
        assert "bob" in emails(executor, {"posts_every": {"slug": "nothing"}})

    def test_none(self, executor):
        assert emails(executor, {"posts_none": {"published": True}}) == ["bob"]

    def test_to_one_null(self, executor):
        assert emails(executor, {"profile": None}) == ["alice", "carol"]

    def test_to_one_match(self, executor):
        assert emails(executor, {"profile": {"bio": "hi"}}) == ["bob"]

    def test_filter_from_the_other_side(self, executor):
        posts = executor.execute(
            Operation(OperationKind.FIND_MANY, "Post", where={"author": {"role": "READER"}}, order_by="slug_ASC")
        )
        assert [p["slug"] for p in posts] == ["notes"]


class TestScalarFilters:
    """Test scalar operators evaluated against stored records."""

    def test_in_and_not_in(self, executor):
        assert emails(executor, {"email_in": ["alice@example.com", "carol@example.com"]}) == ["alice", "carol"]
        assert emails(executor, {"role_not_in": ["ADMIN"]}) == ["carol"]
        assert emails(executor, {"email_in": []}) == []

    def test_null(self, executor):
        assert emails(executor, {"name": None}) == ["bob"]
        assert emails(executor, {"name_not": None}) == ["alice", "carol"]

    def test_ordering(self, executor):
        assert emails(executor, {"karma_lt": 3}) == ["bob"]
        assert emails(executor, {"karma_lte": 3}) == ["bob", "carol"]
        assert emails(executor, {"karma_gt": 3}) == ["alice"]

    def test_text(self, executor):
        assert emails(executor, {"name_contains": "aro"}) == ["carol"]
        assert emails(executor, {"name_starts_with": "Al"}) == ["alice"]
        assert emails(executor, {"name_ends_with": "ol"}) == ["carol"]

    def test_negated_text_skips_null(self, executor):
        assert emails(executor, {"name_not_contains": "Ali"}) == ["carol"]
        assert emails(executor, {"name_not_starts_with": "Al"}) == ["carol"]
        assert emails(executor, {"name_not_ends_with": "ce"}) == ["carol"]

    def test_unknown_filter(self, executor, datamodel):
        user = datamodel.model("User")
        record = executor.store.records("User")[0]

        with pytest.raises(UnknownFieldError):
            matches(datamodel, executor.store, user, record, {"nickname": "x"})

    def test_empty_where(self, executor, datamodel):
        user = datamodel.model("User")
        record = executor.store.records("User")[0]

        assert matches(datamodel, executor.store, user, record, None)
        assert matches(datamodel, executor.store, user, record, {})


class TestScalarMatches:
    """Test scalar_matches on single values."""

    def test_datetime_comparisons_use_utc(self, datamodel):
        created = datamodel.model("User").field("createdAt")
        stored = "2024-05-01T12:00:00.000Z"

        assert scalar_matches(created, "gt", stored, "2024-05-01T13:00:00+02:00")
        assert scalar_matches(created, "lte", stored, "2024-05-01T12:00:00Z")
        assert not scalar_matches(created, "lt", stored, "2024-05-01T12:00:00Z")
        assert scalar_matches(created, None, stored, "2024-05-01T14:00:00+02:00")

    def test_datetime_in(self, datamodel):
        created = datamodel.model("User").field("createdAt")

        assert scalar_matches(created, "in", "2024-05-01T12:00:00.000Z", ["2024-05-01T12:00:00Z"])
        assert scalar_matches(created, "not_in", "2024-05-01T12:00:00.000Z", ["2024-05-02T12:00:00Z"])

    def test_comparisons_with_null_never_match(self, datamodel):
        karma = datamodel.model("User").field("karma")

        assert not scalar_matches(karma, "lt", None, 3)
        assert not scalar_matches(karma, "gte", 3, None)
        assert scalar_matches(karma, "not", None, 3)
