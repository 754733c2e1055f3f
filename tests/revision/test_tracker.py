"""Tests for the revision save pipeline.

Tests that the tracker:
- Records one revision per changed, revisionable, scalar field on update
- Never records revisions for creations
- Honors inclusion / exclusion lists and the enable flag
- Writes nothing when the save itself fails
- Keeps earlier revisions when a later revision write fails
"""

from datetime import UTC, datetime

import pytest
from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import revisionable.revision.tracker as tracker_module
from revisionable.db.models import Revision
from revisionable.revision.errors import RevisionImmutableError
from revisionable.revision.tracker import RevisionTracker, is_scalar, serialize_scalar
from tests.models import Page, Post, Setting, Tag


def _count_revisions(session) -> int:
    return session.execute(select(func.count()).select_from(Revision)).scalar_one()


def _changes(revisions: list[Revision]) -> dict[str, tuple[str | None, str | None]]:
    return {revision.key: (revision.old_value, revision.new_value) for revision in revisions}


@pytest.fixture
def tracker() -> RevisionTracker:
    return RevisionTracker()


@pytest.fixture
def post(db_session) -> Post:
    post = Post(title="Draft title", status="draft", is_public=False, price=10.0)
    db_session.add(post)
    db_session.commit()
    return post


class TestUpdates:
    """Test revisions recorded for updates."""

    def test_one_revision_per_changed_field(self, tracker, db_session, post):
        post.title = "Final title"
        post.status = "live"

        revisions = tracker.save(db_session, post, actor_id=7)

        assert _changes(revisions) == {
            "title": ("Draft title", "Final title"),
            "status": ("draft", "live"),
        }
        for revision in revisions:
            assert revision.entity_type == "Post"
            assert revision.entity_id == str(post.id)
            assert revision.actor_id == "7"
            assert revision.created_at is not None
        assert _count_revisions(db_session) == 2

    def test_loaded_values_are_used_as_old_values(self, tracker, db_session, post):
        assert post.title == "Draft title"  # load before changing

        post.title = "Edited"
        revisions = tracker.save(db_session, post)

        assert _changes(revisions) == {"title": ("Draft title", "Edited")}

    def test_setting_the_same_value_records_nothing(self, tracker, db_session, post):
        post.title = "Draft title"

        assert tracker.save(db_session, post) == []
        assert _count_revisions(db_session) == 0

    def test_unchanged_entity_records_nothing(self, tracker, db_session, post):
        assert tracker.save(db_session, post) == []

    def test_null_and_boolean_values_are_serialized(self, tracker, db_session, post):
        post.status = None
        post.is_public = True
        post.price = 12.5

        revisions = tracker.save(db_session, post)

        assert _changes(revisions) == {
            "status": ("draft", None),
            "is_public": ("0", "1"),
            "price": ("10.0", "12.5"),
        }

    def test_null_old_value(self, tracker, db_session, post):
        post.author_id = 3

        revisions = tracker.save(db_session, post)

        assert _changes(revisions) == {"author_id": (None, "3")}

    def test_non_scalar_fields_are_never_tracked(self, tracker, db_session, post):
        post.title = "With date"
        post.published_at = datetime(2024, 6, 15, tzinfo=UTC)
        post.extra = {"tags": ["a", "b"]}

        revisions = tracker.save(db_session, post)

        assert _changes(revisions) == {"title": ("Draft title", "With date")}

    def test_entity_save_is_committed(self, tracker, db_session, session_factory, post):
        post.title = "Committed"
        tracker.save(db_session, post)

        with session_factory() as other:
            assert other.get(Post, post.id).title == "Committed"

    def test_change_flushed_before_save_is_not_recorded(self, tracker, engine, post):
        messages: list[str] = []
        handler_id = logger.add(lambda message: messages.append(str(message)), level="DEBUG")
        try:
            with Session(engine) as autoflush_session:
                flushed = autoflush_session.get(Post, post.id)
                flushed.title = "Flushed early"
                autoflush_session.execute(select(func.count()).select_from(Post)).scalar_one()

                assert tracker.save(autoflush_session, flushed) == []
                assert _count_revisions(autoflush_session) == 0
        finally:
            logger.remove(handler_id)

        assert any("not recorded" in message for message in messages)


class TestCreation:
    """Test that creations never produce revisions."""

    def test_new_entity(self, tracker, db_session):
        post = Post(title="Brand new", status="draft")

        revisions = tracker.save(db_session, post)

        assert revisions == []
        assert post.id is not None
        assert _count_revisions(db_session) == 0

    def test_new_entity_with_inclusion_list(self, tracker, db_session):
        assert tracker.save(db_session, Tag(name="python", status="new")) == []
        assert _count_revisions(db_session) == 0


class TestPolicy:
    """Test inclusion / exclusion lists and the enable flag."""

    def test_inclusion_list(self, tracker, db_session):
        tag = Tag(name="python", status="new")
        tracker.save(db_session, tag)

        tag.name = "python3"
        tag.status = "popular"
        revisions = tracker.save(db_session, tag)

        assert _changes(revisions) == {"status": ("new", "popular")}

    def test_exclusion_list(self, tracker, db_session):
        page = Page(name="Home", status="draft")
        tracker.save(db_session, page)

        page.name = "Start"
        page.status = "live"
        revisions = tracker.save(db_session, page)

        assert _changes(revisions) == {"status": ("draft", "live")}

    def test_runtime_disabled_field(self, tracker, db_session, post):
        post.disable_revision_field(["title"])
        post.title = "Quiet change"
        post.status = "live"

        revisions = tracker.save(db_session, post)

        assert _changes(revisions) == {"status": ("draft", "live")}

    def test_disabled_model(self, tracker, db_session):
        setting = Setting(value="a")
        tracker.save(db_session, setting)

        setting.value = "b"

        assert tracker.before_save(db_session, setting) is None
        assert tracker.save(db_session, setting) == []
        assert _count_revisions(db_session) == 0


class TestActor:
    """Test how the responsible actor is chosen."""

    def test_no_actor(self, tracker, db_session, post):
        post.title = "Anonymous"

        revisions = tracker.save(db_session, post)

        assert revisions[0].actor_id is None

    def test_actor_provider(self, db_session, post):
        tracker = RevisionTracker(actor_provider=lambda: "user-42")
        post.title = "Provided"

        revisions = tracker.save(db_session, post)

        assert revisions[0].actor_id == "user-42"

    def test_explicit_actor_wins_over_provider(self, db_session, post):
        tracker = RevisionTracker(actor_provider=lambda: "user-42")
        post.title = "Explicit"

        revisions = tracker.save(db_session, post, actor_id="user-1")

        assert revisions[0].actor_id == "user-1"


class TestFailures:
    """Test failure handling of the save and revision writes."""

    def test_failed_save_writes_no_revisions(self, tracker, db_session):
        first = Tag(name="python", status="new")
        second = Tag(name="rust", status="new")
        tracker.save(db_session, first)
        tracker.save(db_session, second)

        second.name = "python"
        second.status = "duplicate"

        with pytest.raises(IntegrityError):
            tracker.save(db_session, second)

        assert _count_revisions(db_session) == 0

    def test_partial_revision_failure_keeps_earlier_writes(self, tracker, db_session, session_factory, post, monkeypatch):
        calls = []
        real_create_revision = tracker_module.create_revision

        def flaky_create_revision(session, **kwargs):
            calls.append(kwargs["key"])
            if len(calls) == 2:
                raise RuntimeError("revision storage unavailable")
            return real_create_revision(session, **kwargs)

        monkeypatch.setattr(tracker_module, "create_revision", flaky_create_revision)

        post.title = "Partial"
        post.status = "live"

        with pytest.raises(RuntimeError, match="revision storage unavailable"):
            tracker.save(db_session, post)

        with session_factory() as other:
            assert _count_revisions(other) == 1
            stored = other.get(Post, post.id)
            assert stored.title == "Partial"
            assert stored.status == "live"


def test_revisions_are_immutable(tracker, db_session, post):
    post.title = "Changed"
    revision = tracker.save(db_session, post)[0]

    revision.new_value = "Tampered"

    with pytest.raises(RevisionImmutableError):
        db_session.commit()


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, True), ("a", True), (1, True), (1.5, True), (False, True), (datetime(2024, 1, 1), False), ({"a": 1}, False)],
)
def test_is_scalar(value, expected):
    assert is_scalar(value) is expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, None), (True, "1"), (False, "0"), (3, "3"), ("text", "text")],
)
def test_serialize_scalar(value, expected):
    assert serialize_scalar(value) == expected
