"""
Tests for query-parameter filtering.
"""

import uuid

import pytest

from entity_shared.utils.exceptions import InvalidInputError
from entity_api.schemas.billing import SubscriptionPlanCreate
from entity_api.schemas.catalog import ChildCreate, ItemCreate, ParentCreate
from entity_api.schemas.course import ChapterCreate, CourseCreate, SectionCreate
from entity_api.services.entity.filters import FilterManager, split_values
from entity_api.services.entity.pagination import OffsetParams


def names(page):
    return sorted(getattr(item, "name", None) or item.title for item in page.items)


@pytest.fixture
def list_names(service, db_session):
    def _list(entity_name, filters):
        page = service.list_offset(db_session, entity_name, OffsetParams.parse(1, 100), filters=filters)
        return names(page)

    return _list


class TestSplitValues:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("a", ["a"]),
            ("a,b", ["a", "b"]),
            (" a , ,b ", ["a", "b"]),
            (["a", "b,c"], ["a", "b", "c"]),
            ("", []),
        ],
    )
    def test_split(self, raw, expected):
        assert split_values(raw) == expected


class TestStrategySelection:
    def test_strategy_per_key(self, kernel):
        courses = FilterManager(kernel.registry.lookup("Course"))
        children = FilterManager(kernel.registry.lookup("Child"))
        sections = FilterManager(kernel.registry.lookup("Section"))

        assert courses.strategy_for("category").name == "direct"
        assert courses.strategy_for("chapterIds").name == "many_to_many"
        assert children.strategy_for("parentId").name == "foreign_key"
        assert sections.strategy_for("courseId").name == "relationship_path"
        assert courses.strategy_for("color") is None
        assert courses.strategy_for("ownerIds") is None


class TestDirectColumnFilter:
    def test_equality_and_in(self, service, db_session, list_names):
        for name, category in (("Algebra", "math"), ("Drawing", "art"), ("Geometry", "math"), ("Music", "sound")):
            service.create(db_session, "Course", CourseCreate(name=name, title=name, category=category))

        assert list_names("Course", {"category": ["math"]}) == ["Algebra", "Geometry"]
        assert list_names("Course", {"category": ["math,art"]}) == ["Algebra", "Drawing", "Geometry"]
        assert list_names("Course", {"category": ["art", "sound"]}) == ["Drawing", "Music"]

    def test_camel_case_and_typed_values(self, service, db_session, list_names):
        service.create(db_session, "SubscriptionPlan", SubscriptionPlanCreate(name="Free", price_amount=0, is_active=True))
        service.create(db_session, "SubscriptionPlan", SubscriptionPlanCreate(name="Legacy", price_amount=500, is_active=False))

        assert list_names("SubscriptionPlan", {"isActive": ["false"]}) == ["Legacy"]
        assert list_names("SubscriptionPlan", {"priceAmount": ["0"]}) == ["Free"]

    def test_unknown_and_json_parameters_are_ignored(self, service, db_session, list_names):
        service.create(db_session, "SubscriptionPlan", SubscriptionPlanCreate(name="Pro", features=["sso"]))

        assert list_names("SubscriptionPlan", {"color": ["red"], "features": ["sso"]}) == ["Pro"]

    def test_uncoercible_value_is_bad_input(self, service, db_session):
        service.create(db_session, "Item", ItemCreate(name="Widget", quantity=1))
        with pytest.raises(InvalidInputError) as exc_info:
            service.list_offset(db_session, "Item", OffsetParams.parse(), filters={"quantity": ["lots"]})
        assert exc_info.value.code == "ENT008"

    def test_soft_deleted_rows_never_match(self, service, db_session, list_names):
        kept = service.create(db_session, "Item", ItemCreate(name="Kept", quantity=2))
        gone = service.create(db_session, "Item", ItemCreate(name="Gone", quantity=2))
        service.delete(db_session, "Item", gone.id, scoped=True)

        assert list_names("Item", {"quantity": ["2"]}) == [kept.name]


class TestForeignKeyFilter:
    def test_parent_id(self, service, db_session, list_names):
        first = service.create(db_session, "Parent", ParentCreate(name="First"))
        second = service.create(db_session, "Parent", ParentCreate(name="Second"))
        service.create(db_session, "Child", ChildCreate(name="a", parent_id=first.id))
        service.create(db_session, "Child", ChildCreate(name="b", parent_id=second.id))
        service.create(db_session, "Child", ChildCreate(name="c", parent_id=first.id))

        assert list_names("Child", {"parentId": [str(first.id)]}) == ["a", "c"]
        assert list_names("Child", {"parentId": [f"{first.id},{second.id}"]}) == ["a", "b", "c"]

    def test_malformed_id(self, service, db_session):
        with pytest.raises(InvalidInputError):
            service.list_offset(db_session, "Child", OffsetParams.parse(), filters={"parentId": ["not-a-uuid"]})


class TestManyToManyFilter:
    def test_chapter_ids(self, service, db_session, list_names):
        shared = service.create(db_session, "Chapter", ChapterCreate(title="Shared"))
        solo = service.create(db_session, "Chapter", ChapterCreate(title="Solo"))
        service.create(db_session, "Course", CourseCreate(name="One", title="One", chapter_ids=[shared.id]))
        service.create(db_session, "Course", CourseCreate(name="Two", title="Two", chapter_ids=[shared.id, solo.id]))
        service.create(db_session, "Course", CourseCreate(name="Three", title="Three"))

        assert list_names("Course", {"chapterIds": [str(shared.id)]}) == ["One", "Two"]
        assert list_names("Course", {"chapterIds": [str(solo.id)]}) == ["Two"]
        assert list_names("Course", {"chapterIds": [str(uuid.uuid4())]}) == []


class TestRelationshipPathFilter:
    def test_sections_by_course(self, service, db_session, list_names):
        intro = service.create(db_session, "Section", SectionCreate(title="Intro"))
        proofs = service.create(db_session, "Section", SectionCreate(title="Proofs"))
        sketches = service.create(db_session, "Section", SectionCreate(title="Sketches"))

        logic = service.create(db_session, "Chapter", ChapterCreate(title="Logic", section_ids=[intro.id, proofs.id]))
        drawing = service.create(db_session, "Chapter", ChapterCreate(title="Drawing", section_ids=[intro.id, sketches.id]))

        math = service.create(db_session, "Course", CourseCreate(name="Math", title="Math", chapter_ids=[logic.id]))
        art = service.create(db_session, "Course", CourseCreate(name="Art", title="Art", chapter_ids=[drawing.id]))

        assert list_names("Section", {"courseId": [str(math.id)]}) == ["Intro", "Proofs"]
        assert list_names("Section", {"courseId": [str(art.id)]}) == ["Intro", "Sketches"]
        assert list_names("Section", {"courseId": [f"{math.id},{art.id}"]}) == ["Intro", "Proofs", "Sketches"]
        assert list_names("Section", {"courseId": [str(uuid.uuid4())]}) == []

    def test_combined_with_direct_filter(self, service, db_session, list_names):
        intro = service.create(db_session, "Section", SectionCreate(title="Intro", body="x"))
        service.create(db_session, "Section", SectionCreate(title="Other", body="x"))
        chapter = service.create(db_session, "Chapter", ChapterCreate(title="Logic", section_ids=[intro.id]))
        course = service.create(db_session, "Course", CourseCreate(name="Math", title="Math", chapter_ids=[chapter.id]))

        assert list_names("Section", {"courseId": [str(course.id)], "body": ["x"]}) == ["Intro"]
        assert list_names("Section", {"courseId": [str(course.id)], "body": ["y"]}) == []
