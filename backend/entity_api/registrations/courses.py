"""
Course, Chapter and Section registrations.

Courses link chapters and chapters link sections through join tables.
Deleting a course removes the chapters no other course uses, and each of
those removes its orphaned sections. Sections can be filtered by course
with ``?courseId=<id>``.
"""

from sqlalchemy.orm import Session

from entity_shared.config.constants import Actions, Roles
from entity_api.hooks.cascade_delete import CascadeOrphanDeleteHook
from entity_api.models import Chapter, Course, Section, chapter_sections, course_chapters
from entity_api.schemas.course import (
    ChapterCreate,
    ChapterEdit,
    ChapterOutput,
    CourseCreate,
    CourseEdit,
    CourseOutput,
    SectionCreate,
    SectionEdit,
    SectionOutput,
)
from entity_api.services.entity.converters import build_output, fields_to_model, resolve_related
from entity_api.services.entity.descriptor import (
    Converters,
    EntityDescriptor,
    RelationshipFilter,
    RelationshipStep,
    SwaggerConfig,
    edit_to_map,
)
from entity_api.services.entity.hooks import HookRegistry
from entity_api.services.entity.registry import EntityRegistry


DEFAULT_ROLES = {
    Roles.USER: Actions.READ_CREATE,
    Roles.EDITOR: Actions.WRITE,
    Roles.ADMINISTRATOR: Actions.ALL,
}


# =============================================================================
# Converters
# =============================================================================


def course_to_model(dto: CourseCreate, db: Session) -> Course:
    course = fields_to_model(Course, dto, exclude={"chapter_ids"})
    if dto.chapter_ids:
        course.chapters = resolve_related(db, Chapter, dto.chapter_ids, "chapterIds")
    return course


def chapter_to_model(dto: ChapterCreate, db: Session) -> Chapter:
    chapter = fields_to_model(Chapter, dto, exclude={"course_ids", "section_ids"})
    if dto.course_ids:
        chapter.courses = resolve_related(db, Course, dto.course_ids, "courseIds")
    if dto.section_ids:
        chapter.sections = resolve_related(db, Section, dto.section_ids, "sectionIds")
    return chapter


def section_to_model(dto: SectionCreate, db: Session) -> Section:
    section = fields_to_model(Section, dto, exclude={"chapter_ids"})
    if dto.chapter_ids:
        section.chapters = resolve_related(db, Chapter, dto.chapter_ids, "chapterIds")
    return section


def course_to_output(course: Course, _seen: frozenset = frozenset()) -> CourseOutput:
    return build_output(CourseOutput, course, {"chapters": chapter_to_output}, _seen)


def chapter_to_output(chapter: Chapter, _seen: frozenset = frozenset()) -> ChapterOutput:
    return build_output(
        ChapterOutput,
        chapter,
        {"courses": course_to_output, "sections": section_to_output},
        _seen,
    )


def section_to_output(section: Section, _seen: frozenset = frozenset()) -> SectionOutput:
    return build_output(SectionOutput, section, {"chapters": chapter_to_output}, _seen)


# =============================================================================
# Descriptors
# =============================================================================


def course_descriptor() -> EntityDescriptor:
    return EntityDescriptor(
        entity_name="Course",
        model=Course,
        create_dto=CourseCreate,
        edit_dto=CourseEdit,
        output_dto=CourseOutput,
        converters=Converters(
            dto_to_model=course_to_model,
            model_to_dto=course_to_output,
            edit_to_map=edit_to_map,
        ),
        sub_entities=("chapters",),
        default_roles=dict(DEFAULT_ROLES),
        swagger_config=SwaggerConfig(
            tag="courses",
            summary="Course",
            description="Courses group chapters; chapters may be shared between courses.",
        ),
    )


def chapter_descriptor() -> EntityDescriptor:
    return EntityDescriptor(
        entity_name="Chapter",
        model=Chapter,
        create_dto=ChapterCreate,
        edit_dto=ChapterEdit,
        output_dto=ChapterOutput,
        converters=Converters(
            dto_to_model=chapter_to_model,
            model_to_dto=chapter_to_output,
            edit_to_map=edit_to_map,
        ),
        sub_entities=("sections",),
        default_roles=dict(DEFAULT_ROLES),
        swagger_config=SwaggerConfig(tag="chapters", summary="Chapter"),
    )


def section_descriptor() -> EntityDescriptor:
    return EntityDescriptor(
        entity_name="Section",
        model=Section,
        create_dto=SectionCreate,
        edit_dto=SectionEdit,
        output_dto=SectionOutput,
        converters=Converters(
            dto_to_model=section_to_model,
            model_to_dto=section_to_output,
            edit_to_map=edit_to_map,
        ),
        sub_entities=("chapters",),
        relationship_filters=(
            RelationshipFilter(
                filter_name="courseId",
                path=(
                    RelationshipStep(
                        join_table="chapter_sections",
                        source_column="section_id",
                        target_column="chapter_id",
                        next_table="chapters",
                    ),
                    RelationshipStep(
                        join_table="course_chapters",
                        source_column="chapter_id",
                        target_column="course_id",
                        next_table="courses",
                    ),
                ),
                target_column="id",
            ),
        ),
        default_roles=dict(DEFAULT_ROLES),
        swagger_config=SwaggerConfig(tag="sections", summary="Section"),
    )


def register_course_entities(registry: EntityRegistry, hooks: HookRegistry, service) -> None:
    registry.register(course_descriptor())
    registry.register(chapter_descriptor())
    registry.register(section_descriptor())

    hooks.register(
        CascadeOrphanDeleteHook(
            name="course_chapters_cascade",
            parent_entity="Course",
            child_entity="Chapter",
            join_table=course_chapters,
            parent_column="course_id",
            child_column="chapter_id",
            service=service,
        )
    )
    hooks.register(
        CascadeOrphanDeleteHook(
            name="chapter_sections_cascade",
            parent_entity="Chapter",
            child_entity="Section",
            join_table=chapter_sections,
            parent_column="chapter_id",
            child_column="section_id",
            service=service,
        )
    )
