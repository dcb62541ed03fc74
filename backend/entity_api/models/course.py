"""
Course authoring models: Course, Chapter, Section.

Courses and chapters, chapters and sections are many-to-many so a chapter
can be shared by several courses. Join rows go away with either side
(ON DELETE CASCADE); orphaned children are removed by cascade hooks.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Column, ForeignKey, String, Table, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, EntityMixin


course_chapters = Table(
    "course_chapters",
    Base.metadata,
    Column("course_id", Uuid, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
    Column("chapter_id", Uuid, ForeignKey("chapters.id", ondelete="CASCADE"), primary_key=True),
)

chapter_sections = Table(
    "chapter_sections",
    Base.metadata,
    Column("chapter_id", Uuid, ForeignKey("chapters.id", ondelete="CASCADE"), primary_key=True),
    Column("section_id", Uuid, ForeignKey("sections.id", ondelete="CASCADE"), primary_key=True),
)


class Course(EntityMixin, Base):
    __tablename__ = "courses"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    chapters: Mapped[list["Chapter"]] = relationship(
        secondary=course_chapters,
        back_populates="courses",
        passive_deletes=True,
        order_by="Chapter.id",
    )


class Chapter(EntityMixin, Base):
    __tablename__ = "chapters"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    introduction: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    courses: Mapped[list["Course"]] = relationship(
        secondary=course_chapters,
        back_populates="chapters",
        passive_deletes=True,
        order_by="Course.id",
    )
    sections: Mapped[list["Section"]] = relationship(
        secondary=chapter_sections,
        back_populates="chapters",
        passive_deletes=True,
        order_by="Section.id",
    )


class Section(EntityMixin, Base):
    __tablename__ = "sections"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    chapters: Mapped[list["Chapter"]] = relationship(
        secondary=chapter_sections,
        back_populates="sections",
        passive_deletes=True,
        order_by="Chapter.id",
    )
