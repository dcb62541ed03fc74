"""
DTOs for Course, Chapter and Section.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import Field

from .base import CamelModel, EntityOutput


# =============================================================================
# Course
# =============================================================================


class CourseCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    chapter_ids: list[UUID] = []


class CourseEdit(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)


class CourseOutput(EntityOutput):
    name: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    chapters: Optional[list[ChapterOutput]] = None


# =============================================================================
# Chapter
# =============================================================================


class ChapterCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    introduction: Optional[str] = None
    course_ids: list[UUID] = []
    section_ids: list[UUID] = []


class ChapterEdit(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    introduction: Optional[str] = None


class ChapterOutput(EntityOutput):
    title: str
    introduction: Optional[str] = None
    courses: Optional[list[CourseOutput]] = None
    sections: Optional[list[SectionOutput]] = None


# =============================================================================
# Section
# =============================================================================


class SectionCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    body: Optional[str] = None
    chapter_ids: list[UUID] = []


class SectionEdit(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    body: Optional[str] = None


class SectionOutput(EntityOutput):
    title: str
    body: Optional[str] = None
    chapters: Optional[list[ChapterOutput]] = None


CourseOutput.model_rebuild()
ChapterOutput.model_rebuild()
SectionOutput.model_rebuild()
