"""
ORM models.

Importing this package registers every table on ``Base.metadata``.
"""

from .base import Base, EntityMixin, JSONText, utcnow
from .billing import SubscriptionPlan
from .catalog import Child, Item, Parent
from .course import Chapter, Course, Section, chapter_sections, course_chapters
from .policy import PolicyRule
from .team import Team, team_members

__all__ = [
    "Base",
    "EntityMixin",
    "JSONText",
    "utcnow",
    "Course",
    "Chapter",
    "Section",
    "course_chapters",
    "chapter_sections",
    "Item",
    "Parent",
    "Child",
    "SubscriptionPlan",
    "PolicyRule",
    "Team",
    "team_members",
]
