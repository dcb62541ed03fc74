"""Domain lifecycle hooks registered alongside the illustrative entities."""

from .cascade_delete import CascadeOrphanDeleteHook
from .membership import CreatorMembershipHook

__all__ = ["CascadeOrphanDeleteHook", "CreatorMembershipHook"]
