"""
Selective relation preloading.

Include modes for reads:

- None / empty: the model alone (or the descriptor's ``default_includes``)
- ["*"]: every relation listed in ``sub_entities``
- explicit dotted paths, e.g. ["Chapters", "Chapters.Sections"]: exactly
  those relations, every intermediate level included

Segments are matched case-insensitively against relationship attributes
(``Chapters`` and ``chapters`` both reach ``Course.chapters``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import selectinload

from entity_shared.config.constants import INCLUDE_ALL
from entity_shared.utils.exceptions import InvalidInputError

if TYPE_CHECKING:
    from entity_api.services.entity.descriptor import EntityDescriptor


def parse_include_param(raw: str | None) -> list[str] | None:
    """Split a comma-separated ``include`` query value; None when absent."""
    if raw is None:
        return None
    return [part.strip() for part in raw.split(",") if part.strip()]


def normalize_include(include: str) -> Optional[tuple[str, ...]]:
    """
    Trim an include path and drop empty segments.

    ``" chapters . sections "`` -> ``("chapters", "sections")``;
    returns None when nothing is left.
    """
    segments = tuple(seg.strip() for seg in include.split(".") if seg.strip())
    return segments or None


def _match_relationship(model: type, segment: str):
    wanted = segment.replace("_", "").lower()
    for rel in sa_inspect(model).relationships:
        if rel.key.replace("_", "").lower() == wanted:
            return rel
    return None


def resolve_include_path(model: type, segments: Iterable[str]) -> Optional[list[Any]]:
    """
    Map include segments to relationship attributes along the path.

    Returns the list of instrumented attributes, or None when a segment
    does not name a relation.
    """
    attributes = []
    current = model
    for segment in segments:
        rel = _match_relationship(current, segment)
        if rel is None:
            return None
        attributes.append(getattr(current, rel.key))
        current = rel.mapper.class_
    return attributes


def effective_includes(descriptor: "EntityDescriptor", include: list[str] | None) -> list[str]:
    """Apply the include-mode rules to a request's include list."""
    if not include:
        return list(descriptor.default_includes)

    paths: list[str] = []
    for entry in include:
        if entry.strip() == INCLUDE_ALL:
            paths.extend(descriptor.sub_entities)
        else:
            paths.append(entry)
    return paths


def build_load_options(descriptor: "EntityDescriptor", include: list[str] | None) -> list[Any]:
    """
    Translate an include list into ``selectinload`` chains.

    Raises:
        InvalidInputError: an include names an unknown relation.
    """
    options = []
    seen: set[tuple[str, ...]] = set()

    for raw in effective_includes(descriptor, include):
        segments = normalize_include(raw)
        if segments is None:
            continue
        attributes = resolve_include_path(descriptor.model, segments)
        if attributes is None:
            raise InvalidInputError("include", raw, "unknown relation")

        key = tuple(attr.key for attr in attributes)
        if key in seen:
            continue
        seen.add(key)

        loader = selectinload(attributes[0])
        for attr in attributes[1:]:
            loader = loader.selectinload(attr)
        options.append(loader)

    return options


def loaded_relationship(obj: Any, key: str) -> Any:
    """
    The value of a relationship if it is already loaded, else None.

    Output converters use this so serialising a model never triggers a
    lazy load.
    """
    state = sa_inspect(obj)
    if key in state.unloaded:
        return None
    return getattr(obj, key)
