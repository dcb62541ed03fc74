"""
Helpers for writing entity converters.

``build_output`` copies scalar fields onto an output DTO and adds a
relation only when it is already loaded, so serialising never triggers a
lazy load. Objects already on the current path are skipped, which keeps
back-references (course -> chapters -> courses) finite.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Sequence

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from entity_shared.utils.exceptions import InvalidInputError
from entity_api.services.entity.preload import loaded_relationship

ChildConverter = Callable[..., BaseModel]


def build_output(
    output_dto: type[BaseModel],
    obj: Any,
    relations: Mapping[str, ChildConverter] | None = None,
    _seen: frozenset[int] = frozenset(),
) -> BaseModel:
    """
    Build ``output_dto`` from a model instance.

    ``relations`` maps relationship attribute -> converter accepting
    ``(child, _seen)``.
    """
    relations = relations or {}
    seen = _seen | {id(obj)}

    data: dict[str, Any] = {}
    for name in output_dto.model_fields:
        if name in relations:
            continue
        data[name] = getattr(obj, name)

    for key, convert in relations.items():
        value = loaded_relationship(obj, key)
        if value is None:
            continue
        if isinstance(value, (list, tuple, set)):
            data[key] = [convert(child, seen) for child in value if id(child) not in seen]
        elif id(value) not in seen:
            data[key] = convert(value, seen)

    return output_dto.model_validate(data)


def fields_to_model(model_cls: type, dto: BaseModel, exclude: Iterable[str] = ()) -> Any:
    """Instantiate ``model_cls`` from the DTO fields that are model attributes."""
    excluded = set(exclude)
    values = {
        key: value
        for key, value in dto.model_dump().items()
        if key not in excluded and hasattr(model_cls, key)
    }
    return model_cls(**values)


def resolve_related(
    session: Session,
    model_cls: type,
    ids: Sequence[Any],
    field: str,
) -> list[Any]:
    """
    Load live rows of ``model_cls`` for ``ids``, in the order given.

    Raises:
        InvalidInputError: an id does not exist or is soft-deleted.
    """
    if not ids:
        return []
    unique_ids = list(dict.fromkeys(ids))
    rows = session.scalars(
        select(model_cls).where(model_cls.id.in_(unique_ids), model_cls.deleted_at.is_(None))
    ).all()
    by_id = {row.id: row for row in rows}
    missing = [str(i) for i in unique_ids if i not in by_id]
    if missing:
        raise InvalidInputError(field, ",".join(missing), f"unknown {model_cls.__name__} id")
    return [by_id[i] for i in unique_ids]
