"""
JSON-column preprocessing for partial updates.

Before a partial update reaches the store, values for JSON-serialised
columns are encoded to JSON text. Keys resolve to model attributes by
exact column name first, then by the snake_case form of the key
(``ownerIds`` -> ``owner_ids``). Mixin columns are part of the mapper, so
inherited fields resolve the same way. None values and keys that match no
column are left as they are.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect as sa_inspect

from entity_api.services.entity.naming import camel_to_snake

if TYPE_CHECKING:
    from entity_api.services.entity.descriptor import EntityDescriptor


def resolve_column_key(model: type, key: str) -> str | None:
    """Model attribute a map key refers to, or None."""
    columns = {attr.key for attr in sa_inspect(model).column_attrs}
    if key in columns:
        return key
    snake = camel_to_snake(key)
    if snake in columns:
        return snake
    return None


def preprocess_json_fields(descriptor: "EntityDescriptor", updates: dict[str, Any]) -> dict[str, Any]:
    """
    Return a copy of ``updates`` with JSON-column values encoded as text.

    Plain strings are values like any other and are encoded too.
    """
    json_columns = set(descriptor.json_columns)
    result: dict[str, Any] = {}

    for key, value in updates.items():
        column_key = resolve_column_key(descriptor.model, key)
        if column_key is None:
            result[key] = value
            continue
        if column_key in json_columns and value is not None:
            value = json.dumps(value)
        result[column_key] = value

    return result
