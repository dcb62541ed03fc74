"""
Offset and cursor pagination.

Both modes order by primary key ascending. Cursors are the base64 of the
last returned id's 16 bytes (URL-safe alphabet); clients pass them back
verbatim.
"""

from __future__ import annotations

import base64
import binascii
import uuid
from dataclasses import dataclass
from typing import Any

from entity_shared.config.settings import settings
from entity_shared.utils.exceptions import InvalidCursorError, InvalidPaginationError


# =============================================================================
# Cursor codec
# =============================================================================


def encode_cursor(last_id: uuid.UUID) -> str:
    return base64.urlsafe_b64encode(last_id.bytes).decode("ascii")


def decode_cursor(cursor: str) -> uuid.UUID | None:
    """
    Decode a cursor; an empty cursor means "from the start".

    Raises:
        InvalidCursorError: not base64, or not a 16-byte id.
    """
    if not cursor:
        return None

    padded = cursor + "=" * (-len(cursor) % 4)
    try:
        raw = base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidCursorError(cursor, f"not valid base64: {e}")

    if len(raw) != 16:
        raise InvalidCursorError(cursor, f"expected 16 bytes, got {len(raw)}")
    return uuid.UUID(bytes=raw)


# =============================================================================
# Parameters
# =============================================================================


def _parse_int(parameter: str, raw: Any, default: int) -> int:
    if raw is None or raw == "":
        return default
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw).strip())
    except ValueError:
        raise InvalidPaginationError(parameter, raw, "must be an integer")


@dataclass(frozen=True)
class OffsetParams:
    """Validated offset pagination parameters (1-indexed page)."""

    page: int
    page_size: int

    @classmethod
    def parse(cls, page: Any = None, page_size: Any = None, max_page_size: int | None = None) -> "OffsetParams":
        """
        Raises:
            InvalidPaginationError: page < 1 or page_size outside 1..max.
        """
        max_page_size = max_page_size or settings.max_page_size
        page_value = _parse_int("page", page, 1)
        size_value = _parse_int("pageSize", page_size, settings.default_page_size)

        if page_value < 1:
            raise InvalidPaginationError("page", page_value, "must be >= 1")
        if size_value < 1 or size_value > max_page_size:
            raise InvalidPaginationError(
                "pageSize", size_value, f"must be between 1 and {max_page_size}"
            )
        return cls(page=page_value, page_size=size_value)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True)
class CursorParams:
    """Validated cursor pagination parameters."""

    cursor: str
    after_id: uuid.UUID | None
    limit: int

    @classmethod
    def parse(cls, cursor: str | None = None, limit: Any = None, max_limit: int | None = None) -> "CursorParams":
        """
        Raises:
            InvalidCursorError: the cursor cannot be decoded.
            InvalidPaginationError: limit outside 1..max.
        """
        max_limit = max_limit or settings.max_cursor_limit
        limit_value = _parse_int("limit", limit, settings.default_cursor_limit)
        if limit_value < 1 or limit_value > max_limit:
            raise InvalidPaginationError("limit", limit_value, f"must be between 1 and {max_limit}")

        cursor = cursor or ""
        return cls(cursor=cursor, after_id=decode_cursor(cursor), limit=limit_value)


# =============================================================================
# Results
# =============================================================================


@dataclass
class OffsetPage:
    items: list[Any]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size if self.page_size else 0

    @property
    def has_next_page(self) -> bool:
        return self.page * self.page_size < self.total

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1


@dataclass
class CursorPage:
    items: list[Any]
    next_cursor: str
    has_more: bool
    limit: int
    total: int | None = None
