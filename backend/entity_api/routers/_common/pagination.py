"""
Standardized list envelopes for the entity dispatcher.

Usage:
    from entity_api.routers._common.pagination import offset_response, cursor_response

    page = service.list_offset(db, "Course", params)
    return JSONResponse(offset_response(page))
"""

from typing import Any

from pydantic import BaseModel

from entity_api.services.entity.pagination import CursorPage, OffsetPage


def dump_output(dto: BaseModel) -> dict[str, Any]:
    """Serialise an output DTO with camelCase keys, leaving out unloaded relations."""
    return dto.model_dump(mode="json", by_alias=True, exclude_unset=True)


def offset_response(page: OffsetPage) -> dict[str, Any]:
    """
    Convert an offset page to the response body.

    Returns:
        {"data": [...], "pagination": {page, pageSize, total, totalPages,
        hasNextPage, hasPreviousPage}}
    """
    return {
        "data": [dump_output(item) for item in page.items],
        "pagination": {
            "page": page.page,
            "pageSize": page.page_size,
            "total": page.total,
            "totalPages": page.total_pages,
            "hasNextPage": page.has_next_page,
            "hasPreviousPage": page.has_previous_page,
        },
    }


def cursor_response(page: CursorPage) -> dict[str, Any]:
    """
    Convert a cursor page to the response body.

    Returns:
        {"data": [...], "nextCursor", "hasMore", "limit", "total"}
    """
    result = {
        "data": [dump_output(item) for item in page.items],
        "nextCursor": page.next_cursor,
        "hasMore": page.has_more,
        "limit": page.limit,
    }
    if page.total is not None:
        result["total"] = page.total
    return result
