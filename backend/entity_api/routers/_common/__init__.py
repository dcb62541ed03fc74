"""
Common utilities shared across routers.
"""

from .pagination import cursor_response, dump_output, offset_response

__all__ = [
    "dump_output",
    "offset_response",
    "cursor_response",
]
