"""
Per-request deadline propagation.

The transport binds a deadline when a request starts; every storage call,
hook invocation and authorization call checks it through
:func:`check_deadline` and aborts with ``DeadlineExceededError`` once it
has elapsed.
"""

import time
from contextlib import contextmanager
from contextvars import ContextVar
from collections.abc import Generator

from entity_shared.utils.exceptions import DeadlineExceededError


# Monotonic timestamp after which work must stop; None means no deadline
deadline_var: ContextVar[float | None] = ContextVar("request_deadline", default=None)


def set_deadline(timeout_seconds: float | None):
    """Bind a deadline ``timeout_seconds`` from now. Returns the reset token."""
    if timeout_seconds is None:
        return deadline_var.set(None)
    return deadline_var.set(time.monotonic() + timeout_seconds)


def reset_deadline(token) -> None:
    deadline_var.reset(token)


def remaining() -> float | None:
    """Seconds left before the deadline, or None when unbounded."""
    deadline = deadline_var.get()
    if deadline is None:
        return None
    return deadline - time.monotonic()


def check_deadline(operation: str) -> None:
    """Raise ``DeadlineExceededError`` when the current deadline has passed."""
    left = remaining()
    if left is not None and left <= 0:
        raise DeadlineExceededError(operation)


@contextmanager
def deadline_scope(timeout_seconds: float | None) -> Generator[None, None, None]:
    """
    Bind a deadline for the duration of a block.

    Usage:
        with deadline_scope(0.5):
            service.create(...)
    """
    token = set_deadline(timeout_seconds)
    try:
        yield
    finally:
        reset_deadline(token)
