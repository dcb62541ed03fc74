"""
Time-ordered identifiers (UUID version 7).

Layout: 48-bit Unix milliseconds, version nibble, 12-bit sequence, variant,
62 random bits. The sequence makes ids generated inside the same
millisecond strictly increasing, so byte order, hex string order and
creation order agree. Cursor pagination depends on that.
"""

import secrets
import threading
import time
import uuid


_lock = threading.Lock()
_last_ms = 0
_sequence = 0

_MAX_SEQUENCE = 0xFFF


def new_id() -> uuid.UUID:
    """Return a new, strictly increasing UUIDv7."""
    global _last_ms, _sequence

    with _lock:
        now_ms = time.time_ns() // 1_000_000
        if now_ms > _last_ms:
            _last_ms = now_ms
            _sequence = 0
        else:
            # Same millisecond (or clock went back): advance the sequence
            _sequence += 1
            if _sequence > _MAX_SEQUENCE:
                _last_ms += 1
                _sequence = 0
        ms = _last_ms
        seq = _sequence

    value = (
        (ms & 0xFFFF_FFFF_FFFF) << 80
        | 0x7 << 76
        | seq << 64
        | 0b10 << 62
        | secrets.randbits(62)
    )
    return uuid.UUID(int=value)


def id_timestamp_ms(value: uuid.UUID) -> int:
    """Milliseconds since the epoch embedded in a UUIDv7."""
    return value.int >> 80
