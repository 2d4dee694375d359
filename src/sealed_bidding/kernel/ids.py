"""
Identifier generation using UUIDv7 layout (time-ordered UUIDs)

Requirements, bids, bid items, commission records and events are all keyed
by opaque identifiers. Time ordering keeps the event log and the bid
submission order naturally sortable.
"""

import secrets
import time
import uuid


def generate_id() -> str:
    """
    Generate a UUIDv7 identifier

    Layout: 48-bit Unix timestamp in milliseconds, 4-bit version (7),
    12 random bits, 2-bit variant (10), 62 random bits.

    Returns:
        Canonical 36-character UUID string
    """
    timestamp_ms = int(time.time() * 1000) & 0xFFFFFFFFFFFF

    value = timestamp_ms << 80
    value |= 0x7 << 76
    value |= secrets.randbits(12) << 64
    value |= 0b10 << 62
    value |= secrets.randbits(62)

    return str(uuid.UUID(int=value))
