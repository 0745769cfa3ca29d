"""
uuid7.py - UUID v7 generation.

Time-ordered identifiers for outbox entries, built with the standard library.
"""

import os
import time


def generate_uuid_v7() -> bytes:
    """
    Generate a UUID v7 (time-ordered) as raw 16 bytes.

    Structure:
    - 48 bits: Timestamp (ms)
    - 4 bits: Version (7)
    - 12 bits: rand_a
    - 2 bits: Variant (10)
    - 62 bits: rand_b
    """
    t_ms = int(time.time() * 1000)

    # 48 bits time (6 bytes)
    t_bytes = t_ms.to_bytes(8, byteorder="big")[2:]

    # 10 random bytes; byte 0 carries the version, byte 2 the variant
    r = bytearray(os.urandom(10))
    r[0] = (r[0] & 0x0F) | 0x70
    r[2] = (r[2] & 0x3F) | 0x80

    return t_bytes + bytes(r)


def new_change_id() -> str:
    """Hex form of a UUID v7, used as the outbox entry id."""
    return generate_uuid_v7().hex()
