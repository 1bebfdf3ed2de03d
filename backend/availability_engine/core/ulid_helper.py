"""
ULID ids for rules and slots.

ULIDs sort by creation time, so rules listed by id come back in the order
they were created.
"""

import ulid

ULID_LENGTH = 26


def generate_ulid() -> str:
    return str(ulid.ULID())


def is_valid_ulid(value: object) -> bool:
    """True for a 26-character Crockford base32 ULID string."""
    if not isinstance(value, str) or len(value) != ULID_LENGTH:
        return False
    try:
        ulid.ULID.from_str(value)
    except ValueError:
        return False
    return True
