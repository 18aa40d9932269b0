"""
Human-readable request identifiers.

Format: ``{PREFIX}-{unix_millis}-{9 base36 characters, upper case}``,
e.g. ``ORD-1718000000000-K3J9X0QZ2``. These are display identifiers only;
nothing checks them for collisions.
"""

import random
import re
import secrets
import string
import time
from typing import Optional

BASE36_ALPHABET = string.digits + string.ascii_uppercase
SUFFIX_LENGTH = 9

HUMAN_ID_PATTERN = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<millis>\d+)-(?P<suffix>[0-9A-Z]{9})$")


def generate_human_id(
    prefix: str,
    now_ms: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Generate a display identifier for a new request.

    Args:
        prefix: Kind prefix (e.g. ``ORD``)
        now_ms: Creation time in unix milliseconds (defaults to now)
        rng: Random source for deterministic tests (defaults to ``secrets``)

    Returns:
        Identifier string
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    choose = rng.choice if rng is not None else secrets.choice
    suffix = "".join(choose(BASE36_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix.upper()}-{now_ms}-{suffix}"
