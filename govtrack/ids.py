"""
Identifier and slug generation.

IDs are short type-prefixed hashes (``gp-3f2a``). None of these functions
raise: on repeated collisions they degrade to longer or randomized values.
"""

import hashlib
import json
import re
import secrets
import time
from typing import Any, Callable, Optional

ENTITY_PREFIXES = {
    "goal": "gg",
    "problem": "gp",
    "idea": "gd",
    "action": "ga",
    "government": "gt",
    "issue": "gi",
}

GENERIC_PREFIX = "ge"

_PREFIX_TO_TYPE = {prefix: type_ for type_, prefix in ENTITY_PREFIXES.items()}
_PREFIX_RE = re.compile(r"^([a-z]{2})-")
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")

MAX_ID_ATTEMPTS = 5
MAX_SLUG_LENGTH = 100
MAX_SLUG_COUNTER = 1000


def type_from_id(id: str) -> Optional[str]:
    """Entity type encoded in an ID prefix, or None if unrecognized."""
    if not id or not isinstance(id, str):
        return None
    match = _PREFIX_RE.match(id)
    if not match:
        return None
    return _PREFIX_TO_TYPE.get(match.group(1))


def prefix_for_type(type_: str) -> str:
    return ENTITY_PREFIXES.get(type_, GENERIC_PREFIX)


def is_entity_type(id: str, type_: str) -> bool:
    return type_from_id(id) == type_


def is_valid_id(id: str, prefix: str) -> bool:
    """Check that an ID has the given prefix and a 4-8 char hex hash."""
    return bool(re.fullmatch(rf"{re.escape(prefix)}-[a-f0-9]{{4,8}}", id or ""))


def _hash(payload: dict[str, Any], length: int) -> str:
    data = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:length]


def generate_id(
    prefix: str,
    inputs: dict[str, Any],
    exists: Optional[Callable[[str], bool]] = None,
) -> str:
    """
    Generate a unique ID with the given prefix.

    Hashes the inputs with the current time, a random salt and the attempt
    number. The hash is 4 hex chars, widened to 5 after the third collision;
    if all attempts collide, an 8 char hash from a larger salt is returned.

    Args:
        prefix: ID prefix (e.g. 'gt' for government, 'gp' for problem)
        inputs: Data to include in the hash
        exists: Optional callback reporting whether an ID is taken

    Returns:
        Generated ID (e.g. 'gt-a1b2')
    """
    length = 4
    for attempt in range(MAX_ID_ATTEMPTS):
        payload = {
            **inputs,
            "timestamp": time.time_ns(),
            "salt": secrets.token_hex(4),
            "attempt": attempt,
        }
        id = f"{prefix}-{_hash(payload, length)}"
        if exists is None or not exists(id):
            return id
        if attempt == 2:
            length = 5

    fallback = {**inputs, "timestamp": time.time_ns(), "random": secrets.token_hex(8)}
    return f"{prefix}-{_hash(fallback, 8)}"


def generate_slug(name: str) -> str:
    """URL-friendly slug: 'Travis County!!!' -> 'travis-county'."""
    slug = _SLUG_STRIP_RE.sub("-", name.lower().strip())
    return slug.strip("-")[:MAX_SLUG_LENGTH]


def make_slug_unique(base: str, exists: Callable[[str], bool]) -> str:
    """Append -2, -3, ... until the slug is free; random suffix as last resort."""
    if not exists(base):
        return base
    for counter in range(2, MAX_SLUG_COUNTER):
        slug = f"{base}-{counter}"
        if not exists(slug):
            return slug
    return f"{base}-{secrets.token_hex(3)}"
