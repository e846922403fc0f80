"""
DM addressing helpers

Aliases are free-text display labels chosen by the caller. They are not
verified identities, so two people picking the same alias share threads.
"""
import re
from typing import Sequence

_WHITESPACE = re.compile(r"\s+")

THREAD_PREFIX = "dm"


def normalize_alias(value: str) -> str:
    """Trim, lowercase and collapse whitespace runs to a single '-'."""
    return _WHITESPACE.sub("-", str(value or "").strip().lower())


def make_thread_id(self_alias: str, other_alias: str) -> str:
    first, second = sorted([normalize_alias(self_alias), normalize_alias(other_alias)])
    return f"{THREAD_PREFIX}_{first}_{second}"


def other_alias(labels: Sequence[str], self_alias: str) -> str:
    """Return the stored label that is not the caller.

    Falls back to the second label when the caller matches neither.
    """
    me = normalize_alias(self_alias)
    first, second = labels[0], labels[1]
    if normalize_alias(first) == me:
        return second
    if normalize_alias(second) == me:
        return first
    return second
