"""String similarity helpers for impersonation and typosquatting checks."""

from .models import Contact, TrustStatus
from .validation import split_identifier

# Characters commonly swapped to imitate a legitimate handle
CONFUSABLES: dict[str, str] = {
    "0": "o",
    "1": "l",
    "3": "e",
    "4": "a",
    "5": "s",
    "7": "t",
    "8": "b",
    "9": "g",
}
MULTI_CHAR_CONFUSABLES: tuple[tuple[str, str], ...] = (("rn", "m"), ("vv", "w"))


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def confusable_skeleton(value: str) -> str:
    skeleton = value.lower()
    for src, dst in MULTI_CHAR_CONFUSABLES:
        skeleton = skeleton.replace(src, dst)
    return "".join(CONFUSABLES.get(ch, ch) for ch in skeleton)


def is_similar(identifier: str, other: str, max_distance: int = 2) -> bool:
    """True when ``other`` resembles ``identifier`` without being equal to it."""
    if identifier == other:
        return False

    if confusable_skeleton(identifier) == confusable_skeleton(other):
        return True

    local_a, handle_a = split_identifier(identifier)
    local_b, handle_b = split_identifier(other)
    if handle_a != handle_b:
        return False

    # Two-letter local parts are always within distance 2 of each other
    if min(len(local_a), len(local_b)) <= 2:
        return False
    return levenshtein(local_a, local_b) <= max_distance


def find_similar_contacts(
    identifier: str, contacts: list[Contact], max_distance: int = 2
) -> list[Contact]:
    """Contacts (excluding flagged ones) that look like ``identifier``."""
    return [
        c
        for c in contacts
        if c.trust_status != TrustStatus.FLAGGED
        and is_similar(identifier, c.identifier.lower(), max_distance)
    ]


def is_handle_near_miss(handle: str, known_handles: tuple[str, ...]) -> bool:
    """Handle one edit away from a well-known provider handle, but not equal to one."""
    if handle in known_handles:
        return False
    return any(levenshtein(handle, known) == 1 for known in known_handles)
