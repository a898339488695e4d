"""GUID helpers shared by graph generation, validation and asset writing."""

import re
import uuid

GUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

# Syntactically valid identifiers that were clearly typed by hand.
FAKE_GUID_PATTERNS = (
    re.compile(r"^(.)\1{7}-(.)\2{3}-(.)\3{3}-(.)\4{3}-(.)\5{11}$", re.IGNORECASE),
    re.compile(r"^a1a1a1a1-", re.IGNORECASE),
    re.compile(r"^12345678-", re.IGNORECASE),
    re.compile(r"^00000000-", re.IGNORECASE),
)


def is_guid(value) -> bool:
    return isinstance(value, str) and bool(GUID_RE.match(value))


def fake_guid_pattern(value: str):
    """Return the fake pattern ``value`` matches, or None."""
    for pattern in FAKE_GUID_PATTERNS:
        if pattern.match(value):
            return pattern.pattern
    return None


def new_guid(seen=None) -> str:
    """Random canonical GUID, distinct from ``seen`` and never fake-looking."""
    while True:
        guid = str(uuid.uuid4())
        if fake_guid_pattern(guid):
            continue
        if seen is not None:
            if guid in seen:
                continue
            seen.add(guid)
        return guid


def new_unity_guid() -> str:
    """32 lowercase hex characters, the form Unity uses in ``.meta`` files."""
    return uuid.uuid4().hex
