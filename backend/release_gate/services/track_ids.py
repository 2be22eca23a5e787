"""
Shared naming policy for release files.

Both the mapping resolver and the asset gate import these helpers, so the
catalog and the download path always agree on which day a file belongs to.
"""

from __future__ import annotations

import re

from release_gate.services.release_clock import MAX_TRACK

# First run of exactly three ASCII digits not touching other ASCII digits.
# Handles underscores, hyphens and other separators: track_007.mp3, 007-title.mp3
_TRACK_RE = re.compile(r"(?<!\d)(\d{3})(?!\d)", re.ASCII)


def extract_track_number(key: str) -> int | None:
    """
    Track number (1..365) encoded in a storage key, or None.

    Only the first isolated 3-digit run counts; if it falls outside
    1..365 (000, 999) the key has no track number.
    """
    m = _TRACK_RE.search(key)
    if not m:
        return None
    num = int(m.group(1), 10)
    if 1 <= num <= MAX_TRACK:
        return num
    return None


def is_test_asset(key: str, marker: str) -> bool:
    """Test assets skip the release-date check. Decided by key content only."""
    if not marker:
        return False
    return marker.lower() in key.lower()


def is_safe_key(key: str) -> bool:
    """
    Rejects keys that could escape the bucket namespace before they reach
    the storage getter: absolute paths, backslashes, control characters,
    and empty, `.` or `..` segments.
    """
    if not key or key.startswith("/") or "\\" in key:
        return False
    if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in key):
        return False
    for segment in key.split("/"):
        if segment in ("", ".", ".."):
            return False
    return True
