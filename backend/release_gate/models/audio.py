from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, Field

_RANGE_RE = re.compile(r"^\s*bytes\s*=\s*(\d*)\s*-\s*(\d*)\s*$", re.IGNORECASE)


class ByteRange(BaseModel):
    """
    Single byte range from a `Range: bytes=...` header.

    - start/end set:   bytes=0-99
    - only start:      bytes=100-
    - only suffix:     bytes=-500 (last 500 bytes)
    """

    start: Optional[int] = Field(default=None, ge=0)
    end: Optional[int] = Field(default=None, ge=0)
    suffix: Optional[int] = Field(default=None, ge=1)

    @classmethod
    def parse(cls, header: str | None) -> ByteRange | None:
        """
        Returns None for a missing, multi-range or malformed header,
        in which case the full object is served.
        """
        if not header:
            return None
        m = _RANGE_RE.match(header)
        if not m:
            return None

        first, last = m.group(1), m.group(2)
        if first == "" and last == "":
            return None
        if first == "":
            n = int(last)
            return cls(suffix=n) if n > 0 else None

        start = int(first)
        end = int(last) if last else None
        if end is not None and end < start:
            return None
        return cls(start=start, end=end)

    def to_header(self) -> str:
        if self.suffix is not None:
            return f"bytes=-{self.suffix}"
        if self.end is None:
            return f"bytes={self.start}-"
        return f"bytes={self.start}-{self.end}"

    def resolve(self, total: int) -> tuple[int, int] | None:
        """
        Inclusive (first, last) offsets within an object of `total` bytes,
        or None when the range cannot be satisfied.
        """
        if total <= 0:
            return None
        if self.suffix is not None:
            return max(0, total - self.suffix), total - 1
        if self.start is None or self.start >= total:
            return None
        last = total - 1 if self.end is None else min(self.end, total - 1)
        return self.start, last


class AudioObject(BaseModel):
    """
    Bytes plus the metadata the HTTP layer needs to build a response.
    The gate never formats HTTP itself.
    """

    key: str
    body: bytes
    content_type: str = "application/octet-stream"
    etag: Optional[str] = None
    content_length: int = Field(ge=0)
    total_length: Optional[int] = None
    content_range: Optional[str] = None  # e.g. "bytes 0-99/1000"
    cache_control: Optional[str] = None
    last_modified: Optional[str] = None  # RFC 7231 date

    @property
    def is_partial(self) -> bool:
        return self.content_range is not None
