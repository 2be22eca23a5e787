# backend/release_gate/services/storage.py
from __future__ import annotations

import mimetypes
from pathlib import PurePosixPath
from typing import Optional, Protocol

from release_gate.core.config import Settings, settings as default_settings
from release_gate.core.errors import RangeNotSatisfiableError
from release_gate.models.audio import AudioObject, ByteRange


class ObjectStorage(Protocol):
    """
    What the release gate needs from a bucket: a full key listing and a
    get-by-exact-key. Pagination is the backend's concern; `list_keys`
    returns only after every page has been read.
    """

    def list_keys(self) -> list[str]: ...

    def get_object(self, key: str, byte_range: Optional[ByteRange] = None) -> AudioObject | None: ...

    def head_object(self, key: str, byte_range: Optional[ByteRange] = None) -> AudioObject | None:
        """Same metadata as `get_object` with an empty body; nothing is downloaded."""
        ...


_AUDIO_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".m4a": "audio/mp4",
    ".aac": "audio/aac",
    ".flac": "audio/flac",
}


def select_span(key: str, total: int, byte_range: Optional[ByteRange]) -> tuple[int, int, str | None]:
    """
    (first, last, content_range) of the bytes to serve from an object of
    `total` bytes. content_range is None for a full-object response.
    """
    if byte_range is None:
        return 0, total - 1, None
    span = byte_range.resolve(total)
    if span is None:
        raise RangeNotSatisfiableError(f"Range not satisfiable for '{key}'", total_length=total)
    first, last = span
    return first, last, f"bytes {first}-{last}/{total}"


def guess_content_type(key: str) -> str:
    ext = PurePosixPath(key).suffix.lower()
    if ext in _AUDIO_TYPES:
        return _AUDIO_TYPES[ext]

    guess, _ = mimetypes.guess_type(key)
    return guess or "application/octet-stream"


def get_storage(cfg: Settings | None = None) -> ObjectStorage:
    """
    Storage backend for the configured STORAGE_MODE.

    - local: LOCAL_AUDIO_DIR on disk
    - r2:    Cloudflare R2 bucket (env vars validated here, not at import)
    """
    cfg = cfg or default_settings
    mode = cfg.storage_mode.strip().lower()

    if mode == "r2":
        from release_gate.services.storage_r2 import R2Storage

        cfg.validate_r2_or_raise()
        return R2Storage.from_settings(cfg)

    if mode == "local":
        from release_gate.services.storage_local import LocalStorage

        return LocalStorage(cfg.local_audio_dir)

    raise ValueError(f"Unknown STORAGE_MODE: {cfg.storage_mode!r} (expected 'local' or 'r2')")
