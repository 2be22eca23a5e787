# backend/release_gate/services/storage_local.py
from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Optional

from release_gate.core.errors import StorageError
from release_gate.models.audio import AudioObject, ByteRange
from release_gate.services.storage import guess_content_type, select_span

logger = logging.getLogger("release_gate.storage.local")


class LocalStorage:
    """
    Directory-backed store for local dev and CI (STORAGE_MODE=local).
    Keys are POSIX paths relative to `root`.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def list_keys(self) -> list[str]:
        if not self.root.is_dir():
            raise StorageError(f"Local audio dir not found: {self.root}")

        try:
            return sorted(
                p.relative_to(self.root).as_posix()
                for p in self.root.rglob("*")
                if p.is_file()
            )
        except OSError as e:
            raise StorageError(f"Local listing failed for {self.root}: {e}") from e

    def _locate(self, key: str) -> Path | None:
        """
        File for `key`, or None if no such object can exist: outside the
        root, not a regular file, or a name the filesystem rejects
        (ENAMETOOLONG and friends).
        """
        try:
            root = self.root.resolve()
            path = (root / key).resolve()
            if not path.is_relative_to(root) or not path.is_file():
                return None
        except (OSError, ValueError) as e:
            logger.debug("Local lookup rejected key '%.80s': %s", key, e)
            return None
        return path

    def _metadata(self, key: str, path: Path, byte_range: Optional[ByteRange]) -> tuple[AudioObject, int, int]:
        try:
            st = path.stat()
        except OSError as e:
            raise StorageError(f"Local stat failed for '{key}': {e}") from e

        first, last, content_range = select_span(key, st.st_size, byte_range)
        # same weak validator style as Starlette's FileResponse: mtime + size
        etag = hashlib.md5(f"{st.st_mtime}-{st.st_size}".encode()).hexdigest()

        obj = AudioObject(
            key=key,
            body=b"",
            content_type=guess_content_type(key),
            etag=f'"{etag}"',
            content_length=last - first + 1,
            total_length=st.st_size,
            content_range=content_range,
            last_modified=format_datetime(datetime.fromtimestamp(st.st_mtime, tz=timezone.utc), usegmt=True),
        )
        return obj, first, last

    def head_object(self, key: str, byte_range: Optional[ByteRange] = None) -> AudioObject | None:
        path = self._locate(key)
        if path is None:
            return None
        obj, _, _ = self._metadata(key, path, byte_range)
        return obj

    def get_object(self, key: str, byte_range: Optional[ByteRange] = None) -> AudioObject | None:
        path = self._locate(key)
        if path is None:
            return None

        obj, first, last = self._metadata(key, path, byte_range)
        try:
            with path.open("rb") as f:
                f.seek(first)
                body = f.read(last - first + 1)
        except OSError as e:
            raise StorageError(f"Local read failed for '{key}': {e}") from e

        logger.debug("Local fetch: key='%s' bytes=%d range=%s", key, len(body), obj.content_range)
        return obj.model_copy(update={"body": body, "content_length": len(body)})
