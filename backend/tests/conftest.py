"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from release_gate.core.errors import StorageError
from release_gate.main import app, get_clock, get_mapping_cache, get_storage_backend
from release_gate.models.audio import AudioObject, ByteRange
from release_gate.services.release_clock import ReleaseClock
from release_gate.services.storage import select_span

RELEASE_YEAR = 2026
MARKER = "gxtest"


class MemoryStorage:
    """In-memory bucket: key -> bytes, listed in insertion order."""

    def __init__(self, objects: Optional[dict[str, bytes]] = None) -> None:
        self.objects: dict[str, bytes] = dict(objects or {})
        self.fail_listing = False
        self.fail_get = False
        self.list_calls = 0
        self.get_calls: list[str] = []
        self.head_calls: list[str] = []

    def list_keys(self) -> list[str]:
        self.list_calls += 1
        if self.fail_listing:
            raise StorageError("listing unavailable")
        return list(self.objects)

    def _lookup(self, key: str, byte_range: Optional[ByteRange]) -> AudioObject | None:
        if self.fail_get:
            raise StorageError("read timeout")
        if key not in self.objects:
            return None

        data = self.objects[key]
        first, last, content_range = select_span(key, len(data), byte_range)
        body = data[first:last + 1]
        return AudioObject(
            key=key,
            body=body,
            content_type="audio/mpeg",
            etag='"etag-' + key + '"',
            content_length=len(body),
            total_length=len(data),
            content_range=content_range,
        )

    def get_object(self, key: str, byte_range: Optional[ByteRange] = None) -> AudioObject | None:
        self.get_calls.append(key)
        return self._lookup(key, byte_range)

    def head_object(self, key: str, byte_range: Optional[ByteRange] = None) -> AudioObject | None:
        self.head_calls.append(key)
        obj = self._lookup(key, byte_range)
        return obj.model_copy(update={"body": b""}) if obj is not None else None


def instant_for_cutoff(cutoff: int) -> datetime:
    """A UTC instant (mid-day) whose release cutoff is `cutoff`."""
    if cutoff <= 0:
        return datetime(RELEASE_YEAR - 1, 12, 31, 23, 59, tzinfo=timezone.utc)
    start = datetime(RELEASE_YEAR, 1, 1, 12, 0, tzinfo=timezone.utc)
    return start + timedelta(days=cutoff - 1)


class MutableClock(ReleaseClock):
    """ReleaseClock whose instant can be moved between requests."""

    def __init__(self, cutoff: int = 0) -> None:
        self.instant = instant_for_cutoff(cutoff)
        super().__init__(RELEASE_YEAR, now=lambda: self.instant)

    def set_cutoff(self, cutoff: int) -> None:
        self.instant = instant_for_cutoff(cutoff)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage(
        {
            "track_005.mp3": b"five" * 10,
            "track_015.mp3": b"fifteen" * 10,
            "gxtest_099.mp3": b"test" * 10,
        }
    )


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(cutoff=10)


@pytest.fixture
def client(storage: MemoryStorage, clock: MutableClock):
    app.dependency_overrides[get_storage_backend] = lambda: storage
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_mapping_cache] = lambda: None
    try:
        with TestClient(app, raise_server_exceptions=False) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
