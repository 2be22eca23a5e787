# backend/release_gate/services/mapping.py
from __future__ import annotations

import logging
import time
from typing import Callable

from release_gate.core.errors import MappingResolutionError, StorageError
from release_gate.services.release_clock import ReleaseClock
from release_gate.services.storage import ObjectStorage
from release_gate.services.track_ids import extract_track_number, is_test_asset

logger = logging.getLogger("release_gate.mapping")


class MappingCache:
    """
    Advisory cache for the resolved mapping.

    A stale entry can only hide a just-released track for up to `ttl_sec`;
    it is never consulted by the asset gate. ttl_sec=0 disables caching.
    """

    def __init__(self, ttl_sec: float, now: Callable[[], float] = time.monotonic) -> None:
        self.ttl_sec = ttl_sec
        self._now = now
        self._value: dict[str, str] | None = None
        self._ts = 0.0

    def get(self) -> dict[str, str] | None:
        if self._value is None or self.ttl_sec <= 0:
            return None
        if (self._now() - self._ts) >= self.ttl_sec:
            return None
        return dict(self._value)

    def put(self, mapping: dict[str, str]) -> None:
        if self.ttl_sec <= 0:
            return
        self._value = dict(mapping)
        self._ts = self._now()

    def clear(self) -> None:
        self._value = None
        self._ts = 0.0


class MappingResolver:
    """
    Builds the track-number -> storage-key view of everything released now.

    - full listing from storage (all pages)
    - keys without a track number are skipped
    - test assets are always included
    - duplicates: the later key in the listing wins
    """

    def __init__(
        self,
        storage: ObjectStorage,
        clock: ReleaseClock,
        test_marker: str,
        cache: MappingCache | None = None,
    ) -> None:
        self.storage = storage
        self.clock = clock
        self.test_marker = test_marker
        self.cache = cache

    def resolve(self) -> dict[str, str]:
        if self.cache is not None:
            cached = self.cache.get()
            if cached is not None:
                return cached

        cutoff = self.clock.current_cutoff()
        try:
            keys = self.storage.list_keys()
        except StorageError as e:
            logger.error("Mapping resolution failed (cutoff=%d): %s", cutoff, e)
            raise MappingResolutionError("Failed to generate mapping") from e

        mapping: dict[str, str] = {}
        for key in keys:
            num = extract_track_number(key)
            if num is None:
                continue
            if is_test_asset(key, self.test_marker) or num <= cutoff:
                prev = mapping.get(str(num))
                if prev is not None and prev != key:
                    logger.warning("Track %d maps to both '%s' and '%s'; keeping '%s'", num, prev, key, key)
                mapping[str(num)] = key

        logger.info("Resolved mapping: cutoff=%d listed=%d released=%d", cutoff, len(keys), len(mapping))

        if self.cache is not None:
            self.cache.put(mapping)
        return mapping
