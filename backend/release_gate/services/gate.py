# backend/release_gate/services/gate.py
from __future__ import annotations

import logging
from typing import Optional

from release_gate.core.errors import (
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    StorageError,
)
from release_gate.models.audio import AudioObject, ByteRange
from release_gate.services.release_clock import ReleaseClock
from release_gate.services.storage import ObjectStorage
from release_gate.services.track_ids import extract_track_number, is_safe_key, is_test_asset

logger = logging.getLogger("release_gate.gate")


class AssetGate:
    """
    Re-validates every audio request on its own.

    The mapping may be cached or forged by a client, so the gate recomputes
    the track number and the cutoff for each call and never reads the
    mapping cache.
    """

    def __init__(self, storage: ObjectStorage, clock: ReleaseClock, test_marker: str) -> None:
        self.storage = storage
        self.clock = clock
        self.test_marker = test_marker

    def authorize(self, requested_key: str) -> int:
        """
        Raises BadRequestError / ForbiddenError; returns the cutoff it checked against.
        """
        if not requested_key:
            raise BadRequestError("Filename required")
        if not is_safe_key(requested_key):
            raise BadRequestError("Invalid track filename")

        num = extract_track_number(requested_key)
        if num is None:
            raise BadRequestError("Invalid track filename")

        cutoff = self.clock.current_cutoff()
        if not is_test_asset(requested_key, self.test_marker) and num > cutoff:
            logger.info("Refused unreleased track %d (cutoff=%d): '%s'", num, cutoff, requested_key)
            raise ForbiddenError("Track not yet released")
        return cutoff

    def authorize_and_fetch(self, requested_key: str, byte_range: Optional[ByteRange] = None) -> AudioObject:
        return self._checked(requested_key, byte_range, head=False)

    def authorize_and_stat(self, requested_key: str, byte_range: Optional[ByteRange] = None) -> AudioObject:
        """Same checks as `authorize_and_fetch`; metadata only, for HEAD."""
        return self._checked(requested_key, byte_range, head=True)

    def _checked(self, requested_key: str, byte_range: Optional[ByteRange], head: bool) -> AudioObject:
        cutoff = self.authorize(requested_key)

        lookup = self.storage.head_object if head else self.storage.get_object
        try:
            obj = lookup(requested_key, byte_range)
        except StorageError:
            logger.exception("Storage fetch failed: key='%s' cutoff=%d head=%s", requested_key, cutoff, head)
            raise

        if obj is None:
            raise NotFoundError("File not found")
        return obj
