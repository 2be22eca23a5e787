from __future__ import annotations

import pytest

from release_gate.core.errors import (
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    RangeNotSatisfiableError,
    StorageError,
)
from release_gate.models.audio import ByteRange
from release_gate.services.gate import AssetGate

from conftest import MARKER, MemoryStorage, MutableClock


def make_gate(storage, cutoff) -> AssetGate:
    return AssetGate(storage, MutableClock(cutoff), MARKER)


@pytest.mark.parametrize("key", ["", "weird_file.mp3", "track_000.mp3", "track_999.mp3", "cover.jpg"])
def test_keys_without_track_number_are_bad_requests(storage, key):
    with pytest.raises(BadRequestError):
        make_gate(storage, 365).authorize_and_fetch(key)
    assert storage.get_calls == []


@pytest.mark.parametrize("key", ["../track_001.mp3", "a/../../track_001.mp3", "/track_001.mp3", "a\\track_001.mp3"])
def test_path_escaping_keys_are_bad_requests(storage, key):
    with pytest.raises(BadRequestError):
        make_gate(storage, 365).authorize_and_fetch(key)
    assert storage.get_calls == []


@pytest.mark.parametrize("cutoff", [0, 1, 365])
@pytest.mark.parametrize("track", [1, 2, 180, 364, 365])
def test_release_boundaries(track, cutoff):
    key = f"track_{track:03d}.mp3"
    storage = MemoryStorage({key: b"audio"})
    gate = make_gate(storage, cutoff)
    if track <= cutoff:
        assert gate.authorize_and_fetch(key).body == b"audio"
    else:
        with pytest.raises(ForbiddenError):
            gate.authorize_and_fetch(key)
        assert storage.get_calls == []


@pytest.mark.parametrize("cutoff", [0, 1, 365])
def test_test_assets_always_authorized(cutoff):
    storage = MemoryStorage({"GXTEST_365.mp3": b"t"})
    assert make_gate(storage, cutoff).authorize_and_fetch("GXTEST_365.mp3").body == b"t"


def test_example_forbidden_then_released(storage):
    clock = MutableClock(10)
    gate = AssetGate(storage, clock, MARKER)
    with pytest.raises(ForbiddenError):
        gate.authorize_and_fetch("track_015.mp3")

    clock.set_cutoff(15)
    obj = gate.authorize_and_fetch("track_015.mp3")
    assert obj.body == b"fifteen" * 10
    assert obj.content_type == "audio/mpeg"
    assert obj.etag


def test_released_but_missing_is_not_found(storage):
    with pytest.raises(NotFoundError):
        make_gate(storage, 365).authorize_and_fetch("track_090.mp3")


def test_storage_failure_propagates_as_internal(storage):
    storage.fail_get = True
    with pytest.raises(StorageError) as info:
        make_gate(storage, 365).authorize_and_fetch("track_005.mp3")
    assert info.value.status_code == 500
    assert info.value.retriable


def test_byte_range_is_forwarded(storage):
    obj = make_gate(storage, 365).authorize_and_fetch("track_005.mp3", ByteRange(start=0, end=3))
    assert obj.body == b"five"
    assert obj.content_range == "bytes 0-3/40"
    assert obj.is_partial


def test_unsatisfiable_range(storage):
    with pytest.raises(RangeNotSatisfiableError):
        make_gate(storage, 365).authorize_and_fetch("track_005.mp3", ByteRange(start=1000))


def test_forbidden_checked_before_range(storage):
    with pytest.raises(ForbiddenError):
        make_gate(storage, 1).authorize_and_fetch("track_015.mp3", ByteRange(start=1000))


def test_stat_runs_the_same_checks_without_downloading(storage):
    gate = make_gate(storage, 10)
    with pytest.raises(ForbiddenError):
        gate.authorize_and_stat("track_015.mp3")
    with pytest.raises(BadRequestError):
        gate.authorize_and_stat("weird_file.mp3")

    obj = gate.authorize_and_stat("track_005.mp3")
    assert obj.body == b""
    assert obj.content_length == 40
    assert storage.head_calls == ["track_005.mp3"]
    assert storage.get_calls == []


def test_stat_missing_is_not_found(storage):
    with pytest.raises(NotFoundError):
        make_gate(storage, 365).authorize_and_stat("track_090.mp3")


def test_unsatisfiable_range_reports_object_size(storage):
    with pytest.raises(RangeNotSatisfiableError) as info:
        make_gate(storage, 365).authorize_and_fetch("track_005.mp3", ByteRange(start=1000))
    assert info.value.total_length == 40
