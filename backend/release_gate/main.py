from __future__ import annotations

import logging
from functools import lru_cache

import orjson
from fastapi import Depends, FastAPI, Request
from fastapi.responses import Response

from release_gate.core.config import settings
from release_gate.core.errors import GateError, RangeNotSatisfiableError
from release_gate.models.audio import ByteRange
from release_gate.services.gate import AssetGate
from release_gate.services.mapping import MappingCache, MappingResolver
from release_gate.services.release_clock import ReleaseClock
from release_gate.services.storage import ObjectStorage, get_storage

# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("release_gate")

app = FastAPI(title="GXMBY365 Release API", version="1.0.0", redirect_slashes=False)

_mapping_cache = MappingCache(ttl_sec=settings.tracks_cache_ttl_sec)


def cors_headers() -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": settings.cors_origin,
        "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
        "Access-Control-Allow-Headers": "Range",
    }


def _json(obj, status_code: int = 200, headers: dict[str, str] | None = None) -> Response:
    return Response(
        content=orjson.dumps(obj),
        status_code=status_code,
        media_type="application/json",
        headers=headers,
    )


# -----------------------------------------------------------------------------
# Dependencies (overridable in tests via app.dependency_overrides)
# -----------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_storage_backend() -> ObjectStorage:
    return get_storage(settings)


def get_clock() -> ReleaseClock:
    return ReleaseClock(settings.release_year)


def get_mapping_cache() -> MappingCache | None:
    return _mapping_cache


def get_resolver(
    storage: ObjectStorage = Depends(get_storage_backend),
    clock: ReleaseClock = Depends(get_clock),
    cache: MappingCache | None = Depends(get_mapping_cache),
) -> MappingResolver:
    return MappingResolver(storage, clock, settings.test_asset_marker, cache=cache)


def get_gate(
    storage: ObjectStorage = Depends(get_storage_backend),
    clock: ReleaseClock = Depends(get_clock),
) -> AssetGate:
    # no cache here: every audio request is authorized from scratch
    return AssetGate(storage, clock, settings.test_asset_marker)


# -----------------------------------------------------------------------------
# Preflight + errors
# -----------------------------------------------------------------------------

@app.middleware("http")
async def preflight(request: Request, call_next):
    # Any path answers OPTIONS, before routing
    if request.method == "OPTIONS":
        headers = cors_headers()
        headers["Access-Control-Max-Age"] = "86400"
        return Response(status_code=204, headers=headers)
    return await call_next(request)


@app.exception_handler(GateError)
async def gate_error_handler(request: Request, exc: GateError) -> Response:
    if exc.status_code >= 500:
        logger.error("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    headers = cors_headers()
    if isinstance(exc, RangeNotSatisfiableError) and exc.total_length is not None:
        headers["Content-Range"] = f"bytes */{exc.total_length}"
    return _json({"error": exc.message}, status_code=exc.status_code, headers=headers)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> Response:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _json({"error": "Internal server error"}, status_code=500, headers=cors_headers())


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@app.get("/health")
def health(clock: ReleaseClock = Depends(get_clock)):
    return {
        "ok": True,
        "service": "gxmby365-backend",
        "releaseYear": clock.release_year,
        "cutoff": clock.current_cutoff(),
    }


@app.api_route("/tracks.json", methods=["GET", "HEAD"])
def tracks_mapping(resolver: MappingResolver = Depends(get_resolver)):
    """
    Released (or test) track number -> storage key.
    Safe to cache for an hour; /audio re-checks every request anyway.
    """
    mapping = resolver.resolve()

    headers = {
        "Cache-Control": f"public, max-age={settings.tracks_max_age_sec}",
        "Access-Control-Allow-Origin": settings.cors_origin,
    }
    return _json(mapping, headers=headers)


@app.api_route("/audio/{key:path}", methods=["GET", "HEAD"])
def audio_file(key: str, request: Request, gate: AssetGate = Depends(get_gate)):
    """
    Streams one audio object after re-validating its release date.
    Honors a single `Range: bytes=...` header (206).
    HEAD runs the same checks but never downloads the object.
    """
    byte_range = ByteRange.parse(request.headers.get("range"))
    head = request.method == "HEAD"
    if head:
        obj = gate.authorize_and_stat(key, byte_range)
    else:
        obj = gate.authorize_and_fetch(key, byte_range)

    headers = cors_headers()
    headers["Accept-Ranges"] = "bytes"
    headers["Content-Length"] = str(obj.content_length)
    if obj.etag:
        headers["ETag"] = obj.etag
    if obj.cache_control:
        headers["Cache-Control"] = obj.cache_control
    if obj.last_modified:
        headers["Last-Modified"] = obj.last_modified
    if obj.content_range:
        headers["Content-Range"] = obj.content_range

    return Response(
        content=b"" if head else obj.body,
        status_code=206 if obj.is_partial else 200,
        media_type=obj.content_type,
        headers=headers,
    )
