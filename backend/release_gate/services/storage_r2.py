# backend/release_gate/services/storage_r2.py
from __future__ import annotations

import logging
from datetime import timezone
from email.utils import format_datetime
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from release_gate.core.config import Settings
from release_gate.core.errors import RangeNotSatisfiableError, StorageError
from release_gate.models.audio import AudioObject, ByteRange
from release_gate.services.storage import select_span

logger = logging.getLogger("release_gate.storage.r2")

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


def get_s3_client(cfg: Settings):
    return boto3.client(
        "s3",
        endpoint_url=cfg.r2_endpoint,
        aws_access_key_id=cfg.r2_access_key_id,
        aws_secret_access_key=cfg.r2_secret_access_key,
        region_name=cfg.r2_region,
        config=Config(
            signature_version="s3v4",
            connect_timeout=cfg.r2_connect_timeout_sec,
            read_timeout=cfg.r2_read_timeout_sec,
            retries={"max_attempts": 3, "mode": "standard"},
        ),
    )


def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


def _total_from_content_range(content_range: str | None) -> int | None:
    # "bytes 0-99/1000"
    if not content_range or "/" not in content_range:
        return None
    total = content_range.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


def _range_error_total(e: ClientError) -> int | None:
    # R2/S3 report the object size on 416 as `Content-Range: bytes */N`
    # or as <ActualObjectSize> in the error body
    headers = e.response.get("ResponseMetadata", {}).get("HTTPHeaders", {})
    total = _total_from_content_range(headers.get("content-range"))
    if total is not None:
        return total
    size = str(e.response.get("Error", {}).get("ActualObjectSize", ""))
    return int(size) if size.isdigit() else None


class R2Storage:
    """
    Cloudflare R2 bucket behind the S3 API.

    Keys handed to callers never include R2_PREFIX; the prefix is applied
    on every read so listings and gets stay symmetric.
    """

    def __init__(self, client: Any, bucket: str, prefix: str = "") -> None:
        self.client = client
        self.bucket = bucket
        self.prefix = prefix.strip().strip("/")

    @classmethod
    def from_settings(cls, cfg: Settings) -> R2Storage:
        return cls(get_s3_client(cfg), bucket=cfg.r2_bucket or "", prefix=cfg.r2_prefix)

    def normalize_key(self, key: str) -> str:
        # exact key; the gate has already rejected unsafe keys
        return f"{self.prefix}/{key}" if self.prefix else key

    def _strip_prefix(self, key: str) -> str:
        if self.prefix and key.startswith(self.prefix + "/"):
            return key[len(self.prefix) + 1:]
        return key

    def list_keys(self) -> list[str]:
        """Every key in the bucket (under R2_PREFIX), all pages exhausted."""
        params: dict[str, Any] = {"Bucket": self.bucket}
        if self.prefix:
            params["Prefix"] = self.prefix + "/"

        keys: list[str] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**params):
                for obj in page.get("Contents", []):
                    keys.append(self._strip_prefix(obj["Key"]))
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"R2 listing failed for bucket '{self.bucket}': {e}") from e

        logger.debug("R2 list: bucket='%s' prefix='%s' keys=%d", self.bucket, self.prefix, len(keys))
        return keys

    def get_object(self, key: str, byte_range: Optional[ByteRange] = None) -> AudioObject | None:
        """
        Object bytes plus HTTP metadata. None if the key does not exist.
        """
        final_key = self.normalize_key(key)
        params: dict[str, Any] = {"Bucket": self.bucket, "Key": final_key}
        if byte_range is not None:
            params["Range"] = byte_range.to_header()

        logger.debug("R2 fetch: bucket='%s' key='%s' range=%s", self.bucket, final_key, params.get("Range"))

        try:
            obj = self.client.get_object(**params)
            body = obj["Body"].read()
        except ClientError as e:
            code = _error_code(e)
            if code in _MISSING_CODES:
                return None
            if code == "InvalidRange":
                raise RangeNotSatisfiableError(
                    f"Range not satisfiable for '{key}'", total_length=_range_error_total(e)
                ) from e
            raise StorageError(f"R2 get failed for '{final_key}': {code or e}") from e
        except BotoCoreError as e:
            # connect/read timeouts land here
            raise StorageError(f"R2 get failed for '{final_key}': {e}") from e

        content_range = obj.get("ContentRange")
        last_modified = obj.get("LastModified")

        return AudioObject(
            key=key,
            body=body,
            content_type=obj.get("ContentType") or "application/octet-stream",
            etag=obj.get("ETag"),
            content_length=len(body),
            total_length=_total_from_content_range(content_range) if content_range else len(body),
            content_range=content_range,
            cache_control=obj.get("CacheControl"),
            last_modified=format_datetime(last_modified.astimezone(timezone.utc), usegmt=True) if last_modified else None,
        )

    def head_object(self, key: str, byte_range: Optional[ByteRange] = None) -> AudioObject | None:
        """
        Metadata only (HEAD). The range is resolved against the object size
        locally, so no bytes are transferred.
        """
        final_key = self.normalize_key(key)
        logger.debug("R2 head: bucket='%s' key='%s'", self.bucket, final_key)

        try:
            obj = self.client.head_object(Bucket=self.bucket, Key=final_key)
        except ClientError as e:
            # HEAD errors carry no body, so the code is often just the status
            if _error_code(e) in _MISSING_CODES:
                return None
            raise StorageError(f"R2 head failed for '{final_key}': {_error_code(e) or e}") from e
        except BotoCoreError as e:
            raise StorageError(f"R2 head failed for '{final_key}': {e}") from e

        total = int(obj.get("ContentLength", 0))
        first, last, content_range = select_span(key, total, byte_range)
        last_modified = obj.get("LastModified")

        return AudioObject(
            key=key,
            body=b"",
            content_type=obj.get("ContentType") or "application/octet-stream",
            etag=obj.get("ETag"),
            content_length=last - first + 1,
            total_length=total,
            content_range=content_range,
            cache_control=obj.get("CacheControl"),
            last_modified=format_datetime(last_modified.astimezone(timezone.utc), usegmt=True) if last_modified else None,
        )
