"""
Upload a local folder of release files to the R2 bucket.

Usage (from backend/):
    python scripts/seed_r2.py ./audio
    python scripts/seed_r2.py ./audio --dry-run

Files are uploaded under their path relative to the folder (plus R2_PREFIX).
Keys without a track number (001-365) are skipped unless --all is passed.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from release_gate.core.config import settings
from release_gate.services.storage import guess_content_type
from release_gate.services.storage_r2 import R2Storage, get_s3_client
from release_gate.services.track_ids import extract_track_number, is_test_asset

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger("seed_r2")


def collect(folder: Path, include_all: bool = False) -> list[tuple[Path, str]]:
    out: list[tuple[Path, str]] = []
    for p in sorted(folder.rglob("*")):
        if not p.is_file():
            continue
        key = p.relative_to(folder).as_posix()
        if not include_all and extract_track_number(key) is None:
            logger.warning("Skipping %s (no track number in name)", key)
            continue
        out.append((p, key))
    return out


def main() -> int:
    ap = argparse.ArgumentParser(description="Seed R2 with release audio files")
    ap.add_argument("folder", type=Path)
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument("--all", action="store_true", help="upload files without a track number too")
    args = ap.parse_args()

    if not args.folder.is_dir():
        logger.error("Not a directory: %s", args.folder)
        return 2

    files = collect(args.folder, include_all=args.all)
    logger.info("Seeding R2 bucket '%s' with %d files", settings.r2_bucket, len(files))
    if args.dry_run:
        for path, key in files:
            tag = " [test]" if is_test_asset(key, settings.test_asset_marker) else ""
            logger.info("would upload %s -> %s%s", path, key, tag)
        return 0

    settings.validate_r2_or_raise()
    storage = R2Storage(get_s3_client(settings), bucket=settings.r2_bucket or "", prefix=settings.r2_prefix)

    for path, key in files:
        final_key = storage.normalize_key(key)
        content_type = guess_content_type(key)
        logger.info("Uploading %s -> %s (%s)", path, final_key, content_type)
        storage.client.upload_file(
            str(path),
            storage.bucket,
            final_key,
            ExtraArgs={"ContentType": content_type, "CacheControl": "private, no-store"},
        )

    logger.info("Seeding complete")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
