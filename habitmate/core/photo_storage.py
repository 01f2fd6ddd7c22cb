"""Object storage for proof photos.

Photos live under ``{photo_storage_dir}/{bucket}/{user_id}/{timestamp}_{random}.{ext}``
and are served from ``{photo_public_base_url}/{bucket}/{path}``.
"""

import asyncio
import logging
import secrets
import string
from datetime import datetime
from pathlib import Path, PurePosixPath
from urllib.parse import quote, unquote, urlparse

from habitmate.core.config import constants, settings
from habitmate.core.errors import StorageError


logger = logging.getLogger(__name__)

_RANDOM_ALPHABET = string.ascii_lowercase + string.digits


def _bucket_root() -> Path:
    return Path(settings.photo_storage_dir).resolve() / settings.photo_bucket


def _resolve(path: str) -> Path:
    """Resolve a bucket path, refusing anything that escapes the bucket."""
    root = _bucket_root()
    target = (root / PurePosixPath(path)).resolve()
    if not target.is_relative_to(root) or target == root:
        msg = f"Invalid storage path: {path}"
        raise StorageError(msg)
    return target


def file_extension(filename: str | None) -> str:
    """Return the lowercase extension of ``filename`` or the default one."""
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].lower()
        if ext.isalnum():
            return ext
    return constants.DEFAULT_PHOTO_EXTENSION


def build_photo_path(user_id: str, filename: str | None, *, now: datetime) -> str:
    """Return a fresh bucket path ``{user_id}/{timestamp_ms}_{random}.{ext}``."""
    timestamp = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(constants.PHOTO_RANDOM_SUFFIX_LENGTH))
    return f"{user_id}/{timestamp}_{suffix}.{file_extension(filename)}"


def _write_new_file(target: Path, content: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    # "xb" refuses to overwrite an existing object
    with target.open("xb") as handle:
        handle.write(content)


async def upload(path: str, content: bytes) -> str:
    """Store ``content`` at ``path`` and return the path.

    Raises:
        StorageError: If the object already exists or cannot be written
    """
    target = _resolve(path)
    try:
        await asyncio.to_thread(_write_new_file, target, content)
    except FileExistsError as e:
        raise StorageError(f"Object already exists: {path}") from e
    except OSError as e:
        logger.error("photo_upload_failed", extra={"path": path, "error": str(e)})
        raise StorageError(f"Failed to upload {path}: {e}") from e

    logger.info("Uploaded photo", extra={"path": path, "size": len(content)})
    return path


def get_public_url(path: str) -> str:
    """Return the public URL of a bucket path."""
    base = settings.photo_public_base_url.rstrip("/")
    return f"{base}/{settings.photo_bucket}/{quote(path)}"


def path_from_public_url(url: str) -> str | None:
    """Recover the bucket path from a public URL, or None if it is not one of ours."""
    marker = f"/{settings.photo_bucket}/"
    parsed_path = urlparse(url).path
    if marker not in parsed_path:
        return None
    return unquote(parsed_path.split(marker, 1)[1]) or None


async def remove(paths: list[str]) -> int:
    """Delete the given objects and return how many were removed. Missing objects are skipped."""
    removed = 0
    for path in paths:
        target = _resolve(path)
        try:
            await asyncio.to_thread(target.unlink)
            removed += 1
        except FileNotFoundError:
            logger.warning("Photo already gone", extra={"path": path})
        except OSError as e:
            raise StorageError(f"Failed to remove {path}: {e}") from e

    logger.info("Removed photos", extra={"requested": len(paths), "removed": removed})
    return removed


async def read(path: str) -> bytes:
    """Return the stored bytes of ``path``."""
    target = _resolve(path)
    try:
        return await asyncio.to_thread(target.read_bytes)
    except FileNotFoundError as e:
        raise StorageError(f"Object not found: {path}") from e


async def discard(photo_urls: list[str | None]) -> None:
    """Best-effort removal of photos by public URL. Failures are logged, not raised."""
    paths = [path for url in photo_urls if url and (path := path_from_public_url(url))]
    if not paths:
        return
    try:
        await remove(paths)
    except StorageError as e:
        logger.warning("Failed to remove photos", extra={"paths": paths, "error": str(e)})
