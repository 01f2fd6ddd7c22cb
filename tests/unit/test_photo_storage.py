"""Tests for proof photo storage."""

import re
from datetime import UTC, datetime

import pytest

from habitmate.core import photo_storage
from habitmate.core.errors import StorageError


NOW = datetime(2024, 1, 12, 12, 0, tzinfo=UTC)


@pytest.mark.unit
class TestPhotoPaths:
    """Tests for path and URL helpers."""

    def test_build_photo_path_shape(self):
        path = photo_storage.build_photo_path("alice", "IMG_0001.PNG", now=NOW)

        assert re.fullmatch(rf"alice/{int(NOW.timestamp() * 1000)}_[a-z0-9]{{6}}\.png", path)

    def test_build_photo_path_is_fresh_each_time(self):
        paths = {photo_storage.build_photo_path("alice", "a.jpg", now=NOW) for _ in range(20)}
        assert len(paths) > 1

    @pytest.mark.parametrize(
        ("filename", "expected"),
        [("photo.JPEG", "jpeg"), ("archive.tar.gz", "gz"), ("noext", "jpg"), (None, "jpg"), ("weird.p/g", "jpg")],
    )
    def test_file_extension(self, filename, expected):
        assert photo_storage.file_extension(filename) == expected

    def test_public_url_round_trip(self):
        url = photo_storage.get_public_url("alice/1_abc.jpg")

        assert url == "http://127.0.0.1:8000/storage/v1/object/public/task-photos/alice/1_abc.jpg"
        assert photo_storage.path_from_public_url(url) == "alice/1_abc.jpg"

    def test_foreign_url_has_no_path(self):
        assert photo_storage.path_from_public_url("https://example.com/avatar.png") is None


@pytest.mark.unit
class TestPhotoObjects:
    """Tests for upload, read, remove and discard."""

    async def test_upload_and_read(self, photo_dir):
        await photo_storage.upload("alice/1_abc.jpg", b"jpeg-bytes")

        assert (photo_dir / "alice" / "1_abc.jpg").read_bytes() == b"jpeg-bytes"
        assert await photo_storage.read("alice/1_abc.jpg") == b"jpeg-bytes"

    async def test_upload_refuses_to_overwrite(self, photo_dir):
        await photo_storage.upload("alice/1_abc.jpg", b"first")

        with pytest.raises(StorageError, match="already exists"):
            await photo_storage.upload("alice/1_abc.jpg", b"second")

        assert (photo_dir / "alice" / "1_abc.jpg").read_bytes() == b"first"

    @pytest.mark.parametrize("path", ["../escape.jpg", "alice/../../escape.jpg", ""])
    async def test_paths_outside_the_bucket_are_rejected(self, photo_dir, path):
        with pytest.raises(StorageError, match="Invalid storage path"):
            await photo_storage.upload(path, b"x")

    async def test_read_missing(self, photo_dir):
        with pytest.raises(StorageError, match="not found"):
            await photo_storage.read("alice/missing.jpg")

    async def test_remove_skips_missing(self, photo_dir):
        await photo_storage.upload("alice/1.jpg", b"x")

        removed = await photo_storage.remove(["alice/1.jpg", "alice/2.jpg"])

        assert removed == 1
        assert not (photo_dir / "alice" / "1.jpg").exists()

    async def test_discard_by_url_ignores_blanks_and_foreign_urls(self, photo_dir):
        await photo_storage.upload("alice/1.jpg", b"x")
        url = photo_storage.get_public_url("alice/1.jpg")

        await photo_storage.discard([None, "", "https://example.com/a.png", url])

        assert not (photo_dir / "alice" / "1.jpg").exists()

    async def test_discard_swallows_storage_errors(self, photo_dir):
        await photo_storage.discard(["http://127.0.0.1:8000/storage/v1/object/public/task-photos/../../etc/passwd"])
