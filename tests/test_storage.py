"""Tests for the local filesystem and Supabase storage backends."""

from unittest.mock import MagicMock, patch

import pytest

from catalog_collector.config.loader import ConfigurationError
from catalog_collector.config.settings import JobSettings
from catalog_collector.core.errors import StorageError
from catalog_collector.storage import (
    FileStorage,
    StorageContent,
    SupabaseStorage,
    create_storage,
    split_storage_path,
)
from catalog_collector.storage.supabase_storage import cache_seconds, is_not_found

from conftest import BASE_ADDRESS


class NotFound(Exception):
    def __init__(self):
        super().__init__("Object not found")
        self.status = 404


class TestStorageAddressing:

    def test_base_address_gets_trailing_slash(self, tmp_path):
        storage = FileStorage("https://resolver.example.org/v3", tmp_path)
        assert storage.base_address == BASE_ADDRESS
        assert storage.resolve_uri("meta/cursor.json") == BASE_ADDRESS + "meta/cursor.json"

    @pytest.mark.parametrize("uri", [
        "https://elsewhere.example.org/meta/cursor.json",
        BASE_ADDRESS,
        BASE_ADDRESS + "meta/",
        BASE_ADDRESS + "meta/../../secrets.json",
    ])
    def test_invalid_uris_are_rejected(self, tmp_path, uri):
        with pytest.raises(StorageError):
            FileStorage(BASE_ADDRESS, tmp_path).relative_name(uri)


class TestFileStorage:

    @pytest.mark.asyncio
    async def test_missing_blob_loads_as_none(self, tmp_path):
        storage = FileStorage(BASE_ADDRESS, tmp_path)
        assert await storage.load(BASE_ADDRESS + "meta/cursor.json") is None

    @pytest.mark.asyncio
    async def test_save_then_load(self, tmp_path):
        storage = FileStorage(BASE_ADDRESS, tmp_path)
        uri = BASE_ADDRESS + "meta/cursor.json"

        await storage.save(uri, StorageContent.from_text('{"a": 1}', cache_control="no-store"))
        content = await storage.load(uri)

        assert content.text() == '{"a": 1}'
        assert (tmp_path / "meta" / "cursor.json").read_text() == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_save_overwrites_without_leftovers(self, tmp_path):
        storage = FileStorage(BASE_ADDRESS, tmp_path)
        uri = BASE_ADDRESS + "meta/cursor.json"

        await storage.save(uri, StorageContent.from_text("first"))
        await storage.save(uri, StorageContent.from_text("second"))

        assert (await storage.load(uri)).text() == "second"
        assert [p.name for p in (tmp_path / "meta").iterdir()] == ["cursor.json"]

    @pytest.mark.asyncio
    async def test_unwritable_location_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "meta"
        blocker.write_text("a file where a directory should be")
        storage = FileStorage(BASE_ADDRESS, tmp_path)

        with pytest.raises(StorageError):
            await storage.save(BASE_ADDRESS + "meta/cursor.json", StorageContent.from_text("{}"))

    @pytest.mark.asyncio
    async def test_unreadable_location_raises_storage_error(self, tmp_path):
        (tmp_path / "meta" / "cursor.json").mkdir(parents=True)
        storage = FileStorage(BASE_ADDRESS, tmp_path)

        with pytest.raises(StorageError):
            await storage.load(BASE_ADDRESS + "meta/cursor.json")


class TestSupabaseStorage:

    def make_storage(self, prefix="resolver"):
        client = MagicMock()
        bucket = client.storage.from_.return_value
        return SupabaseStorage(BASE_ADDRESS, client, "blobs", prefix), client, bucket

    @pytest.mark.asyncio
    async def test_save_uploads_with_upsert(self):
        storage, client, bucket = self.make_storage()

        await storage.save(
            BASE_ADDRESS + "meta/cursor.json",
            StorageContent.from_text("{}", content_type="application/json", cache_control="no-store")
        )

        client.storage.from_.assert_called_with("blobs")
        bucket.upload.assert_called_once_with(
            "resolver/meta/cursor.json",
            b"{}",
            {"content-type": "application/json", "cache-control": "0", "upsert": "true"}
        )

    @pytest.mark.asyncio
    async def test_load_downloads(self):
        storage, _, bucket = self.make_storage(prefix="")
        bucket.download.return_value = b'{"a": 1}'

        content = await storage.load(BASE_ADDRESS + "meta/cursor.json")

        bucket.download.assert_called_once_with("meta/cursor.json")
        assert content.data == b'{"a": 1}'

    @pytest.mark.asyncio
    async def test_not_found_loads_as_none(self):
        storage, _, bucket = self.make_storage()
        bucket.download.side_effect = NotFound()

        assert await storage.load(BASE_ADDRESS + "meta/cursor.json") is None

    @pytest.mark.asyncio
    async def test_backend_failures_raise_storage_error(self):
        storage, _, bucket = self.make_storage()
        bucket.download.side_effect = RuntimeError("invalid JWT")
        bucket.upload.side_effect = RuntimeError("payload too large")

        with pytest.raises(StorageError):
            await storage.load(BASE_ADDRESS + "meta/cursor.json")
        with pytest.raises(StorageError):
            await storage.save(BASE_ADDRESS + "meta/cursor.json", StorageContent.from_text("{}"))

    def test_cache_seconds(self):
        assert cache_seconds("no-store") == "0"
        assert cache_seconds("public, max-age=120") == "120"
        assert cache_seconds(None) == "3600"

    @pytest.mark.asyncio
    async def test_missing_bucket_is_a_storage_error(self):
        storage, _, bucket = self.make_storage()
        bucket.download.side_effect = Exception(
            {"statusCode": 400, "error": "Bucket not found", "message": "Bucket not found"}
        )

        with pytest.raises(StorageError):
            await storage.load(BASE_ADDRESS + "meta/cursor.json")

    @pytest.mark.asyncio
    async def test_missing_object_reply_loads_as_none(self):
        storage, _, bucket = self.make_storage()
        bucket.download.side_effect = Exception(
            {"statusCode": 400, "error": "not_found", "message": "Object not found"}
        )

        assert await storage.load(BASE_ADDRESS + "meta/cursor.json") is None

    def test_is_not_found(self):
        assert is_not_found(NotFound())
        assert is_not_found(Exception({"statusCode": "404", "error": "NoSuchKey"}))
        assert not is_not_found(RuntimeError("invalid JWT"))
        assert not is_not_found(Exception({"statusCode": 404, "error": "Bucket not found"}))
        assert not is_not_found(RuntimeError("Bucket not found"))


class TestStorageFactory:

    def settings(self, **kwargs):
        values = {
            "target_base_address": BASE_ADDRESS,
            "cdn_base_address": "https://cdn.example.org",
            "gallery_base_address": "https://gallery.example.org",
            "catalog_index_url": "https://catalog.example.org/v3/catalog0/index.json",
        }
        values.update(kwargs)
        return JobSettings(**values)

    def test_local_directory_wins(self, tmp_path):
        storage = create_storage(self.settings(target_local_directory=str(tmp_path), target_storage_path="blobs"))
        assert isinstance(storage, FileStorage)
        assert storage.root_directory == tmp_path

    def test_cloud_storage(self):
        settings = self.settings(
            target_storage_path="blobs/resolver/v3",
            supabase={"url": "https://project.supabase.co", "service_role_key": "key"}
        )
        with patch("catalog_collector.storage.factory.create_client") as create_client:
            storage = create_storage(settings)

        create_client.assert_called_once_with("https://project.supabase.co", "key")
        assert isinstance(storage, SupabaseStorage)
        assert storage.bucket == "blobs"
        assert storage.prefix == "resolver/v3"

    def test_cloud_storage_requires_credentials(self):
        settings = self.settings(target_storage_path="blobs", supabase={"url": "", "service_role_key": ""})
        with pytest.raises(ConfigurationError):
            create_storage(settings)

    def test_split_storage_path(self):
        assert split_storage_path("blobs") == ("blobs", "")
        with pytest.raises(ConfigurationError):
            split_storage_path("/")
