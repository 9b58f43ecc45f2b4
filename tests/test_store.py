"""Tests for the record stores."""

import json

import pytest

from pixelvault.app.db.store import FileRecordStore, InMemoryRecordStore
from pixelvault.app.exceptions import RecordNotFoundError, StorageFailureError

DOCUMENT = {"filename": "abc.json", "original": "cat.png", "uploadedAt": "2026-01-01T00:00:00Z", "imageBase64": "AAAA"}


@pytest.fixture
def file_store(tmp_path):
    store = FileRecordStore(tmp_path / "records")
    store.ensure_root()
    return store


class TestFileRecordStore:

    @pytest.mark.asyncio
    async def test_put_then_get(self, file_store):
        await file_store.put("abc", DOCUMENT)

        assert await file_store.get("abc") == DOCUMENT
        assert json.loads((file_store.root / "abc.json").read_text()) == DOCUMENT

    @pytest.mark.asyncio
    async def test_exists_and_list(self, file_store):
        assert await file_store.exists("abc") is False

        await file_store.put("b", DOCUMENT)
        await file_store.put("a", DOCUMENT)

        assert await file_store.exists("a") is True
        assert await file_store.list() == ["a", "b"]

    @pytest.mark.asyncio
    async def test_put_overwrites(self, file_store):
        await file_store.put("abc", DOCUMENT)
        await file_store.put("abc", {**DOCUMENT, "original": "dog.png"})

        assert (await file_store.get("abc"))["original"] == "dog.png"

    @pytest.mark.asyncio
    async def test_no_temporary_files_left(self, file_store):
        await file_store.put("abc", DOCUMENT)

        assert [p.name for p in file_store.root.iterdir()] == ["abc.json"]

    @pytest.mark.asyncio
    async def test_missing_record(self, file_store):
        with pytest.raises(RecordNotFoundError):
            await file_store.get("missing")

    @pytest.mark.asyncio
    async def test_traversal_key_is_not_found(self, file_store, tmp_path):
        (tmp_path / "secret.json").write_text("{}")

        with pytest.raises(RecordNotFoundError):
            await file_store.get("../secret")
        assert await file_store.exists("../secret") is False

    @pytest.mark.asyncio
    async def test_unsafe_key_rejected_on_put(self, file_store):
        with pytest.raises(ValueError):
            await file_store.put("../escape", DOCUMENT)

    @pytest.mark.asyncio
    async def test_corrupt_file_is_storage_failure(self, file_store):
        (file_store.root / "broken.json").write_text("{not json")

        with pytest.raises(StorageFailureError) as exc_info:
            await file_store.get("broken")

        assert exc_info.value.message == "Storage error"
        assert "broken.json" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_write_failure_is_storage_failure(self, tmp_path):
        store = FileRecordStore(tmp_path / "never-created")

        with pytest.raises(StorageFailureError):
            await store.put("abc", DOCUMENT)

    @pytest.mark.asyncio
    async def test_check(self, file_store, tmp_path):
        await file_store.check()

        with pytest.raises(StorageFailureError):
            await FileRecordStore(tmp_path / "absent").check()

    def test_ensure_root_creates_directory(self, tmp_path):
        store = FileRecordStore(tmp_path / "a" / "b")
        store.ensure_root()

        assert (tmp_path / "a" / "b").is_dir()


class TestInMemoryRecordStore:

    @pytest.mark.asyncio
    async def test_round_trip(self):
        store = InMemoryRecordStore()
        await store.put("abc", DOCUMENT)

        assert await store.get("abc") == DOCUMENT
        assert await store.exists("abc") is True
        assert await store.list() == ["abc"]

    @pytest.mark.asyncio
    async def test_returned_documents_are_copies(self):
        store = InMemoryRecordStore()
        await store.put("abc", DOCUMENT)

        fetched = await store.get("abc")
        fetched["original"] = "tampered"

        assert (await store.get("abc"))["original"] == "cat.png"

    @pytest.mark.asyncio
    async def test_missing_record(self):
        with pytest.raises(RecordNotFoundError):
            await InMemoryRecordStore().get("nope")
