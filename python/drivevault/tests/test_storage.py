import asyncio
import os
import stat

import pytest

from drivevault.errors import StorageError
from drivevault.secrets.storage import JsonFileStorage, MemoryStorage


def test_memory_storage_read_write_delete():
    async def scenario():
        storage = MemoryStorage()
        assert await storage.read_value("k") is None
        await storage.write_value("k", "v1")
        await storage.write_value("k", "v2")
        assert await storage.read_value("k") == "v2"
        await storage.delete_value("k")
        await storage.delete_value("k")
        assert await storage.read_value("k") is None

    asyncio.run(scenario())


def test_json_file_storage_persists_across_instances(tmp_path):
    path = str(tmp_path / "nested" / "store.json")

    async def scenario():
        await JsonFileStorage(path).write_value("blob", "abc")
        await JsonFileStorage(path).write_value("other", "xyz")
        reopened = JsonFileStorage(path)
        assert await reopened.read_value("blob") == "abc"
        assert await reopened.read_value("other") == "xyz"
        await reopened.delete_value("blob")
        assert await JsonFileStorage(path).read_value("blob") is None
        assert await JsonFileStorage(path).read_value("other") == "xyz"

    asyncio.run(scenario())
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
    assert [p.name for p in (tmp_path / "nested").iterdir()] == ["store.json"]


def test_json_file_storage_missing_file_reads_none(tmp_path):
    storage = JsonFileStorage(str(tmp_path / "absent.json"))
    assert asyncio.run(storage.read_value("blob")) is None
    asyncio.run(storage.delete_value("blob"))


def test_json_file_storage_corrupt_file_raises_storage_error(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json")
    with pytest.raises(StorageError):
        asyncio.run(JsonFileStorage(str(path)).read_value("blob"))
