import json
import os
from concurrent.futures import ThreadPoolExecutor

import pytest

from headless.config import Config
from headless.config_storage import FileStorage, InMemoryStorage


def test_new_in_memory_storage_is_empty():
    assert InMemoryStorage().get() is None


def test_in_memory_get_and_save():
    storage = InMemoryStorage()
    assert storage.get() is None

    test_config = Config(version="v1.0.0", properties={"key1": "value1", "key2": 123})
    storage.save(test_config)
    retrieved = storage.get()
    assert retrieved.version == "v1.0.0"
    assert retrieved.properties == {"key1": "value1", "key2": 123}
    assert retrieved is test_config

    new_config = Config(version="v1.0.1", properties={"key3": "new_value"})
    storage.save(new_config)
    overwritten = storage.get()
    assert overwritten.version == "v1.0.1"
    assert overwritten.properties == {"key3": "new_value"}
    assert overwritten is new_config


def test_in_memory_thread_safety():
    storage = InMemoryStorage()
    storage.save(Config(version="v0"))

    def writer(writer_id):
        for op in range(200):
            storage.save(Config(version=f"v{writer_id}.{op}", properties={"writer_id": writer_id, "op_num": op}))
        return True

    def reader(_):
        return all(storage.get() is not None for _ in range(200))

    with ThreadPoolExecutor(max_workers=20) as pool:
        results = list(pool.map(writer, range(10))) + list(pool.map(reader, range(10)))
    assert all(results)
    assert storage.get().version.startswith("v")


def test_in_memory_nil_config_save():
    storage = InMemoryStorage()
    storage.save(Config(version="v1.0", properties={"foo": "bar"}))
    assert storage.get().version == "v1.0"

    storage.save(None)
    assert storage.get() is None


@pytest.fixture
def file_path(tmp_path):
    return str(tmp_path / "test_config.json")


def test_new_file_storage_keeps_path():
    test_path = "/tmp/some/path/config.json"
    assert FileStorage(test_path).path == test_path


def test_file_storage_get_and_set(file_path):
    storage = FileStorage(file_path)
    assert storage.get() is None

    test_config = Config(
        version="v1.0.0",
        properties={"appName": "TestApp", "logLevel": "info", "port": 8080},
    )
    storage.set(test_config)

    with open(file_path, encoding="utf-8") as handle:
        written = json.load(handle)
    expected = {"appName": "TestApp", "logLevel": "info", "port": 8080}
    assert written["version"] == "v1.0.0"
    assert written["properties"] == expected

    retrieved = storage.get()
    assert retrieved.version == "v1.0.0"
    assert retrieved.properties == expected

    new_config = Config(
        version="v1.0.1",
        properties={"appName": "NewApp", "env": "production", "rate": 1.25},
    )
    storage.set(new_config)
    overwritten = storage.get()
    assert overwritten.version == "v1.0.1"
    assert overwritten.properties == {"appName": "NewApp", "env": "production", "rate": 1.25}


def test_file_storage_save_is_set(file_path):
    storage = FileStorage(file_path)
    storage.save(Config(version="v9", properties={"k": "v"}))
    assert storage.get() == Config(version="v9", properties={"k": "v"})


def test_file_storage_get_non_existent_file(file_path):
    assert FileStorage(file_path).get() is None


def test_file_storage_get_invalid_json(file_path):
    with open(file_path, "w", encoding="utf-8") as handle:
        handle.write('{"version": "v1", "properties": { "key": "value"')
    with pytest.raises(json.JSONDecodeError):
        FileStorage(file_path).get()


def test_file_storage_set_atomic_write(file_path):
    with open(file_path, "w", encoding="utf-8") as handle:
        json.dump(Config(version="v1.0", properties={"initial": "data"}).to_dict(), handle)

    storage = FileStorage(file_path)
    new_config = Config(version="v2.0", properties={"new": "data"})
    storage.set(new_config)

    assert not os.path.exists(file_path + ".tmp")
    retrieved = storage.get()
    assert retrieved.version == "v2.0"
    assert retrieved.properties == {"new": "data"}


def test_file_storage_null_document(file_path):
    storage = FileStorage(file_path)
    storage.set(None)
    assert storage.get() == Config()


def test_file_storage_concurrent_access(file_path):
    storage = FileStorage(file_path)
    storage.set(Config(version="v0"))

    def writer(writer_id):
        for op in range(20):
            storage.set(Config(version=f"v{writer_id}.{op}", properties={"writer": writer_id, "op": op}))
        return True

    def reader(_):
        return all(storage.get() is not None for _ in range(20))

    with ThreadPoolExecutor(max_workers=10) as pool:
        results = list(pool.map(writer, range(5))) + list(pool.map(reader, range(5)))
    assert all(results)
    final = storage.get()
    assert final.version.startswith("v")
    assert set(final.properties) == {"writer", "op"}