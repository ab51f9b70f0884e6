"""Unit tests for the key-value stores."""
import json
import pytest
from vocal_energy.core.storage import InMemoryKeyValueStore, JsonFileKeyValueStore, create_store


def test_in_memory_store_roundtrip():
    """Test that the in-memory store sets, gets and deletes."""
    store = InMemoryKeyValueStore()
    assert store.get("missing") is None

    store.set("key", "value")
    assert store.get("key") == "value"

    assert store.delete("key") is True
    assert store.delete("key") is False
    assert store.get("key") is None


def test_json_file_store_persists(tmp_path):
    """Test that the file store survives a reopen."""
    path = tmp_path / "nested" / "store.json"
    store = JsonFileKeyValueStore(str(path))
    store.set("metricConfig", "[]")

    # A fresh instance sees the data written by the first one
    reopened = JsonFileKeyValueStore(str(path))
    assert reopened.get("metricConfig") == "[]"
    assert json.loads(path.read_text()) == {"metricConfig": "[]"}

    assert reopened.delete("metricConfig") is True
    assert JsonFileKeyValueStore(str(path)).get("metricConfig") is None


def test_json_file_store_leaves_no_temp_files(tmp_path):
    """Test that atomic writes leave no temp files behind."""
    store = JsonFileKeyValueStore(str(tmp_path / "store.json"))
    for i in range(5):
        store.set("key", str(i))
    assert sorted(p.name for p in tmp_path.iterdir()) == ["store.json"]


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
def test_json_file_store_ignores_bad_file(tmp_path, content):
    """Test that an unreadable store file starts empty."""
    path = tmp_path / "store.json"
    path.write_text(content)

    store = JsonFileKeyValueStore(str(path))
    assert store.get("anything") is None

    store.set("key", "value")
    assert json.loads(path.read_text()) == {"key": "value"}


def test_create_store(tmp_path):
    """Test that an empty path selects the in-memory store."""
    assert isinstance(create_store(""), InMemoryKeyValueStore)
    assert isinstance(create_store(str(tmp_path / "s.json")), JsonFileKeyValueStore)
