"""Unit tests for ProviderConfigStore."""

import json

import pytest

from mcp_relay.providers import ProviderConfig, ProviderConfigStore


@pytest.fixture
def store(tmp_path):
    return ProviderConfigStore(path=tmp_path / "data" / "providers.json")


def _config(provider_id, **overrides):
    values = {
        "id": provider_id,
        "name": provider_id.title(),
        "transport": "stdio",
        "command": "server",
    }
    values.update(overrides)
    return ProviderConfig(**values)


def test_empty_store(store):
    """Test a store whose file does not exist yet."""
    assert store.list_all() == []
    assert store.get("missing") is None
    assert store.disabled_ids() == set()


def test_save_and_get(store):
    """Test saving and reading back a config."""
    config = _config("files", args=["-y", "server-filesystem"])
    store.save(config)

    assert store.get("files") == config
    assert store.list_all() == [config]
    assert store.path.exists()


def test_save_updates_in_place(store):
    """Test that saving an existing id replaces its config."""
    store.save(_config("files"))
    store.save(_config("files", name="Renamed"))

    configs = store.list_all()
    assert len(configs) == 1
    assert configs[0].name == "Renamed"


def test_save_keeps_enabled_flag_and_created_at(store):
    """Test that updates preserve the flag and creation time."""
    store.save(_config("files"))
    store.set_enabled("files", False)
    created = json.loads(store.path.read_text())["providers"][0]["created_at"]

    store.save(_config("files", name="Renamed"))

    record = json.loads(store.path.read_text())["providers"][0]
    assert record["enabled"] is False
    assert record["created_at"] == created


def test_most_recent_first(store):
    """Test ordering by last update."""
    store.save(_config("old"))
    store.save(_config("new"))
    store.set_enabled("old", True)

    assert [c.id for c in store.list_all()][0] == "old"


def test_save_all_replaces_set(store):
    """Test bulk replacement."""
    store.save(_config("a"))
    store.save(_config("b"))

    store.save_all([_config("b"), _config("c")])

    assert {c.id for c in store.list_all()} == {"b", "c"}


def test_delete(store):
    """Test deleting a config."""
    store.save(_config("a"))
    store.delete("a")

    assert store.list_all() == []


def test_delete_missing_raises(store):
    """Test deleting an unknown id."""
    with pytest.raises(FileNotFoundError):
        store.delete("ghost")


def test_enabled_flags(store):
    """Test enabling and disabling providers."""
    store.save(_config("a"))
    store.save(_config("b"))

    store.set_enabled("a", False)

    assert store.enabled_states() == {"a": False, "b": True}
    assert [c.id for c in store.list_enabled()] == ["b"]
    assert store.disabled_ids() == {"a"}


def test_set_enabled_missing_raises(store):
    """Test changing the flag of an unknown id."""
    with pytest.raises(FileNotFoundError):
        store.set_enabled("ghost", True)


def test_corrupt_file_raises_value_error(store):
    """Test reading a file that is not valid JSON."""
    store.path.write_text("{not json")

    with pytest.raises(ValueError):
        store.list_all()


def test_invalid_records_are_skipped(store):
    """Test that one bad stored config does not hide the others."""
    store.save(_config("good"))
    data = json.loads(store.path.read_text())
    data["providers"].append(
        {"config": {"id": "bad", "name": "Bad", "transport": "stdio"}, "enabled": True}
    )
    store.path.write_text(json.dumps(data))

    assert [c.id for c in store.list_all()] == ["good"]


def test_records_without_config_are_skipped(store):
    """Test that records lacking a config id do not break lookups."""
    store.save(_config("good"))
    store.set_enabled("good", False)
    data = json.loads(store.path.read_text())
    data["providers"].extend([{"enabled": False}, {"config": {"name": "no id"}}, 7])
    store.path.write_text(json.dumps(data))

    assert store.disabled_ids() == {"good"}
    assert [c.id for c in store.list_all()] == ["good"]


@pytest.mark.parametrize("content", ["[1, 2]", '{"providers": {"a": 1}}', '"text"'])
def test_malformed_top_level_raises_value_error(store, content):
    """Test that a file of the wrong shape is reported as unreadable."""
    store.path.write_text(content)

    with pytest.raises(ValueError):
        store.disabled_ids()
