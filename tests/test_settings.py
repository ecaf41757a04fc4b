import json

import pytest

from linkguard.settings import IS_ENABLED, USER_WHITELIST_HOSTS, SettingsStore


def test_defaults_protection_off(tmp_path):
    store = SettingsStore(tmp_path / "settings.json")

    assert store.is_enabled is False
    assert store.whitelist_hosts() == []
    assert store.snapshot().is_enabled is False


def test_values_persist_across_instances(tmp_path):
    path = tmp_path / "settings.json"
    store = SettingsStore(path)
    store.set_enabled(True)
    store.add_whitelist_host("b.test")
    store.add_whitelist_host("a.test")

    reloaded = SettingsStore(path)

    assert reloaded.is_enabled is True
    assert reloaded.whitelist_hosts() == ["a.test", "b.test"]
    assert json.loads(path.read_text())[IS_ENABLED] is True


def test_listeners_notified_only_on_change(tmp_path):
    store = SettingsStore(tmp_path / "settings.json")
    events = []
    store.subscribe(lambda key, old, new: events.append((key, old, new)))

    store.set_enabled(True)
    store.set_enabled(True)
    store.add_whitelist_host("a.test")
    store.add_whitelist_host("a.test")

    assert events == [
        (IS_ENABLED, False, True),
        (USER_WHITELIST_HOSTS, [], ["a.test"]),
    ]


def test_unsubscribe_stops_notifications():
    store = SettingsStore()
    events = []
    unsubscribe = store.subscribe(lambda *args: events.append(args))

    unsubscribe()
    store.set_enabled(True)

    assert events == []


def test_corrupt_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json")

    store = SettingsStore(path)

    assert store.is_enabled is False


def test_snapshot_is_detached_from_later_changes():
    store = SettingsStore()
    store.add_whitelist_host("a.test")
    snapshot = store.snapshot()

    store.add_whitelist_host("b.test")

    assert snapshot.user_whitelist_hosts == frozenset({"a.test"})


def test_failed_write_leaves_store_and_listeners_untouched(tmp_path, monkeypatch):
    store = SettingsStore(tmp_path / "settings.json")
    events = []
    store.subscribe(lambda *args: events.append(args))

    def failing_save(values):
        raise OSError("disk full")

    monkeypatch.setattr(store, "_save", failing_save)
    with pytest.raises(OSError):
        store.add_whitelist_host("a.test")

    assert store.whitelist_hosts() == []
    assert events == []

    monkeypatch.undo()
    assert store.add_whitelist_host("a.test") is True
    assert events == [(USER_WHITELIST_HOSTS, [], ["a.test"])]
