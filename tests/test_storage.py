"""Tests for the token store and cross-context synchronization."""

import json

from startupsareeasy.session.broadcast import BroadcastHub
from startupsareeasy.session.storage import (
    JsonFileBackend,
    MemoryBackend,
    StorageKeys,
    TokenStore,
)


class BrokenBackend(MemoryBackend):
    def set(self, key, value):
        raise OSError("quota exceeded")


def test_set_and_get_item():
    store = TokenStore()
    assert store.set_item(StorageKeys.ACCESS_TOKEN, "abc") is True
    assert store.get_item(StorageKeys.ACCESS_TOKEN) == "abc"
    assert store.remove_item(StorageKeys.ACCESS_TOKEN) is True
    assert store.get_item(StorageKeys.ACCESS_TOKEN) is None


def test_failed_write_returns_false():
    store = TokenStore(BrokenBackend())
    assert store.set_item("key", "value") is False
    assert store.get_item("key") is None


def test_other_context_listener_receives_change():
    hub = BroadcastHub()
    backend = MemoryBackend()
    tab_a = TokenStore(backend, hub)
    tab_b = TokenStore(backend, hub)
    seen = []
    tab_b.add_listener(StorageKeys.ACCESS_TOKEN, seen.append)

    tab_a.set_item(StorageKeys.ACCESS_TOKEN, "new-token")
    tab_a.remove_item(StorageKeys.ACCESS_TOKEN)

    assert seen == ["new-token", None]


def test_own_writes_do_not_notify_self():
    hub = BroadcastHub()
    store = TokenStore(MemoryBackend(), hub)
    seen = []
    store.add_listener(StorageKeys.ACCESS_TOKEN, seen.append)

    store.set_item(StorageKeys.ACCESS_TOKEN, "token")

    assert seen == []


def test_listener_removal_and_other_keys():
    hub = BroadcastHub()
    tab_a = TokenStore(MemoryBackend(), hub)
    tab_b = TokenStore(MemoryBackend(), hub)
    seen = []
    remove = tab_b.add_listener(StorageKeys.REFRESH_TOKEN, seen.append)

    tab_a.set_item(StorageKeys.ACCESS_TOKEN, "ignored")
    tab_a.set_item(StorageKeys.REFRESH_TOKEN, "first")
    remove()
    tab_a.set_item(StorageKeys.REFRESH_TOKEN, "second")

    assert seen == ["first"]


def test_failing_listener_does_not_block_others():
    hub = BroadcastHub()
    tab_a = TokenStore(MemoryBackend(), hub)
    tab_b = TokenStore(MemoryBackend(), hub)
    seen = []

    def broken(value):
        raise RuntimeError("boom")

    tab_b.add_listener("k", broken)
    tab_b.add_listener("k", seen.append)
    tab_a.set_item("k", "v")

    assert seen == ["v"]


def test_closed_store_stops_receiving():
    hub = BroadcastHub()
    tab_a = TokenStore(MemoryBackend(), hub)
    tab_b = TokenStore(MemoryBackend(), hub)
    seen = []
    tab_b.add_listener("k", seen.append)
    tab_b.close()

    tab_a.set_item("k", "v")

    assert seen == []


def test_clear_auth_storage_removes_auth_and_platform_keys():
    backend = MemoryBackend({
        StorageKeys.ACCESS_TOKEN: "a",
        StorageKeys.REFRESH_TOKEN: "r",
        StorageKeys.LOGIN_COMPLETE: "true",
        "supabase.auth.token": "x",
        "sb-project-auth-token": "y",
        "theme": "dark",
    })
    store = TokenStore(backend)

    store.clear_auth_storage()

    assert backend.keys() == ["theme"]


def test_json_file_backend_shared_between_stores(tmp_path):
    path = tmp_path / "session.json"
    first = TokenStore(JsonFileBackend(path))
    second = TokenStore(JsonFileBackend(path))
    seen = []
    second.add_listener(StorageKeys.ACCESS_TOKEN, seen.append)

    first.set_item(StorageKeys.ACCESS_TOKEN, "shared")

    assert second.get_item(StorageKeys.ACCESS_TOKEN) == "shared"
    assert json.loads(path.read_text()) == {StorageKeys.ACCESS_TOKEN: "shared"}
    assert seen == []


def test_is_available():
    assert TokenStore().is_available() is True


def test_broadcast_messages_carry_ids_and_skip_sender():
    hub = BroadcastHub()
    sender = hub.open("auth")
    receiver = hub.open("auth")
    other_name = hub.open("csrf")
    seen = {"sender": [], "receiver": [], "other": []}
    sender.subscribe(seen["sender"].append)
    receiver.subscribe(seen["receiver"].append)
    other_name.subscribe(seen["other"].append)

    first = sender.post({"key": "sb-access-token", "value": "a"})
    second = sender.post({"key": "sb-access-token", "value": "b"})

    assert first.id != second.id
    assert first.origin == sender.id
    assert [m.id for m in seen["receiver"]] == [first.id, second.id]
    assert seen["sender"] == []
    assert seen["other"] == []
