import threading

import pytest

from signal_hub.envelope import Signal
from signal_hub.errors import TransportError
from signal_hub.registry import Client, ConnectionRegistry


def test_add_returns_size_and_others_after_insert(make_handle):
    reg = ConnectionRegistry()
    a, b = Client("A", make_handle()), Client("B", make_handle())
    assert reg.add(a) == (1, [])
    assert reg.add(b) == (2, [a])
    assert reg.size() == 2


def test_add_same_id_replaces(make_handle):
    reg = ConnectionRegistry()
    first, second = Client("A", make_handle()), Client("A", make_handle())
    reg.add(first)
    assert reg.add(second) == (1, [])
    assert reg.get("A") is second


def test_remove_is_idempotent(make_handle):
    reg = ConnectionRegistry()
    client = Client("A", make_handle())
    reg.add(client)
    assert reg.remove("A") is client
    assert reg.remove("A") is None
    assert reg.remove("never-there") is None
    assert reg.size() == 0


def test_get_missing_and_none(make_handle):
    reg = ConnectionRegistry()
    reg.add(Client("A", make_handle()))
    assert reg.get("B") is None
    assert reg.get(None) is None


def test_snapshot_is_a_copy(make_handle):
    reg = ConnectionRegistry()
    for cid in "ABC":
        reg.add(Client(cid, make_handle()))
    snap = reg.snapshot(except_id="B")
    assert sorted(c.id for c in snap) == ["A", "C"]
    reg.remove("A")
    assert sorted(c.id for c in snap) == ["A", "C"]
    assert sorted(reg.ids()) == ["B", "C"]


def test_concurrent_adds_keep_unique_ids(make_handle):
    reg = ConnectionRegistry()

    def add_many(prefix):
        for i in range(200):
            reg.add(Client(f"{prefix}-{i}", make_handle()))

    threads = [threading.Thread(target=add_many, args=(p,)) for p in "wxyz"]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert reg.size() == 800
    assert len(set(reg.ids())) == 800


def test_client_send_wraps_transport_errors(make_handle):
    client = Client("A", make_handle(fail_send=True))
    with pytest.raises(TransportError) as info:
        client.send(Signal(from_="A", type="client_id", data="A"))
    assert info.value.client_id == "A"
    assert isinstance(info.value.__cause__, ConnectionResetError)


def test_client_receive_none_means_closed(make_handle):
    handle = make_handle()
    handle.hang_up()
    with pytest.raises(TransportError):
        Client("A", handle).receive()


def test_client_close_releases_handle_once(make_handle):
    handle = make_handle()
    client = Client("A", handle)
    client.close()
    client.close()
    assert handle.close_count == 1
    with pytest.raises(TransportError):
        client.send(Signal(from_="A", type="x"))
