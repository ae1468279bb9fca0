"""Protocol behaviour of the relay, one message at a time."""

from __future__ import annotations

import logging

from naev_relay.services.protocol import Advertise, Deadvertise, Find, Heartbeat, ListSystems, Unknown


def _send(dispatcher, peer, payload: str):
    return dispatcher.handle(payload.encode("utf-8"), peer, peer.address)


def test_advertise_then_find_from_another_peer(dispatcher, peer_a, peer_b):
    assert _send(dispatcher, peer_a, "advertise\nsol\n") == "advertise_ack\nsol\n"
    assert _send(dispatcher, peer_b, "find\nsol\n") == f"found\n{peer_a.address}\n"


def test_find_unknown_system(dispatcher, peer_b):
    assert _send(dispatcher, peer_b, "find\nsol\n") == "not_found\n"


def test_heartbeat_keeps_system_findable(dispatcher, directory, clock, peer_a, peer_b):
    _send(dispatcher, peer_a, "advertise\nsol\n")
    clock.advance(60)
    assert _send(dispatcher, peer_a, "heartbeat\nsol\n") == "heartbeat_ack\n"
    clock.advance(60)  # 120s after advertise, 60s after heartbeat
    assert _send(dispatcher, peer_b, "find\nsol\n") == f"found\n{peer_a.address}\n"

    clock.advance(31)  # 91s since the last heartbeat, reaper has not run
    assert _send(dispatcher, peer_b, "find\nsol\n") == "not_found\n"
    assert "sol" in directory


def test_find_liveness_boundary_is_strict(dispatcher, clock, peer_a, peer_b):
    _send(dispatcher, peer_a, "advertise\nsol\n")
    clock.advance(89.5)
    assert _send(dispatcher, peer_b, "find\nsol\n").startswith("found\n")
    clock.advance(0.5)  # age == timeout exactly
    assert _send(dispatcher, peer_b, "find\nsol\n") == "not_found\n"


def test_heartbeat_from_wrong_peer_is_silent(dispatcher, directory, clock, peer_a, peer_b, caplog):
    _send(dispatcher, peer_a, "advertise\nsol\n")
    before = directory.lookup("sol").last_seen
    clock.advance(10)

    with caplog.at_level(logging.WARNING, logger="naev_relay"):
        assert _send(dispatcher, peer_b, "heartbeat\nsol\n") is None

    assert directory.lookup("sol").last_seen == before
    assert any(r.getMessage() == "heartbeat.wrong_peer" for r in caplog.records)


def test_heartbeat_for_unknown_system_is_silent(dispatcher, peer_a):
    assert _send(dispatcher, peer_a, "heartbeat\nsol\n") is None


def test_deadvertise_requires_owner(dispatcher, directory, peer_a, peer_b):
    _send(dispatcher, peer_a, "advertise\nsol\n")

    assert _send(dispatcher, peer_b, "deadvertise\nsol\n") is None
    assert "sol" in directory

    assert _send(dispatcher, peer_a, "deadvertise\nsol\n") == "deadvertise_ack\n"
    assert "sol" not in directory
    assert _send(dispatcher, peer_a, "deadvertise\nsol\n") is None


def test_list_includes_stale_entries(dispatcher, clock, peer_a, peer_b):
    _send(dispatcher, peer_a, "advertise\nsol\n")
    clock.advance(80)
    _send(dispatcher, peer_b, "advertise\njupiter\n")
    clock.advance(15)

    reply = _send(dispatcher, peer_b, "list\n")
    assert reply == f"active_systems\n2\nsol,{peer_a.address},95\njupiter,{peer_b.address},15\n"
    assert _send(dispatcher, peer_b, "find\nsol\n") == "not_found\n"


def test_list_empty_directory(dispatcher, peer_a):
    assert _send(dispatcher, peer_a, "list\n") == "active_systems\n0\n"


def test_repeated_heartbeats_extend_last_seen(dispatcher, directory, clock, peer_a):
    _send(dispatcher, peer_a, "advertise\nsol\n")
    for _ in range(5):
        clock.advance(60)
        assert _send(dispatcher, peer_a, "heartbeat\nsol\n") == "heartbeat_ack\n"
    assert directory.lookup("sol").last_seen == clock.now


def test_repeated_advertise_only_refreshes(dispatcher, directory, clock, peer_a):
    _send(dispatcher, peer_a, "advertise\nsol\n")
    clock.advance(5)
    assert _send(dispatcher, peer_a, "advertise\nsol\n") == "advertise_ack\nsol\n"

    rec = directory.lookup("sol")
    assert len(directory) == 1
    assert rec.peer is peer_a and rec.address == peer_a.address
    assert rec.last_seen == clock.now


def test_advertise_overwrites_other_owner(dispatcher, directory, peer_a, peer_b):
    """Last writer wins: a second peer takes over a name without any ownership check."""
    _send(dispatcher, peer_a, "advertise\nsol\n")
    assert _send(dispatcher, peer_b, "advertise\nsol\n") == "advertise_ack\nsol\n"

    assert _send(dispatcher, peer_a, "find\nsol\n") == f"found\n{peer_b.address}\n"
    # the previous owner lost every right on the record
    assert _send(dispatcher, peer_a, "heartbeat\nsol\n") is None
    assert _send(dispatcher, peer_a, "deadvertise\nsol\n") is None
    assert directory.lookup("sol").peer is peer_b


def test_unknown_command_and_missing_argument(dispatcher, directory, peer_a):
    for payload in ("foo\n", "advertise\n", "find\n", "heartbeat\n", "deadvertise\n"):
        assert _send(dispatcher, peer_a, payload) == "error\nUnknown command\n"
    assert len(directory) == 0


def test_empty_payload_gets_no_reply(dispatcher, peer_a, caplog):
    with caplog.at_level(logging.WARNING, logger="naev_relay"):
        assert dispatcher.handle(b"\n\n", peer_a, peer_a.address) is None
    assert any(r.getMessage() == "dispatch.empty_message" for r in caplog.records)


def test_dispatch_takes_explicit_time(dispatcher, directory, peer_a):
    dispatcher.dispatch(Advertise("sol"), peer_a, peer_a.address, now=5.0)
    assert directory.lookup("sol").last_seen == 5.0
    assert dispatcher.dispatch(Find("sol"), peer_a, peer_a.address, now=94.0).startswith("found")
    assert dispatcher.dispatch(Heartbeat("sol"), peer_a, peer_a.address, now=100.0) == "heartbeat_ack\n"
    assert dispatcher.dispatch(ListSystems(), peer_a, peer_a.address, now=101.0).startswith("active_systems\n1\n")
    assert dispatcher.dispatch(Deadvertise("sol"), peer_a, peer_a.address, now=102.0) == "deadvertise_ack\n"
    assert dispatcher.dispatch(Unknown("x"), peer_a, peer_a.address, now=103.0) == "error\nUnknown command\n"
