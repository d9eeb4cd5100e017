# pylint: disable=missing-module-docstring,missing-function-docstring

import socket

import httpx
import pytest

import connectivity_observer
from connectivity_observer import (
    ConnectivityObserver,
    ConnectivityStatus,
    HttpNetworkProbe,
    NetworkSnapshot,
    classify,
)

UP = NetworkSnapshot(True, True)
WEAK = NetworkSnapshot(True, False)
DOWN = NetworkSnapshot(False, False)


class ScriptedProbe:
    """Replays snapshots; the last one repeats forever."""

    def __init__(self, *snapshots):
        self.snapshots = list(snapshots)
        self.registered = 0
        self.unregistered = 0
        self.pulls = 0

    def register(self):
        self.registered += 1

    def unregister(self):
        self.unregistered += 1

    def snapshot(self):
        self.pulls += 1
        if len(self.snapshots) > 1:
            return self.snapshots.pop(0)
        return self.snapshots[0]


def make_stream(*snapshots):
    probe = ScriptedProbe(*snapshots)
    return probe, ConnectivityObserver(probe=probe, interval=0).observe()


# ---------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------

def test_classify():
    assert classify(UP, had_network=False) is ConnectivityStatus.AVAILABLE
    assert classify(WEAK, had_network=True) is ConnectivityStatus.LOSING
    assert classify(DOWN, had_network=True) is ConnectivityStatus.LOST
    assert classify(DOWN, had_network=False) is ConnectivityStatus.UNAVAILABLE


# ---------------------------------------------------------------------
# Stream
# ---------------------------------------------------------------------

def test_observe_is_lazy():
    probe, stream = make_stream(UP)

    assert probe.registered == 0
    assert next(stream) is ConnectivityStatus.AVAILABLE
    assert probe.registered == 1


def test_yields_transitions_in_order():
    _, stream = make_stream(UP, UP, WEAK, WEAK, DOWN, UP)

    got = [next(stream) for _ in range(4)]

    assert got == [
        ConnectivityStatus.AVAILABLE,
        ConnectivityStatus.LOSING,
        ConnectivityStatus.LOST,
        ConnectivityStatus.AVAILABLE,
    ]


def test_no_network_from_the_start_is_unavailable():
    _, stream = make_stream(DOWN, UP)

    assert next(stream) is ConnectivityStatus.UNAVAILABLE
    assert next(stream) is ConnectivityStatus.AVAILABLE


def test_close_unregisters_and_exhausts():
    probe, stream = make_stream(UP, DOWN)
    next(stream)

    stream.close()
    stream.close()

    assert probe.unregistered == 1
    assert stream.closed
    with pytest.raises(StopIteration):
        next(stream)
    assert list(stream) == []
    assert probe.registered == 1


def test_close_before_first_pull_never_registers():
    probe, stream = make_stream(UP)
    stream.close()

    assert list(stream) == []
    assert probe.registered == 0
    assert probe.unregistered == 0


def test_with_block_unregisters_on_error():
    probe, stream = make_stream(UP)

    with pytest.raises(RuntimeError):
        with stream:
            next(stream)
            raise RuntimeError("boom")

    assert probe.unregistered == 1


def test_each_observe_is_a_fresh_stream():
    probe = ScriptedProbe(UP)
    observer = ConnectivityObserver(probe=probe, interval=0)
    first = observer.observe()
    next(first)
    first.close()

    second = observer.observe()

    assert next(second) is ConnectivityStatus.AVAILABLE
    assert probe.registered == 2


# ---------------------------------------------------------------------
# Desktop probe
# ---------------------------------------------------------------------

class _Sock:
    def close(self):
        pass


def _probe_with(status_code):
    transport = httpx.MockTransport(lambda request: httpx.Response(status_code))
    probe = HttpNetworkProbe(transport=transport)
    probe.register()
    return probe


def test_http_probe_validated(monkeypatch):
    monkeypatch.setattr(connectivity_observer.socket, "create_connection", lambda *a, **k: _Sock())
    probe = _probe_with(204)

    assert probe.snapshot() == UP
    probe.unregister()


def test_http_probe_captive_portal_is_not_validated(monkeypatch):
    monkeypatch.setattr(connectivity_observer.socket, "create_connection", lambda *a, **k: _Sock())
    probe = _probe_with(302)

    assert probe.snapshot() == WEAK
    probe.unregister()


def test_http_network_check_after_unregister_reads_not_validated(monkeypatch):
    monkeypatch.setattr(connectivity_observer.socket, "create_connection", lambda *a, **k: _Sock())
    probe = _probe_with(204)
    probe.unregister()

    assert probe.snapshot() == WEAK


def test_http_network_check_client_closed_mid_request(monkeypatch):
    monkeypatch.setattr(connectivity_observer.socket, "create_connection", lambda *a, **k: _Sock())
    probe = _probe_with(204)
    client = probe._client
    client.close()

    assert probe.snapshot() == WEAK

    def closed_get(*a, **k):
        raise RuntimeError("Cannot send a request, as the client has been closed.")

    probe._client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(204)))
    monkeypatch.setattr(probe._client, "get", closed_get)

    assert probe.snapshot() == WEAK
    probe.unregister()


def test_http_probe_unreachable(monkeypatch):
    def refuse(*a, **k):
        raise socket.timeout("timed out")

    monkeypatch.setattr(connectivity_observer.socket, "create_connection", refuse)
    probe = _probe_with(204)

    assert probe.snapshot() == DOWN
    probe.unregister()
