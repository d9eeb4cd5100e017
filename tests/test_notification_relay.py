# pylint: disable=missing-module-docstring,missing-function-docstring

import threading

from connectivity_observer import ConnectivityObserver, ConnectivityStatus, NetworkSnapshot
from notification_relay import STATUS_MESSAGES, NotificationRelay


class ListStream:
    def __init__(self, statuses):
        self._it = iter(statuses)
        self.closed = False

    def __iter__(self):
        return self

    def __next__(self):
        if self.closed:
            raise StopIteration
        return next(self._it)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class ListObserver:
    def __init__(self, *statuses):
        self.statuses = statuses
        self.streams = []

    def observe(self):
        stream = ListStream(self.statuses)
        self.streams.append(stream)
        return stream


def run_now(fn):
    fn()


# ---------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------

def test_every_status_has_a_fixed_message():
    assert STATUS_MESSAGES == {
        ConnectivityStatus.AVAILABLE: "Network Available",
        ConnectivityStatus.LOSING: "Weak Network",
        ConnectivityStatus.LOST: "Network Lost",
        ConnectivityStatus.UNAVAILABLE: "Network Unavailable",
    }


# ---------------------------------------------------------------------
# Pumping
# ---------------------------------------------------------------------

def test_available_losing_lost_gives_three_notifications_in_order():
    notices = []
    observer = ListObserver(ConnectivityStatus.AVAILABLE, ConnectivityStatus.LOSING, ConnectivityStatus.LOST)
    relay = NotificationRelay(observer, notices.append, dispatch=run_now)

    relay.pump()

    assert notices == ["Network Available", "Weak Network", "Network Lost"]
    assert observer.streams[0].closed


def test_repeated_status_is_not_suppressed():
    notices = []
    observer = ListObserver(ConnectivityStatus.LOST, ConnectivityStatus.LOST, ConnectivityStatus.UNAVAILABLE)
    relay = NotificationRelay(observer, notices.append, dispatch=run_now)

    relay.pump()

    assert notices == ["Network Lost", "Network Lost", "Network Unavailable"]


def test_notifications_go_through_dispatch():
    notices = []
    queued = []
    relay = NotificationRelay(ListObserver(ConnectivityStatus.AVAILABLE), notices.append,
                              dispatch=queued.append)

    relay.pump()
    assert notices == []

    for fn in queued:
        fn()
    assert notices == ["Network Available"]


def test_start_pumps_in_background_thread():
    notices = []
    observer = ListObserver(ConnectivityStatus.UNAVAILABLE, ConnectivityStatus.AVAILABLE)
    relay = NotificationRelay(observer, notices.append, dispatch=run_now)

    relay.start()
    relay._th.join(timeout=2)

    assert notices == ["Network Unavailable", "Network Available"]
    assert len(observer.streams) == 1


# ---------------------------------------------------------------------
# Lifetime
# ---------------------------------------------------------------------

class SteadyProbe:
    def __init__(self):
        self.registered = threading.Event()
        self.unregistered = threading.Event()

    def register(self):
        self.registered.set()

    def unregister(self):
        self.unregistered.set()

    def snapshot(self):
        return NetworkSnapshot(True, True)


def test_close_unblocks_pump_and_unsubscribes():
    probe = SteadyProbe()
    first = threading.Event()
    notices = []

    def notify(message):
        notices.append(message)
        first.set()

    relay = NotificationRelay(ConnectivityObserver(probe=probe, interval=30), notify, dispatch=run_now)

    with relay:
        assert first.wait(timeout=2)
        pump = relay._th

    pump.join(timeout=2)
    assert not pump.is_alive()
    assert probe.unregistered.is_set()
    assert notices == ["Network Available"]
