# notification_relay.py
import threading

from connectivity_observer import ConnectivityStatus
from diag_log import log, vlog

STATUS_MESSAGES = {
    ConnectivityStatus.AVAILABLE:   "Network Available",
    ConnectivityStatus.LOSING:      "Weak Network",
    ConnectivityStatus.LOST:        "Network Lost",
    ConnectivityStatus.UNAVAILABLE: "Network Unavailable",
}


def clock_dispatch(fn):
    from kivy.clock import Clock
    Clock.schedule_once(lambda dt: fn(), 0)


class NotificationRelay:
    """Turns every connectivity status into one toast, for as long as it is open."""

    def __init__(self, observer, notify, dispatch=clock_dispatch):
        self.observer = observer
        self.notify = notify
        self.dispatch = dispatch
        self._stream = None
        self._th = None

    def start(self):
        if self._stream is not None:
            return
        self._stream = self.observer.observe()
        self._th = threading.Thread(target=self.pump, daemon=True)
        self._th.start()
        log("[RELAY] started")

    def pump(self):
        if self._stream is None:
            self._stream = self.observer.observe()
        with self._stream as stream:
            for status in stream:
                message = STATUS_MESSAGES[status]
                vlog(f"[RELAY] {status.name} -> {message!r}")
                self.dispatch(lambda m=message: self.notify(m))

    def close(self):
        if self._stream is not None:
            self._stream.close()
        self._th = None
        log("[RELAY] closed")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.close()
        return False
