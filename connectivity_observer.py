# connectivity_observer.py
import socket
import threading
from collections import namedtuple
from enum import Enum

import httpx

from diag_log import log, vlog

POLL_INTERVAL_S = 2.0

# quick DNS ping
RESOLVER_ADDR = ("1.1.1.1", 53)
CHECK_URL = "http://connectivitycheck.gstatic.com/generate_204"
CHECK_TIMEOUT_S = 2.0


class ConnectivityStatus(Enum):
    AVAILABLE = "available"
    LOSING = "losing"
    LOST = "lost"
    UNAVAILABLE = "unavailable"


NetworkSnapshot = namedtuple("NetworkSnapshot", ["active", "validated"])


def classify(snapshot: NetworkSnapshot, had_network: bool) -> ConnectivityStatus:
    if snapshot.active:
        if snapshot.validated:
            return ConnectivityStatus.AVAILABLE
        return ConnectivityStatus.LOSING
    if had_network:
        return ConnectivityStatus.LOST
    return ConnectivityStatus.UNAVAILABLE


# ===================== Desktop probe =====================

class HttpNetworkProbe:
    """
    Off-device stand-in for ConnectivityManager:
      • "active":    TCP connect to a public resolver succeeds
      • "validated": the connectivity-check URL answers 204
    """

    def __init__(self, resolver=RESOLVER_ADDR, check_url=CHECK_URL, timeout=CHECK_TIMEOUT_S,
                 transport=None):
        self.resolver = resolver
        self.check_url = check_url
        self.timeout = timeout
        self.transport = transport
        self._client = None

    def register(self):
        self._client = httpx.Client(timeout=self.timeout, follow_redirects=False,
                                    transport=self.transport)
        vlog("[NET] http probe registered")

    def unregister(self):
        if self._client is not None:
            self._client.close()
            self._client = None
        vlog("[NET] http probe unregistered")

    def _reachable(self) -> bool:
        try:
            s = socket.create_connection(self.resolver, timeout=self.timeout)
            s.close()
            return True
        except OSError:
            return False

    def _validated(self) -> bool:
        client = self._client
        if client is None or client.is_closed:
            return False
        try:
            return client.get(self.check_url).status_code == 204
        except (httpx.HTTPError, RuntimeError) as e:
            # RuntimeError: client closed by unregister() mid-request
            vlog(f"[NET] check failed: {e}")
            return False

    def snapshot(self) -> NetworkSnapshot:
        active = self._reachable()
        return NetworkSnapshot(active, active and self._validated())


# ===================== Status stream =====================

class StatusStream:
    """
    Lazy, infinite, one-shot iterator of ConnectivityStatus changes.

    The probe is registered on the first pull and unregistered by close().
    Once closed (or left through ``with``) the stream is exhausted for good.
    """

    def __init__(self, probe, interval: float = POLL_INTERVAL_S):
        self._probe = probe
        self._interval = interval
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self._registered = False
        self._had_network = False
        self._last = None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def __iter__(self):
        return self

    def __next__(self) -> ConnectivityStatus:
        if self._last is not None:
            self._closed.wait(self._interval)
        while not self._closed.is_set():
            if not self._ensure_registered():
                break
            snap = self._probe.snapshot()
            status = classify(snap, self._had_network)
            self._had_network = self._had_network or snap.active
            if status is not self._last and not self._closed.is_set():
                self._last = status
                return status
            self._closed.wait(self._interval)
        raise StopIteration

    def _ensure_registered(self) -> bool:
        with self._lock:
            if self._closed.is_set():
                return False
            if not self._registered:
                self._probe.register()
                self._registered = True
            return True

    def close(self):
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
            if self._registered:
                self._registered = False
                try:
                    self._probe.unregister()
                except Exception as e:
                    log(f"[NET] unregister err: {e}")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class ConnectivityObserver:

    def __init__(self, context=None, probe=None, interval: float = POLL_INTERVAL_S):
        self.context = context
        self.interval = interval
        self._probe = probe

    def _make_probe(self):
        if self._probe is not None:
            return self._probe
        if self.context is not None:
            from media_android import AndroidNetworkProbe
            return AndroidNetworkProbe(self.context)
        return HttpNetworkProbe()

    def observe(self) -> StatusStream:
        return StatusStream(self._make_probe(), self.interval)
