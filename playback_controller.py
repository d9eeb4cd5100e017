# playback_controller.py
from enum import Enum

from diag_log import log, vlog
from transport_strategy import TransportStrategy, last_path_segment, select_strategy

ERROR_MESSAGE = "Please check your internet connection!"


class PlaybackState(Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    READY = "ready"
    BUFFERING = "buffering"
    ENDED = "ended"
    ERROR = "error"


class PlaybackError(Exception):
    def __init__(self, detail):
        super().__init__(detail)
        self.detail = detail


# state -> states it may move to on engine callbacks
_ENGINE_TRANSITIONS = {
    PlaybackState.PREPARING: {PlaybackState.READY, PlaybackState.BUFFERING,
                              PlaybackState.ENDED, PlaybackState.ERROR},
    PlaybackState.READY:     {PlaybackState.BUFFERING, PlaybackState.ENDED, PlaybackState.ERROR},
    PlaybackState.BUFFERING: {PlaybackState.READY, PlaybackState.ENDED, PlaybackState.ERROR},
    PlaybackState.ENDED:     {PlaybackState.ERROR},
    PlaybackState.ERROR:     set(),
    PlaybackState.IDLE:      set(),
}


class StreamSession:
    """One stream per screen. The strategy is fixed here; only the offset moves."""

    __slots__ = ("url", "_strategy", "title", "offset_ms")

    def __init__(self, url: str):
        self.url = url
        self._strategy = select_strategy(url)
        self.title = last_path_segment(url) or ""
        self.offset_ms = 0

    @property
    def strategy(self) -> TransportStrategy:
        return self._strategy

    def __repr__(self):
        return f"StreamSession({self.url!r}, {self._strategy.name}, offset={self.offset_ms}ms)"


class _EngineListener:
    """Engine callbacks tagged with the handle generation they were created for."""

    def __init__(self, controller, gen: int):
        self._controller = controller
        self._gen = gen

    def on_buffering(self):
        self._controller._on_engine_event(self._gen, PlaybackState.BUFFERING)

    def on_ready(self):
        self._controller._on_engine_event(self._gen, PlaybackState.READY)

    def on_ended(self):
        self._controller._on_engine_event(self._gen, PlaybackState.ENDED)

    def on_error(self, detail):
        self._controller._on_engine_event(self._gen, PlaybackState.ERROR, PlaybackError(detail))


class PlaybackController:

    def __init__(self, engine, surface, view, log=log):
        self.engine = engine
        self.surface = surface
        self.view = view
        self._log = log
        self.state = PlaybackState.IDLE
        self.session = None
        self.last_error = None
        self._handle = None
        self._gen = 0

    # ==================== lifecycle ====================

    def start(self, url: str | None = None):
        if self.state is not PlaybackState.IDLE:
            vlog(f"[PLAYER] start ignored in {self.state.name}")
            return
        if url is not None and (self.session is None or self.session.url != url):
            self.session = StreamSession(url)
        if self.session is None:
            raise ValueError("no stream url to play")

        self._gen += 1
        self.last_error = None
        self._set_state(PlaybackState.PREPARING)
        session = self.session
        self.view.set_title(session.title)
        self.view.show_retry(False)

        self._handle = self.engine.create_session(session.strategy, session.url,
                                                  _EngineListener(self, self._gen))
        self.engine.bind(self._handle, self.surface)
        self.engine.seek(self._handle, session.offset_ms)
        self.engine.prepare(self._handle, autoplay=True)
        self._log(f"[PLAYER] preparing {session!r}")

    def stop(self):
        handle, self._handle = self._handle, None
        try:
            if handle is not None:
                try:
                    self.session.offset_ms = int(self.engine.current_position(handle) or 0)
                finally:
                    self.engine.release(handle)
                self._log(f"[PLAYER] released at {self.session.offset_ms}ms")
        finally:
            self._gen += 1
            self._set_state(PlaybackState.IDLE)
            self.view.show_progress(False)

    def retry(self):
        """Manual resume: from ERROR at the last position, from ENDED at the start."""
        if self.state not in (PlaybackState.ERROR, PlaybackState.ENDED):
            vlog(f"[PLAYER] retry ignored in {self.state.name}")
            return
        replay = self.state is PlaybackState.ENDED
        self.stop()
        if replay:
            self.session.offset_ms = 0
        self.start()

    # ==================== engine events ====================

    def _on_engine_event(self, gen: int, target: PlaybackState, error: PlaybackError | None = None):
        if gen != self._gen or self._handle is None:
            vlog(f"[PLAYER] stale {target.name} dropped")
            return
        if target is self.state:
            return
        if target not in _ENGINE_TRANSITIONS[self.state]:
            vlog(f"[PLAYER] {self.state.name} -> {target.name} not allowed")
            return

        self._set_state(target)
        if target is PlaybackState.BUFFERING:
            self.view.show_progress(True)
        elif target in (PlaybackState.READY, PlaybackState.ENDED):
            self.view.show_progress(False)
            self.view.show_retry(target is PlaybackState.ENDED)
        elif target is PlaybackState.ERROR:
            self.last_error = error
            self._log(f"[PLAYER] error: {error.detail}")
            self.view.show_progress(False)
            self.view.show_retry(True)
            self.view.notify(ERROR_MESSAGE)

    def _set_state(self, state: PlaybackState):
        if state is not self.state:
            vlog(f"[PLAYER] {self.state.name} -> {state.name}")
            self.state = state
