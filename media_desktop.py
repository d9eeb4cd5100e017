# media_desktop.py
# -*- coding: utf-8 -*-
"""Kivy Video widget engine for running the player screen off-device."""

from kivy.clock import Clock

from diag_log import log, vlog

LOAD_TIMEOUT_S = 20.0


def make_video():
    from kivy.uix.video import Video
    video = Video(size_hint=(1, 1))
    video.options = {'ffmpeg': 'ffpyplayer'}
    video.allow_stretch = True
    video.keep_ratio = True
    return video


class _VideoSession:

    def __init__(self, strategy, url, listener):
        self.strategy = strategy
        self.url = url
        self.listener = listener
        self.video = None
        self.pending_seek_ms = 0
        self.loaded_once = False
        self.failed = False
        self.released = False
        self.timeout_ev = None


class KivyVideoEngine:
    """
    The Video widget never reports a load failure, it just stays unloaded
    (or hits eos straight away). Both count as errors here:
      • no `loaded` within LOAD_TIMEOUT_S
      • `eos` before the first `loaded`
    """

    def __init__(self, context=None, video_factory=make_video, load_timeout=LOAD_TIMEOUT_S):
        self.context = context
        self.video_factory = video_factory
        self.load_timeout = load_timeout

    def create_session(self, strategy, url, listener):
        s = _VideoSession(strategy, url, listener)
        video = self.video_factory()
        video.bind(loaded=lambda inst, value: self._on_loaded(s, value),
                   eos=lambda inst, value: self._on_eos(s, value))
        s.video = video
        vlog(f"[VIDEO] session {strategy.name} {url}")
        return s

    def bind(self, s, surface):
        if s.video.parent is not None:
            s.video.parent.remove_widget(s.video)
        surface.clear_widgets()
        surface.add_widget(s.video)

    def seek(self, s, offset_ms):
        s.pending_seek_ms = max(0, int(offset_ms or 0))

    def prepare(self, s, autoplay=True):
        s.listener.on_buffering()
        s.timeout_ev = Clock.schedule_once(lambda dt: self._on_load_timeout(s), self.load_timeout)
        try:
            s.video.source = s.url
            s.video.state = "play" if autoplay else "pause"
        except Exception as e:
            log(f"[VIDEO] source err: {e}")
            Clock.schedule_once(lambda dt: self._report_error(s, str(e)), 0)

    def current_position(self, s):
        if s.video is None:
            return 0
        return int((s.video.position or 0) * 1000)

    def release(self, s):
        s.released = True
        self._cancel_timeout(s)
        video, s.video = s.video, None
        if video is None:
            return
        try:
            video.state = "stop"
            video.unload()
        except Exception as e:
            log(f"[VIDEO] unload err: {e}")
        if video.parent is not None:
            video.parent.remove_widget(video)
        log("[VIDEO] released")

    # ---- internals ----
    def _cancel_timeout(self, s):
        if s.timeout_ev is not None:
            s.timeout_ev.cancel()
            s.timeout_ev = None

    def _on_loaded(self, s, loaded):
        if s.released or s.failed or not loaded:
            return
        s.loaded_once = True
        self._cancel_timeout(s)
        if s.pending_seek_ms and s.video.duration > 0:
            try:
                s.video.seek(s.pending_seek_ms / 1000.0 / s.video.duration)
                vlog(f"[VIDEO] resumed at {s.pending_seek_ms}ms")
            except Exception as e:
                log(f"[VIDEO] seek err: {e}")
        s.pending_seek_ms = 0
        s.listener.on_ready()

    def _on_eos(self, s, eos):
        if s.released or s.failed or not eos:
            return
        if not s.loaded_once:
            self._report_error(s, f"stream ended before it loaded: {s.url}")
            return
        s.listener.on_ended()

    def _on_load_timeout(self, s):
        s.timeout_ev = None
        if s.released or s.loaded_once or s.failed:
            return
        self._report_error(s, f"no media after {self.load_timeout:g}s: {s.url}")

    def _report_error(self, s, detail):
        if s.released or s.failed:
            return
        s.failed = True
        self._cancel_timeout(s)
        log(f"[VIDEO] error: {detail}")
        s.listener.on_error(detail)
