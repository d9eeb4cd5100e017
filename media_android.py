# media_android.py
# -*- coding: utf-8 -*-

from jnius import autoclass, cast, PythonJavaClass, java_method
from android.runnable import run_on_ui_thread

from kivy.clock import Clock
from kivy.core.window import Window

from connectivity_observer import NetworkSnapshot
from diag_log import log, vlog
from transport_strategy import TransportStrategy

# ===================== Android / Java classes =====================

# Core
PythonActivity      = autoclass('org.kivy.android.PythonActivity')
Context             = autoclass('android.content.Context')

# Network
ConnectivityManager = autoclass('android.net.ConnectivityManager')
NetworkCapabilities = autoclass('android.net.NetworkCapabilities')

# Views / layout / surface
SurfaceViewClass        = autoclass('android.view.SurfaceView')
View                    = autoclass('android.view.View')
WindowLayoutParams      = autoclass('android.view.WindowManager$LayoutParams')
FrameLayoutLayoutParams = autoclass('android.widget.FrameLayout$LayoutParams')
Gravity                 = autoclass('android.view.Gravity')
Color                   = autoclass('android.graphics.Color')
R_id                    = autoclass('android.R$id')

# ExoPlayer (gradle: com.google.android.exoplayer:exoplayer)
ExoPlayerBuilder              = autoclass('com.google.android.exoplayer2.ExoPlayer$Builder')
MediaItem                     = autoclass('com.google.android.exoplayer2.MediaItem')
Player                        = autoclass('com.google.android.exoplayer2.Player')
ProgressiveMediaSourceFactory = autoclass('com.google.android.exoplayer2.source.ProgressiveMediaSource$Factory')
HlsMediaSourceFactory         = autoclass('com.google.android.exoplayer2.source.hls.HlsMediaSource$Factory')
DashMediaSourceFactory        = autoclass('com.google.android.exoplayer2.source.dash.DashMediaSource$Factory')
DefaultDashChunkSourceFactory = autoclass('com.google.android.exoplayer2.source.dash.DefaultDashChunkSource$Factory')
DefaultHttpDataSourceFactory  = autoclass('com.google.android.exoplayer2.upstream.DefaultHttpDataSource$Factory')
DefaultDataSourceFactory      = autoclass('com.google.android.exoplayer2.upstream.DefaultDataSource$Factory')
DefaultExtractorsFactory      = autoclass('com.google.android.exoplayer2.extractor.DefaultExtractorsFactory')
DefaultTsPayloadReaderFactory = autoclass('com.google.android.exoplayer2.extractor.ts.DefaultTsPayloadReaderFactory')

USER_AGENT = "channel-video-player"
POSITION_POLL_S = 0.5
INTENT_URL_EXTRA = "videoUrl"

# ===================== Context / intent =====================

def app_context():
    return cast('android.content.Context', PythonActivity.mActivity)


def launch_video_url():
    try:
        intent = PythonActivity.mActivity.getIntent()
        if intent is None:
            return None
        url = intent.getStringExtra(INTENT_URL_EXTRA)
        return str(url) if url else None
    except Exception as e:
        log(f"[INTENT] read err: {e}")
        return None


@run_on_ui_thread
def enter_fullscreen():
    try:
        window = PythonActivity.mActivity.getWindow()
        window.setFlags(WindowLayoutParams.FLAG_FULLSCREEN, WindowLayoutParams.FLAG_FULLSCREEN)
        window.getDecorView().setSystemUiVisibility(
            View.SYSTEM_UI_FLAG_HIDE_NAVIGATION | View.SYSTEM_UI_FLAG_FULLSCREEN
        )
        vlog("[UI] fullscreen")
    except Exception as e:
        log(f"[UI] fullscreen err: {e}")

# ===================== Network probe =====================

class AndroidNetworkProbe:

    def __init__(self, context):
        self.context = context
        self._cm = None

    def register(self):
        self._cm = cast('android.net.ConnectivityManager',
                        self.context.getSystemService(Context.CONNECTIVITY_SERVICE))
        log("[NET] ConnectivityManager attached")

    def unregister(self):
        self._cm = None
        log("[NET] ConnectivityManager detached")

    def snapshot(self) -> NetworkSnapshot:
        cm = self._cm
        if cm is None:
            return NetworkSnapshot(False, False)
        try:
            net = cm.getActiveNetwork()
            if net is None:
                return NetworkSnapshot(False, False)
            caps = cm.getNetworkCapabilities(net)
            if caps is None:
                return NetworkSnapshot(False, False)
            active = bool(caps.hasCapability(NetworkCapabilities.NET_CAPABILITY_INTERNET))
            validated = active and bool(caps.hasCapability(NetworkCapabilities.NET_CAPABILITY_VALIDATED))
            return NetworkSnapshot(active, validated)
        except Exception as e:
            log(f"[NET] snapshot err: {e}")
            return NetworkSnapshot(False, False)

# ===================== Video overlay (SurfaceView) =====================

class AndroidVideoSurface:
    """SurfaceView over the Kivy window, kept on top of a placeholder widget."""

    def __init__(self, context):
        self.context = context
        self.surface_view = None
        self.pending_bounds = None

    @run_on_ui_thread
    def create(self):
        if self.surface_view is not None:
            return
        act = PythonActivity.mActivity
        try:
            root = cast("android.view.ViewGroup", act.findViewById(R_id.content))
        except Exception as e:
            log(f"[VIDEO] content root err: {e}")
            root = cast("android.view.ViewGroup", act.getWindow().getDecorView())

        sv = SurfaceViewClass(self.context)
        params = FrameLayoutLayoutParams(FrameLayoutLayoutParams.MATCH_PARENT,
                                         FrameLayoutLayoutParams.MATCH_PARENT)
        params.gravity = Gravity.TOP | Gravity.CENTER_HORIZONTAL
        sv.setLayoutParams(params)
        try:
            sv.setBackgroundColor(Color.BLACK)
            sv.setZOrderMediaOverlay(True)
        except Exception:
            pass

        try:
            root.addView(sv)
            root.bringChildToFront(sv)
            root.requestLayout()
        except Exception as e:
            log(f"[VIDEO] addView err: {e}")
            return

        sv.setVisibility(View.GONE)
        self.surface_view = sv
        log("[VIDEO] SurfaceView created")

        if self.pending_bounds:
            pending, self.pending_bounds = self.pending_bounds, None
            self.set_bounds(*pending)

    @run_on_ui_thread
    def set_visible(self, visible: bool):
        if self.surface_view is not None:
            self.surface_view.setVisibility(View.VISIBLE if visible else View.GONE)

    @run_on_ui_thread
    def set_bounds(self, left: int, top: int, width: int, height: int):
        if self.surface_view is None:
            self.pending_bounds = (left, top, width, height)
            return
        if width <= 0 or height <= 0:
            vlog(f"[VIDEO] set_bounds skip {width}x{height}")
            return
        try:
            sv = self.surface_view
            params = FrameLayoutLayoutParams(int(width), int(height))
            params.leftMargin = int(left)
            params.topMargin = int(top)
            sv.setLayoutParams(params)
            parent = sv.getParent()
            if parent is not None:
                parent.requestLayout()
            vlog(f"[VIDEO] bounds left={left} top={top} w={width} h={height}")
        except Exception as e:
            log(f"[VIDEO] set_bounds err: {e}")

    def align_to(self, widget):
        """Map a Kivy widget's window rect to display pixels and move the surface there."""
        win_w, win_h = Window.size
        if win_w <= 0 or win_h <= 0:
            return
        wx, wy = widget.to_window(widget.x, widget.y, relative=False)
        try:
            metrics = PythonActivity.mActivity.getResources().getDisplayMetrics()
            screen_w, screen_h = int(metrics.widthPixels), int(metrics.heightPixels)
        except Exception:
            screen_w, screen_h = int(win_w), int(win_h)

        left = int(wx / float(win_w) * screen_w)
        bottom = int(wy / float(win_h) * screen_h)
        width = int(widget.width / float(win_w) * screen_w)
        height = int(widget.height / float(win_h) * screen_h)
        self.set_bounds(left, screen_h - bottom - height, width, height)

# ===================== ExoPlayer listener =====================

class _PlayerListener(PythonJavaClass):
    __javainterfaces__ = ['com/google/android/exoplayer2/Player$Listener']
    __javacontext__ = 'app'

    def __init__(self, session):
        super().__init__()
        self.session = session

    @java_method('(I)V')
    def onPlaybackStateChanged(self, state):
        Clock.schedule_once(lambda dt: self.session.dispatch_state(state), 0)

    @java_method('(Lcom/google/android/exoplayer2/PlaybackException;)V')
    def onPlayerError(self, error):
        try:
            detail = f"{error.getErrorCodeName()}: {error.getMessage()}"
        except Exception:
            detail = str(error)
        Clock.schedule_once(lambda dt: self.session.dispatch_error(detail), 0)

    @java_method('(Z)V')
    def onIsPlayingChanged(self, playing):
        pass

    @java_method('(Z)V')
    def onIsLoadingChanged(self, loading):
        pass

    @java_method('(ZI)V')
    def onPlayWhenReadyChanged(self, play_when_ready, reason):
        pass

    @java_method('(Lcom/google/android/exoplayer2/Player;Lcom/google/android/exoplayer2/Player$Events;)V')
    def onEvents(self, player, events):
        pass

    # ---- no-op callbacks ExoPlayer fires during a normal play ----
    @java_method('(Lcom/google/android/exoplayer2/Timeline;I)V')
    def onTimelineChanged(self, timeline, reason):
        pass

    @java_method('(Lcom/google/android/exoplayer2/MediaItem;I)V')
    def onMediaItemTransition(self, item, reason):
        pass

    @java_method('(Lcom/google/android/exoplayer2/Tracks;)V')
    def onTracksChanged(self, tracks):
        pass

    @java_method('(Lcom/google/android/exoplayer2/MediaMetadata;)V')
    def onMediaMetadataChanged(self, metadata):
        pass

    @java_method('(Lcom/google/android/exoplayer2/MediaMetadata;)V')
    def onPlaylistMetadataChanged(self, metadata):
        pass

    @java_method('(Z)V')
    def onLoadingChanged(self, loading):
        pass

    @java_method('(Lcom/google/android/exoplayer2/Player$Commands;)V')
    def onAvailableCommandsChanged(self, commands):
        pass

    @java_method('(ZI)V')
    def onPlayerStateChanged(self, play_when_ready, state):
        pass

    @java_method('(I)V')
    def onPlaybackSuppressionReasonChanged(self, reason):
        pass

    @java_method('(Lcom/google/android/exoplayer2/PlaybackException;)V')
    def onPlayerErrorChanged(self, error):
        pass

    @java_method('(Lcom/google/android/exoplayer2/Player$PositionInfo;'
                 'Lcom/google/android/exoplayer2/Player$PositionInfo;I)V')
    def onPositionDiscontinuity(self, old_position, new_position, reason):
        pass

    @java_method('(I)V', name='onPositionDiscontinuity')
    def onPositionDiscontinuityLegacy(self, reason):
        pass

    @java_method('(Lcom/google/android/exoplayer2/PlaybackParameters;)V')
    def onPlaybackParametersChanged(self, params):
        pass

    @java_method('(Lcom/google/android/exoplayer2/video/VideoSize;)V')
    def onVideoSizeChanged(self, size):
        pass

    @java_method('(II)V')
    def onSurfaceSizeChanged(self, width, height):
        pass

    @java_method('()V')
    def onRenderedFirstFrame(self):
        pass

    @java_method('(Ljava/util/List;)V')
    def onCues(self, cues):
        pass

    @java_method('(Lcom/google/android/exoplayer2/text/CueGroup;)V', name='onCues')
    def onCueGroup(self, cue_group):
        pass

    @java_method('(Lcom/google/android/exoplayer2/metadata/Metadata;)V')
    def onMetadata(self, metadata):
        pass

    @java_method('(I)V')
    def onAudioSessionIdChanged(self, session_id):
        pass

    @java_method('(Lcom/google/android/exoplayer2/audio/AudioAttributes;)V')
    def onAudioAttributesChanged(self, attributes):
        pass

    @java_method('(F)V')
    def onVolumeChanged(self, volume):
        pass

    @java_method('(Lcom/google/android/exoplayer2/DeviceInfo;)V')
    def onDeviceInfoChanged(self, info):
        pass

    @java_method('(Lcom/google/android/exoplayer2/trackselection/TrackSelectionParameters;)V')
    def onTrackSelectionParametersChanged(self, params):
        pass

# ===================== ExoPlayer engine =====================

class ExoSession:

    def __init__(self, strategy, url, listener):
        self.strategy = strategy
        self.url = url
        self.listener = listener
        self.player = None
        self.surface = None
        self.position_ms = 0
        self.released = False
        self._poll_ev = None
        self._java_listener = None

    def dispatch_state(self, state):
        if self.released:
            return
        if state == Player.STATE_BUFFERING:
            self.listener.on_buffering()
        elif state == Player.STATE_READY:
            self.listener.on_ready()
        elif state == Player.STATE_ENDED:
            self.listener.on_ended()

    def dispatch_error(self, detail):
        if not self.released:
            self.listener.on_error(detail)


def build_media_source(context, strategy, url):
    item = MediaItem.fromUri(url)
    if strategy is TransportStrategy.PROGRESSIVE:
        upstream = DefaultDataSourceFactory(context, DefaultHttpDataSourceFactory().setUserAgent(USER_AGENT))
        return ProgressiveMediaSourceFactory(upstream).createMediaSource(item)
    if strategy is TransportStrategy.HLS:
        return HlsMediaSourceFactory(DefaultHttpDataSourceFactory()).createMediaSource(item)
    if strategy is TransportStrategy.TS:
        extractors = DefaultExtractorsFactory()
        if strategy.detect_access_units:
            extractors.setTsExtractorFlags(DefaultTsPayloadReaderFactory.FLAG_DETECT_ACCESS_UNITS)
        upstream = DefaultDataSourceFactory(context, DefaultHttpDataSourceFactory().setUserAgent(USER_AGENT))
        return ProgressiveMediaSourceFactory(upstream, extractors).createMediaSource(item)
    chunks = DefaultDashChunkSourceFactory(DefaultHttpDataSourceFactory())
    return DashMediaSourceFactory(chunks, DefaultHttpDataSourceFactory()).createMediaSource(item)


class ExoPlayerEngine:
    """
    ExoPlayer driven from Python. Every call on the Java player goes through
    run_on_ui_thread, in order; callbacks come back to Kivy via Clock.
    """

    def __init__(self, context):
        self.context = context

    def create_session(self, strategy, url, listener):
        s = ExoSession(strategy, url, listener)
        self._build(s)
        s._poll_ev = Clock.schedule_interval(lambda dt: self._poll_position(s), POSITION_POLL_S)
        return s

    @run_on_ui_thread
    def _build(self, s):
        try:
            player = ExoPlayerBuilder(self.context).build()
            s._java_listener = _PlayerListener(s)
            player.addListener(s._java_listener)
            player.setMediaSource(build_media_source(self.context, s.strategy, s.url))
            s.player = player
            log(f"[EXO] player built ({s.strategy.name}) {s.url}")
        except Exception as e:
            log(f"[EXO] build err: {e}")
            Clock.schedule_once(lambda dt: s.dispatch_error(f"build failed: {e}"), 0)

    @run_on_ui_thread
    def bind(self, s, surface):
        s.surface = surface
        if s.player is None:
            return
        try:
            surface.create()
            surface.set_visible(True)
            s.player.setVideoSurfaceView(surface.surface_view)
        except Exception as e:
            log(f"[EXO] bind err: {e}")

    @run_on_ui_thread
    def seek(self, s, offset_ms):
        s.position_ms = max(0, int(offset_ms or 0))
        if s.player is not None and s.position_ms:
            s.player.seekTo(s.position_ms)
            vlog(f"[EXO] seekTo {s.position_ms}ms")

    @run_on_ui_thread
    def prepare(self, s, autoplay=True):
        if s.player is None:
            return
        try:
            s.player.setPlayWhenReady(bool(autoplay))
            s.player.prepare()
            log("[EXO] prepare()")
        except Exception as e:
            log(f"[EXO] prepare err: {e}")
            Clock.schedule_once(lambda dt: s.dispatch_error(str(e)), 0)

    def current_position(self, s):
        return s.position_ms

    def release(self, s):
        s.released = True
        if s._poll_ev is not None:
            s._poll_ev.cancel()
            s._poll_ev = None
        self._release_player(s)

    @run_on_ui_thread
    def _poll_position(self, s):
        if s.released or s.player is None:
            return
        try:
            s.position_ms = int(s.player.getCurrentPosition())
        except Exception as e:
            vlog(f"[EXO] position err: {e}")

    @run_on_ui_thread
    def _release_player(self, s):
        player, s.player = s.player, None
        if player is None:
            return
        try:
            player.removeListener(s._java_listener)
            player.clearVideoSurface()
            player.release()
            log("[EXO] player released")
        except Exception as e:
            log(f"[EXO] release err: {e}")
        if s.surface is not None:
            s.surface.set_visible(False)
