from kivymd.uix.screen import MDScreen
from kivymd.uix.boxlayout import MDBoxLayout
from kivymd.uix.label import MDLabel
from kivymd.uix.button import MDRaisedButton
from kivymd.uix.spinner import MDSpinner
from kivymd.toast import toast
from kivy.graphics import Color, Rectangle
from kivy.clock import Clock
from kivy.utils import platform

from connectivity_observer import ConnectivityObserver
from notification_relay import NotificationRelay
from playback_controller import PlaybackController
from diag_log import log

if platform == "android":
    import media_android as ma
else:
    ma = None

NO_URL_MESSAGE = "No video URL provided"


def create_backend():
    """(context, engine, surface) for the current platform."""
    if ma is not None:
        context = ma.app_context()
        return context, ma.ExoPlayerEngine(context), ma.AndroidVideoSurface(context)
    from media_desktop import KivyVideoEngine
    return None, KivyVideoEngine(), None


class VideoPlayerScreen(MDScreen):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        with self.canvas.before:
            Color(0, 0, 0, 1)
            self.bg_rect = Rectangle(size=self.size, pos=self.pos)
        self.bind(size=self.update_bg_rect, pos=self.update_bg_rect)

        self.title_label = MDLabel(
            text="",
            halign="left",
            theme_text_color="Custom",
            text_color=(1, 1, 1, 1),
            font_style="H6",
            shorten=True,
        )

        self.progress = MDSpinner(
            size_hint=(None, None),
            size=("32dp", "32dp"),
            active=False,
            opacity=0,
        )

        self.retry_button = MDRaisedButton(
            text="⟳ Retry",
            md_bg_color=(0.5, 0, 0, 1),
            text_color=(1, 1, 1, 1),
            opacity=0,
            disabled=True,
        )
        self.retry_button.bind(on_press=self.retry)

        header = MDBoxLayout(
            orientation="horizontal",
            spacing=10,
            padding=[20, 10],
            size_hint_y=None,
            height=60,
        )
        header.add_widget(self.title_label)
        header.add_widget(self.progress)
        header.add_widget(self.retry_button)

        self.video_area = MDBoxLayout(size_hint=(1, 1))

        full_layout = MDBoxLayout(orientation="vertical", size_hint=(1, 1))
        full_layout.add_widget(header)
        full_layout.add_widget(self.video_area)
        self.add_widget(full_layout)

        self.video_url = None
        self.relay = None
        self.controller = None
        self._surface = None

    def update_bg_rect(self, *args):
        self.bg_rect.size = self.size
        self.bg_rect.pos = self.pos

    # ==================== lifecycle ====================

    def create(self, video_url):
        self.video_url = video_url
        context, engine, surface = create_backend()

        self.relay = NotificationRelay(ConnectivityObserver(context), self.notify)
        self.relay.start()

        if surface is not None:
            surface.create()
            self.video_area.bind(pos=self._align_surface, size=self._align_surface)
            Clock.schedule_once(self._align_surface, 0.3)
            self._surface = surface
        self.controller = PlaybackController(engine, surface or self.video_area, self)

    def start(self):
        if self.controller is None:
            return
        if not self.video_url:
            self.notify(NO_URL_MESSAGE)
            log("[SCREEN] no url to play")
            return
        self.controller.start(self.video_url)

    def stop(self):
        if self.controller is not None:
            self.controller.stop()

    def destroy(self):
        self.stop()
        if self.relay is not None:
            self.relay.close()
            self.relay = None

    def retry(self, *a):
        if self.controller is not None:
            self.controller.retry()

    def _align_surface(self, *args):
        try:
            self._surface.align_to(self.video_area)
        except Exception as e:
            log(f"[VIDEO] align err: {e}")

    # ==================== view ====================

    def set_title(self, text):
        self.title_label.text = text or ""

    def show_progress(self, visible):
        self.progress.active = bool(visible)
        self.progress.opacity = 1 if visible else 0

    def show_retry(self, visible):
        self.retry_button.opacity = 1 if visible else 0
        self.retry_button.disabled = not visible

    def notify(self, message):
        toast(message)
