import os
import sys

from kivymd.app import MDApp
from kivy.uix.screenmanager import ScreenManager
from kivy.core.window import Window
from kivy.utils import platform

from video_player_screen import VideoPlayerScreen
from diag_log import log, log_path


def launch_video_url():
    """videoUrl from the launching intent, then $VIDEO_URL, then argv."""
    if platform == "android":
        import media_android as ma
        url = ma.launch_video_url()
        if url:
            return url
    url = os.environ.get("VIDEO_URL")
    if url:
        return url
    args = [a for a in sys.argv[1:] if not a.startswith("-")]
    return args[0] if args else None


def enter_fullscreen():
    if platform == "android":
        import media_android as ma
        ma.enter_fullscreen()
    else:
        Window.fullscreen = "auto"


# ================= APP =================
class VideoPlayerApp(MDApp):
    def build(self):
        self.theme_cls.theme_style = "Dark"
        self.theme_cls.primary_palette = "Blue"
        self.sm = ScreenManager()
        self.player_screen = VideoPlayerScreen(name="player")
        self.sm.add_widget(self.player_screen)
        return self.sm

    def on_start(self):
        url = launch_video_url()
        log(f"[APP] start url={url} diag={log_path()}")
        enter_fullscreen()
        self.player_screen.create(url)
        self.player_screen.start()

    def on_pause(self):
        self.player_screen.stop()
        return True

    def on_resume(self):
        enter_fullscreen()
        self.player_screen.start()

    def on_stop(self):
        self.player_screen.destroy()


if __name__ == "__main__":
    VideoPlayerApp().run()
