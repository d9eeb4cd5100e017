# diag_log.py
import os
from datetime import datetime

LOG_NAME = "channel_player_diag.txt"

DEBUG_VERBOSE = os.environ.get("CHANNEL_PLAYER_VERBOSE", "1") != "0"

_log_path = None


def _resolve_log_path():
    override = os.environ.get("CHANNEL_PLAYER_LOG_DIR")
    if override:
        return os.path.join(override, LOG_NAME)
    try:
        from jnius import autoclass
        ctx = autoclass('org.kivy.android.PythonActivity').mActivity
        ext = ctx.getExternalFilesDir(None)
        base = ext.getAbsolutePath() if ext else ctx.getFilesDir().getAbsolutePath()
        return base + "/" + LOG_NAME
    except Exception:
        return os.path.join(os.getcwd(), LOG_NAME)


def log_path():
    global _log_path
    if _log_path is None:
        _log_path = _resolve_log_path()
    return _log_path


def log(msg: str):
    print(msg)
    try:
        ts = datetime.now().strftime("%H:%M:%S")
        with open(log_path(), "a", encoding="utf-8") as f:
            f.write(f"{ts} {msg}\n")
    except Exception:
        pass


def vlog(msg: str):
    if DEBUG_VERBOSE:
        log(msg)
