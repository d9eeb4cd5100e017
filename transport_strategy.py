# transport_strategy.py
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit


class TransportStrategy(Enum):
    PROGRESSIVE = "progressive"
    HLS = "hls"
    TS = "ts"
    DASH = "dash"

    @property
    def detect_access_units(self) -> bool:
        return self is TransportStrategy.TS


def last_path_segment(url: str) -> Optional[str]:
    """Last non-empty path segment, query and fragment excluded."""
    if not url:
        return None
    try:
        path = urlsplit(url).path
    except ValueError:
        return None
    segments = [s for s in path.split("/") if s]
    return segments[-1] if segments else None


def select_strategy(url: str) -> TransportStrategy:
    """
    Heuristic on the last path segment, first match wins:
      mp4 -> PROGRESSIVE, m3u8 -> HLS, ts -> TS, anything else -> DASH.
    Plain substring match, so "artsy.mpd" is picked up as TS.
    """
    segment = last_path_segment(url) or ""
    if "mp4" in segment:
        return TransportStrategy.PROGRESSIVE
    if "m3u8" in segment:
        return TransportStrategy.HLS
    if "ts" in segment:
        return TransportStrategy.TS
    return TransportStrategy.DASH
