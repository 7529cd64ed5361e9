"""Now-playing resolver for internet radio streams (ICY / SHOUTcast)."""

__version__ = "1.6.0"

from .models import NowPlayingResult, ParsedTitle
from .resolver import resolve_now_playing

__all__ = ["NowPlayingResult", "ParsedTitle", "resolve_now_playing", "__version__"]
