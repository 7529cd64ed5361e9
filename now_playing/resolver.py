from .connection import split_url
from .discovery import discover_stream
from .icy_reader import DEFAULT_TIMEOUT, probe
from .log import Color, debug_log, log
from .models import NowPlayingResult

PAGE_WITHOUT_STREAM = "Could not find a valid audio stream on the provided page."


async def resolve_now_playing(url: str, timeout: float = DEFAULT_TIMEOUT) -> NowPlayingResult:
    """
    Resolve what a station is playing right now.

    `url` may be a direct stream or the station's web page. The stream is
    probed first; if the server answered without a title the page is
    scraped for a stream URL which is then probed in turn. A timeout or a
    transport failure ends the lookup. Never raises: every failure comes
    back as NowPlayingResult.error.
    """
    try:
        split_url(url)
    except (AttributeError, ValueError) as e:
        return NowPlayingResult.failure(f"URL parsing error: {e}")

    try:
        return await _resolve(url, timeout)
    except Exception as e:
        log(f"Error resolving {url}: {e!r}", Color.RED)
        return NowPlayingResult.failure(f"An unknown error occurred while fetching stream data: {e}")


async def _resolve(url: str, timeout: float) -> NowPlayingResult:
    direct = await probe(url, timeout)
    if direct.result.ok or direct.unreachable:
        return direct.result

    debug_log(f"{url}: {direct.result.error} - looking for a stream on the page")
    candidate = await discover_stream(url, timeout)
    if candidate:
        debug_log(f"{url}: probing discovered stream {candidate}")
        return (await probe(candidate, timeout)).result

    if direct.fell_back:
        return NowPlayingResult.failure(PAGE_WITHOUT_STREAM)
    # not a web page: keep the probe's own error
    return direct.result

