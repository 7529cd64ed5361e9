import asyncio
import html
import re

from .connection import ResponseError, join_url, open_stream, split_url
from .icy_reader import DEFAULT_TIMEOUT, MAX_REDIRECTS, parse_metaint
from .log import debug_log

PAGE_LIMIT = 512 * 1024

_URL_CHARS = r"[^\s\"'<>]"

# Checked in order, first hit wins.
_CANDIDATE_PATTERNS = (
    # mount point conventions: /;  /icecast  /shout-cast  /live  /stream
    re.compile(
        rf"https?://[^\s\"'<>/]+/{_URL_CHARS}*?(?:;|ice-?cast|shout-?cast|live|stream){_URL_CHARS}*",
        re.IGNORECASE,
    ),
    # <audio src="..."> or <audio><source src="...">
    re.compile(r"<audio\b[^>]*?\bsrc\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE),
    re.compile(
        r"<audio\b[^>]*>\s*<source\b[^>]*?\bsrc\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE
    ),
    # Icecast / SHOUTcast default ports (8000, 8080, 88xx ...)
    re.compile(rf"https?://[^\s\"'<>/:]+:\d{{4,5}}(?!\d)(?:/{_URL_CHARS}*)?", re.IGNORECASE),
    re.compile(rf"https?://{_URL_CHARS}+?\.mp3(?:\?{_URL_CHARS}*)?(?=[\s\"'<>]|$)", re.IGNORECASE),
    re.compile(rf"https?://{_URL_CHARS}+?\.aac(?:\?{_URL_CHARS}*)?(?=[\s\"'<>]|$)", re.IGNORECASE),
)


def _same_url(a: str, b: str) -> bool:
    return a.rstrip("/") == b.rstrip("/")


def find_stream_candidate(page: str, base_url: str) -> str | None:
    """Return the first stream-looking URL in a web page body, or None."""
    for pattern in _CANDIDATE_PATTERNS:
        for match in pattern.finditer(page):
            raw = match.group(1) if pattern.groups else match.group(0)
            candidate = join_url(base_url, html.unescape(raw).rstrip(".,)"))
            if _same_url(candidate, base_url):
                continue
            try:
                split_url(candidate)
            except ValueError:
                continue
            return candidate
    return None


async def discover_stream(url: str, timeout: float = DEFAULT_TIMEOUT) -> str | None:
    """
    Fetch a station web page and look for an embedded stream URL.
    Failures of any kind mean "no candidate".
    """
    try:
        return await asyncio.wait_for(_discover(url), timeout)
    except asyncio.TimeoutError:
        debug_log(f"{url}: page discovery timed out")
        return None


def _is_audio(headers: dict[str, str]) -> bool:
    if parse_metaint(headers.get("icy-metaint")):
        return True
    return headers.get("content-type", "").lower().startswith("audio/")


async def _discover(url: str) -> str | None:
    current = url

    for _ in range(MAX_REDIRECTS + 1):
        try:
            response = await open_stream(current)
        except (ValueError, OSError, ResponseError) as e:
            debug_log(f"{current}: page fetch failed: {e!r}")
            return None

        try:
            if response.is_redirect:
                try:
                    current = join_url(current, response.headers["location"])
                except ValueError as e:
                    debug_log(f"{current}: bad redirect: {e}")
                    return None
                continue

            if _is_audio(response.headers):
                debug_log(f"{current}: audio response, not a web page")
                return None
            if not response.is_success:
                debug_log(f"{current}: HTTP {response.status}")
                return None

            body = await response.read_body(PAGE_LIMIT)
        except (OSError, ResponseError) as e:
            debug_log(f"{current}: page read failed: {e!r}")
            return None
        finally:
            await response.close()

        candidate = find_stream_candidate(body.decode("utf-8", errors="replace"), current)
        if candidate and _same_url(candidate, url):
            return None
        debug_log(f"{current}: stream candidate {candidate!r}")
        return candidate

    debug_log(f"{url}: too many redirects while fetching page")
    return None
