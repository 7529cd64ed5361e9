"""
SHOUTcast v1 status page fallback.

Old SHOUTcast servers do not interleave ICY metadata for every client but
publish the current song on a small HTML page next to the stream
(`<mount>/7.html`). Depending on the server build the page carries either a
"Current Song:" table cell, a StreamTitle:'...' assignment or the bare
comma separated 7.html body.
"""
import html
import re
from urllib.parse import urlunsplit

from .connection import ResponseError, describe_error, open_stream, split_url
from .log import debug_log
from .models import NowPlayingResult
from .titles import decode_metadata, title_to_result

STATUS_PAGE_LIMIT = 64 * 1024

NOT_SHOUTCAST = "Stream does not support Icy-MetaData and is not a SHOUTcast v1 stream."

_CURRENT_SONG = re.compile(r"Current Song:\s*(?:<[^>]*>\s*)*([^<]+)", re.IGNORECASE)
# the value ends at a quote followed by ";", a tag or the end of the line, like the ICY pairs
_STREAM_TITLE = re.compile(r"StreamTitle\s*[:=]\s*'(.*?)'(?=;|\s*(?:<|$))", re.IGNORECASE | re.MULTILINE)
# <body>listeners,status,peak,max,unique,bitrate,song</body>
_SEVEN_HTML = re.compile(
    r"<body[^>]*>\s*(?:\d+,){6}(.*?)\s*</body>", re.IGNORECASE | re.DOTALL
)


def status_page_url(url: str) -> str:
    parts = split_url(url)
    path = parts.path or "/"
    if not path.endswith("/"):
        path += "/"
    return urlunsplit((parts.scheme, parts.netloc, path + "7.html", "", ""))


def find_current_song(page: str) -> str | None:
    for pattern in (_CURRENT_SONG, _STREAM_TITLE, _SEVEN_HTML):
        match = pattern.search(page)
        if match:
            song = html.unescape(match.group(1)).strip()
            if song:
                return song
    return None


def _unavailable(reason: str) -> NowPlayingResult:
    return NowPlayingResult.failure(
        f"Stream does not support Icy-MetaData (status page unavailable: {reason})."
    )


async def fetch_status_page(url: str) -> NowPlayingResult:
    try:
        page_url = status_page_url(url)
        response = await open_stream(page_url)
    except ValueError as e:
        return _unavailable(f"URL parsing error: {e}")
    except (OSError, ResponseError) as e:
        return _unavailable(describe_error(e, url))

    try:
        if not response.is_success:
            debug_log(f"{page_url}: HTTP {response.status}")
            return NowPlayingResult.failure(NOT_SHOUTCAST)
        body = await response.read_body(STATUS_PAGE_LIMIT)
    except (OSError, ResponseError) as e:
        return _unavailable(describe_error(e, page_url))
    finally:
        await response.close()

    song = find_current_song(decode_metadata(body))
    if song is None:
        return NowPlayingResult.failure(NOT_SHOUTCAST)

    debug_log(f"{page_url}: current song {song!r}")
    return title_to_result(song)
