import asyncio
from dataclasses import dataclass

from .connection import (
    READ_CHUNK,
    ResponseError,
    StreamResponse,
    describe_error,
    join_url,
    open_stream,
    split_url,
)
from .log import debug_log
from .models import NowPlayingResult
from .status_page import fetch_status_page
from .titles import decode_metadata, parse_metadata_block, title_to_result

DEFAULT_TIMEOUT = 5.0
MAX_REDIRECTS = 5

TIMED_OUT = "Metadata fetch timed out."
TOO_MANY_REDIRECTS = "Too many redirects."
STREAM_ENDED = "Stream ended before metadata could be read."
NO_STREAM_TITLE = "No StreamTitle found in metadata."


@dataclass(frozen=True)
class ProbeOutcome:
    result: NowPlayingResult
    # the server answered without icy-metaint and the status page was tried
    fell_back: bool = False
    # timed out or failed at the transport level
    unreachable: bool = False


def parse_metaint(value: str | None) -> int:
    try:
        metaint = int(value.strip())
    except (AttributeError, ValueError):
        return 0
    return max(metaint, 0)


async def read_stream_title(response: StreamResponse, metaint: int) -> NowPlayingResult:
    """
    Walk the interleaved body up to the first metadata block:
    [metaint bytes audio][1 length byte][length * 16 bytes metadata]...
    """
    to_skip = metaint
    chunk = response.body
    block = bytearray()

    while True:
        # audio is counted and dropped, only the metadata block is kept
        if to_skip:
            skipped = min(to_skip, len(chunk))
            to_skip -= skipped
            chunk = chunk[skipped:]
        block += chunk

        if block:
            block_end = 1 + block[0] * 16
            if len(block) >= block_end:
                break

        chunk = await response.read_chunk(min(to_skip, READ_CHUNK) or READ_CHUNK)
        if not chunk:
            return NowPlayingResult.failure(STREAM_ENDED)

    text = decode_metadata(bytes(block[1:block_end]))
    debug_log(f"{response.url}: metadata block {text!r}")

    stream_title = parse_metadata_block(text).get("StreamTitle")
    if not stream_title:
        return NowPlayingResult.failure(NO_STREAM_TITLE)
    return title_to_result(stream_title)


async def probe(url: str, timeout: float = DEFAULT_TIMEOUT) -> ProbeOutcome:
    """Probe one URL for ICY metadata; redirects and fallback share one deadline."""
    try:
        split_url(url)
    except ValueError as e:
        return ProbeOutcome(NowPlayingResult.failure(f"URL parsing error: {e}"))

    try:
        return await asyncio.wait_for(_follow(url), timeout)
    except asyncio.TimeoutError:
        debug_log(f"{url}: no metadata within {timeout}s")
        return ProbeOutcome(NowPlayingResult.failure(TIMED_OUT), unreachable=True)


async def probe_stream(url: str, timeout: float = DEFAULT_TIMEOUT) -> NowPlayingResult:
    return (await probe(url, timeout)).result


async def _follow(url: str) -> ProbeOutcome:
    current = url

    for _ in range(MAX_REDIRECTS + 1):
        try:
            response = await open_stream(current)
        except ValueError as e:
            # e.g. a host name IDNA cannot encode
            return ProbeOutcome(NowPlayingResult.failure(f"URL parsing error: {e}"))
        except (OSError, ResponseError) as e:
            debug_log(f"{current}: {e!r}")
            return ProbeOutcome(NowPlayingResult.failure(describe_error(e, current)), unreachable=True)

        try:
            if response.is_redirect:
                try:
                    target = join_url(current, response.headers["location"])
                    split_url(target)
                except ValueError as e:
                    return ProbeOutcome(NowPlayingResult.failure(f"URL parsing error on redirect: {e}"))

                debug_log(f"{current} -> {target} (HTTP {response.status})")
                current = target
                continue

            metaint = parse_metaint(response.headers.get("icy-metaint"))
            if metaint:
                return ProbeOutcome(await read_stream_title(response, metaint))
        except (OSError, ResponseError) as e:
            debug_log(f"{current}: {e!r}")
            return ProbeOutcome(NowPlayingResult.failure(describe_error(e, current)), unreachable=True)
        finally:
            await response.close()

        debug_log(f"{current}: no icy-metaint, trying SHOUTcast v1 status page")
        return ProbeOutcome(await fetch_status_page(current), fell_back=True)

    return ProbeOutcome(NowPlayingResult.failure(TOO_MANY_REDIRECTS))
