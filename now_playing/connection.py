import asyncio
import re
import socket
import ssl
from dataclasses import dataclass
from urllib.parse import SplitResult, quote, urljoin, urlsplit

from . import __version__

USER_AGENT = f"NowPlayingMonitor/{__version__}"

MAX_HEADER_BYTES = 16 * 1024
READ_CHUNK = 4096

# path characters that are already legal in a request target
_PATH_SAFE = "/:@!$&'()*+,;=?%~"
_ABSOLUTE = re.compile(r"https?://", re.IGNORECASE)


class ResponseError(Exception):
    """The server answered with something that is not an HTTP/ICY response."""


class EmptyResponse(ResponseError):
    """The server closed the connection before sending a status line."""


def split_url(url: str) -> SplitResult:
    """
    Split and validate a stream/page URL.
    Only http and https with a host are accepted; raises ValueError otherwise.
    """
    parts = urlsplit(url.strip())
    if parts.scheme not in ("http", "https"):
        raise ValueError(f"invalid URL {url!r}")
    if not parts.hostname:
        raise ValueError(f"missing host in {url!r}")
    # raises ValueError for a non-numeric or out-of-range port
    parts.port
    return parts


def join_url(base: str, location: str) -> str:
    """Resolve a Location / src value against the URL it came from."""
    location = location.strip()
    if _ABSOLUTE.match(location):
        # urljoin would drop the SHOUTcast "/;" mount
        return location
    return urljoin(base, location)


@dataclass
class StreamResponse:
    url: str
    status: int
    headers: dict[str, str]
    body: bytes
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status < 400 and bool(self.headers.get("location"))

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300

    async def read_chunk(self, size: int = READ_CHUNK) -> bytes:
        return await self.reader.read(size)

    async def read_body(self, limit: int) -> bytes:
        """Read until EOF, at most `limit` bytes (live streams never end)."""
        data = bytearray(self.body[:limit])
        while len(data) < limit:
            chunk = await self.reader.read(min(READ_CHUNK, limit - len(data)))
            if not chunk:
                break
            data += chunk
        return bytes(data)

    async def close(self) -> None:
        # abort, not close: ICY servers keep pushing audio and never hang up
        self.writer.transport.abort()
        try:
            await self.writer.wait_closed()
        except OSError:
            pass


# ---------------------------------------------------------
# HTTP/1.0 request with Icy-MetaData: 1
# ---------------------------------------------------------

async def open_stream(url: str) -> StreamResponse:
    """
    Connect, send the request and read status line plus headers.
    Body bytes that arrived together with the headers are kept in .body;
    the caller owns the connection and must close() it.
    """
    parts = split_url(url)
    secure = parts.scheme == "https"
    host = parts.hostname
    port = parts.port or (443 if secure else 80)
    host_header = parts.netloc.rpartition("@")[2]

    path = quote(parts.path or "/", safe=_PATH_SAFE)
    if parts.query:
        path += "?" + quote(parts.query, safe=_PATH_SAFE)

    if secure:
        reader, writer = await asyncio.open_connection(
            host, port, ssl=ssl.create_default_context(), server_hostname=host
        )
    else:
        reader, writer = await asyncio.open_connection(host, port)

    try:
        request = (
            f"GET {path} HTTP/1.0\r\n"
            f"Host: {host_header}\r\n"
            f"Icy-MetaData: 1\r\n"
            f"User-Agent: {USER_AGENT}\r\n"
            f"Accept: */*\r\n"
            f"Connection: close\r\n\r\n"
        )
        writer.write(request.encode("ascii", errors="ignore"))
        await writer.drain()

        status, headers, body = await read_head(reader)
    except BaseException:
        writer.transport.abort()
        raise

    return StreamResponse(url, status, headers, body, reader, writer)


async def read_head(reader: asyncio.StreamReader) -> tuple[int, dict[str, str], bytes]:
    head = b""
    while True:
        for sep in (b"\r\n\r\n", b"\n\n"):
            if sep in head:
                header_block, rest = head.split(sep, 1)
                status, headers = parse_head(header_block)
                return status, headers, rest

        if len(head) > MAX_HEADER_BYTES:
            raise ResponseError("response headers too large")

        chunk = await reader.read(1024)
        if not chunk:
            if not head:
                raise EmptyResponse("server closed the connection without responding")
            raise ResponseError("connection closed inside response headers")
        head += chunk


def parse_head(header_block: bytes) -> tuple[int, dict[str, str]]:
    lines = header_block.decode("latin1").splitlines()
    if not lines:
        raise ResponseError("empty status line")

    # "HTTP/1.1 200 OK" or the SHOUTcast flavour "ICY 200 OK"
    fields = lines[0].split(None, 2)
    if len(fields) < 2 or not (fields[0].startswith("HTTP/") or fields[0] == "ICY"):
        raise ResponseError(f"unexpected status line {lines[0][:80]!r}")
    try:
        status = int(fields[1])
    except ValueError:
        raise ResponseError(f"unexpected status line {lines[0][:80]!r}") from None

    headers = {}
    for line in lines[1:]:
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        headers[key.strip().lower()] = value.strip()

    return status, headers


def describe_error(exc: Exception, url: str) -> str:
    """Map a transport failure to a stable, human readable error string."""
    try:
        parts = split_url(url)
        host = parts.hostname
        port = parts.port or (443 if parts.scheme == "https" else 80)
    except ValueError:
        host, port = url, None

    if isinstance(exc, EmptyResponse):
        return "Request error: server closed the connection without responding"
    if isinstance(exc, ResponseError):
        return f"Request error: malformed response: {exc}"
    if isinstance(exc, socket.gaierror):
        return f"Request error: could not resolve host '{host}'"
    if isinstance(exc, ssl.SSLError):
        return f"Request error: TLS failure: {getattr(exc, 'reason', None) or exc}"
    if isinstance(exc, ConnectionRefusedError):
        return f"Request error: connection refused by {host}:{port}"
    if isinstance(exc, ConnectionResetError):
        return "Stream error: connection reset by peer"
    return f"Request error: {exc.strerror or exc}" if isinstance(exc, OSError) else f"Request error: {exc}"
