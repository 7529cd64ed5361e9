import re

from .models import NowPlayingResult, ParsedTitle

SEPARATOR = " - "

NOT_A_SONG = "Metadata does not appear to be a song title."
NO_TITLE = "Could not parse song title from stream."

_AD_PATTERN = re.compile(r"ad|advert|commercial|sponsor", re.IGNORECASE)
_DIGITS = re.compile(r"^\d+$")
MIN_TITLE_LENGTH = 5

# key='value'; -- a value runs until "';" followed by the next key or the end
_PAIR = re.compile(r"(\w+)='(.*?)'(?:;(?=\s*\w+=')|;?\s*$)", re.DOTALL)

# ---------------------------------------------------------
# Decode text (legacy-encoding safe)
# ---------------------------------------------------------

def decode_metadata(raw: bytes) -> str:
    """
    Decode a metadata block. UTF-8 first; stations that still send
    single-byte codepages get windows-1250, then latin1.
    """
    raw = raw.replace(b"\x00", b"")
    for enc in ("utf-8", "windows-1250"):
        try:
            return raw.decode(enc)
        except UnicodeError:
            continue
    return raw.decode("latin1")


def parse_metadata_block(text: str) -> dict[str, str]:
    fields = {}
    for match in _PAIR.finditer(text.strip()):
        fields.setdefault(match.group(1), match.group(2))
    return fields


# ---------------------------------------------------------
# Song / not-a-song heuristics
# ---------------------------------------------------------

def rejection_reason(raw_title: str) -> str | None:
    if _AD_PATTERN.search(raw_title):
        return "advertisement"
    if _DIGITS.match(raw_title.replace(SEPARATOR, "").strip()):
        return "numeric station id"
    if len(raw_title) < MIN_TITLE_LENGTH:
        return "too short"
    return None


def split_title(raw_title: str) -> ParsedTitle:
    parts = raw_title.split(SEPARATOR)
    if len(parts) >= 2:
        artist = parts[0].strip()
        return ParsedTitle(artist=artist or None, title=SEPARATOR.join(parts[1:]).strip())
    return ParsedTitle(artist=None, title=raw_title.strip())


def title_to_result(raw_title: str) -> NowPlayingResult:
    if rejection_reason(raw_title):
        return NowPlayingResult.failure(NOT_A_SONG)

    parsed = split_title(raw_title)
    if not parsed.title:
        return NowPlayingResult.failure(NO_TITLE)
    return NowPlayingResult.song(parsed.artist, parsed.title)
