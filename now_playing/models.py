# now_playing/models.py
from dataclasses import dataclass

UNKNOWN_ARTIST = "Unknown Artist"


@dataclass(frozen=True)
class ParsedTitle:
    artist: str | None
    title: str


@dataclass(frozen=True)
class NowPlayingResult:
    """
    Result of one resolution: either a title (artist optional) or an error.
    Build it with song() or failure(), never both fields at once.
    """

    artist: str | None = None
    title: str | None = None
    error: str | None = None

    @classmethod
    def song(cls, artist: str | None, title: str) -> "NowPlayingResult":
        return cls(artist=artist or None, title=title)

    @classmethod
    def failure(cls, error: str) -> "NowPlayingResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.title is not None

    def display_artist(self) -> str:
        return self.artist or UNKNOWN_ARTIST

    def to_dict(self) -> dict:
        return {
            key: value
            for key, value in (("artist", self.artist), ("title", self.title), ("error", self.error))
            if value is not None
        }
