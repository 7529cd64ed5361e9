from now_playing.models import NowPlayingResult, ParsedTitle
from now_playing.titles import (
    NO_TITLE,
    NOT_A_SONG,
    decode_metadata,
    parse_metadata_block,
    rejection_reason,
    split_title,
    title_to_result,
)


def test_parse_metadata_block_pairs():
    fields = parse_metadata_block("StreamTitle='Artist Name - Song Title';StreamUrl='x';")
    assert fields == {"StreamTitle": "Artist Name - Song Title", "StreamUrl": "x"}


def test_artist_and_title_from_metadata():
    raw = parse_metadata_block("StreamTitle='Artist Name - Song Title';StreamUrl='x';")["StreamTitle"]
    result = title_to_result(raw)
    assert result == NowPlayingResult(artist="Artist Name", title="Song Title")


def test_title_without_separator_has_no_artist():
    raw = parse_metadata_block("StreamTitle='JustATitle';")["StreamTitle"]
    result = title_to_result(raw)
    assert result.title == "JustATitle"
    assert result.artist is None
    assert result.error is None


def test_only_first_separator_splits_artist():
    assert split_title("A - B - C") == ParsedTitle(artist="A", title="B - C")
    assert title_to_result("A - B - C").to_dict() == {"artist": "A", "title": "B - C"}


def test_apostrophes_inside_values():
    fields = parse_metadata_block("StreamTitle='Guns N' Roses - Patience';StreamUrl='';")
    assert fields["StreamTitle"] == "Guns N' Roses - Patience"
    assert fields["StreamUrl"] == ""


def test_missing_trailing_semicolon_and_whitespace():
    assert parse_metadata_block("StreamTitle='Song Only Title'  ") == {"StreamTitle": "Song Only Title"}


def test_no_pairs_in_garbage():
    assert parse_metadata_block("garbage without pairs") == {}
    assert parse_metadata_block("") == {}


def test_advertisement_is_not_a_song():
    for raw in ("Advertisement - Call Now", "ADVERTISEMENT", "Our Sponsor Message", "Commercial break"):
        result = title_to_result(raw)
        assert result.error == NOT_A_SONG
        assert result.title is None


def test_ad_heuristic_is_a_plain_substring_match():
    # "Radiohead" contains "ad"; kept as-is
    assert rejection_reason("Radiohead - Creep") == "advertisement"


def test_station_id_beacons_are_rejected():
    assert rejection_reason("12345") == "numeric station id"
    assert rejection_reason("1234 - 5678") == "numeric station id"
    assert title_to_result("  987654  ").error == NOT_A_SONG


def test_short_titles_are_rejected():
    assert rejection_reason("Abba") == "too short"
    assert title_to_result("Abba").error == NOT_A_SONG
    # exactly five characters passes
    assert title_to_result("X - Y") == NowPlayingResult(artist="X", title="Y")


def test_blank_title_after_trimming():
    assert title_to_result("         ").error == NO_TITLE


def test_empty_artist_segment_is_dropped():
    result = title_to_result(" - Untitled Track")
    assert result.artist is None
    assert result.title == "Untitled Track"


def test_decode_utf8_and_nul_padding():
    raw = "StreamTitle='Motörhead - Ace of Spades';".encode("utf-8") + b"\x00" * 7
    assert decode_metadata(raw) == "StreamTitle='Motörhead - Ace of Spades';"


def test_decode_legacy_codepage():
    # 0xB3 is "ł" in windows-1250 and not valid UTF-8 on its own
    raw = b"StreamTitle='Wojciech M\xb3ynarski - Jeszcze w zielone gramy';"
    assert decode_metadata(raw) == "StreamTitle='Wojciech Młynarski - Jeszcze w zielone gramy';"


def test_result_shape():
    song = NowPlayingResult.song("", "Song")
    assert song.ok
    assert song.artist is None
    assert song.display_artist() == "Unknown Artist"
    assert song.to_dict() == {"title": "Song"}

    failure = NowPlayingResult.failure("boom")
    assert not failure.ok
    assert failure.to_dict() == {"error": "boom"}
