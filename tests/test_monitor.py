import asyncio
import json

from now_playing.models import NowPlayingResult
from now_playing.monitor import MqttPublisher, StationMonitor, load_options, load_streams


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def publish_song(self, station, song):
        self.events.append(("song", station, song))

    def publish_error(self, station, error):
        self.events.append(("error", station, error))

    def clear_error(self, station):
        self.events.append(("clear", station))


def scripted(results):
    """Fake resolver answering from a per-URL queue."""
    queues = {url: list(items) for url, items in results.items()}

    async def resolve(url):
        return queues[url].pop(0)

    return resolve


SONG_A = NowPlayingResult.song("Aphex Twin", "Xtal")
SONG_B = NowPlayingResult.song(None, "Untitled Session")
OFFLINE = NowPlayingResult.failure("Metadata fetch timed out.")


def test_load_options(tmp_path):
    path = tmp_path / "options.json"
    path.write_text(json.dumps({"interval": 30, "streams": [{"name": "A", "url": "http://a/live"}]}))
    assert load_options(str(path))["interval"] == 30

    assert load_options(str(tmp_path / "missing.json")) == {}

    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    assert load_options(str(broken)) == {}


def test_load_streams_skips_incomplete_entries():
    options = {
        "streams": [
            {"name": "Groove", "url": "http://radio.example.com/groove"},
            {"name": "No URL"},
            {"url": "http://radio.example.com/anonymous"},
            "http://radio.example.com/not-a-dict",
        ]
    }
    assert load_streams(options) == {"Groove": "http://radio.example.com/groove"}
    assert load_streams({}) == {}


def test_mqtt_disabled_by_default():
    assert MqttPublisher.from_options({}) is None

    publisher = MqttPublisher.from_options({"mqtt_enabled": True, "mqtt_topic": "radio/np/"})
    assert publisher.topic == "radio/np"
    assert publisher.client is None


def test_only_changes_are_published():
    publisher = RecordingPublisher()
    monitor = StationMonitor(
        {"Groove": "http://g/live"},
        publisher=publisher,
        resolve=scripted({"http://g/live": [SONG_A, SONG_A, SONG_B]}),
    )

    for _ in range(3):
        asyncio.run(monitor.poll_once())

    assert publisher.events == [
        ("song", "Groove", "Aphex Twin - Xtal"),
        ("song", "Groove", "Unknown Artist - Untitled Session"),
    ]


def test_errors_surface_after_tolerance_and_clear_on_recovery():
    publisher = RecordingPublisher()
    monitor = StationMonitor(
        {"Groove": "http://g/live"},
        failure_tolerance=3,
        publisher=publisher,
        resolve=scripted({"http://g/live": [SONG_A, OFFLINE, OFFLINE, OFFLINE, OFFLINE, SONG_A]}),
    )

    for _ in range(3):
        asyncio.run(monitor.poll_once())
    # two failures are tolerated silently
    assert publisher.events == [("song", "Groove", "Aphex Twin - Xtal")]
    assert monitor.stations["Groove"].failures == 2

    asyncio.run(monitor.poll_once())
    asyncio.run(monitor.poll_once())
    assert publisher.events[1:] == [("error", "Groove", "Metadata fetch timed out.")]

    asyncio.run(monitor.poll_once())
    station = monitor.stations["Groove"]
    assert station.failures == 0
    assert not station.error_shown
    # the song is announced again after an outage
    assert publisher.events[2:] == [("clear", "Groove"), ("song", "Groove", "Aphex Twin - Xtal")]


def test_stations_are_polled_independently():
    publisher = RecordingPublisher()
    monitor = StationMonitor(
        {"Groove": "http://g/live", "Drone": "http://d/live"},
        failure_tolerance=1,
        publisher=publisher,
        resolve=scripted({"http://g/live": [SONG_A], "http://d/live": [OFFLINE]}),
    )

    asyncio.run(monitor.poll_once())

    assert sorted(publisher.events) == [
        ("error", "Drone", "Metadata fetch timed out."),
        ("song", "Groove", "Aphex Twin - Xtal"),
    ]
