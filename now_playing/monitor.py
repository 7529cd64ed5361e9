import asyncio
import json
import os
from dataclasses import dataclass

import paho.mqtt.client as mqtt

from . import __version__
from .log import Color, configure, debug_log, log
from .models import NowPlayingResult
from .resolver import resolve_now_playing

OPTIONS_PATH = os.getenv("NOW_PLAYING_OPTIONS", "/data/options.json")

DEFAULT_INTERVAL = 15
DEFAULT_FAILURE_TOLERANCE = 3

# ---------------------------------------------------------
# Load config
# ---------------------------------------------------------

def load_options(path: str | None = None) -> dict:
    try:
        with open(path or OPTIONS_PATH, "r", encoding="utf-8") as f:
            options = json.load(f)
    except (OSError, ValueError):
        return {}
    return options if isinstance(options, dict) else {}


def load_streams(options: dict) -> dict[str, str]:
    streams = {}
    for entry in options.get("streams", []):
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        url = entry.get("url")
        if name and url:
            streams[name] = url
    return streams

# ---------------------------------------------------------
# MQTT
# ---------------------------------------------------------

class MqttPublisher:
    def __init__(self, host="localhost", port=1883, topic="radio/now_playing", user=None, password=None):
        self.host = host
        self.port = port
        self.topic = topic.rstrip("/")
        self.user = user
        self.password = password
        self.client = None

    @classmethod
    def from_options(cls, options: dict) -> "MqttPublisher | None":
        if not options.get("mqtt_enabled", False):
            return None
        return cls(
            host=options.get("mqtt_host", "localhost"),
            port=int(options.get("mqtt_port", 1883)),
            topic=options.get("mqtt_topic", "radio/now_playing"),
            user=options.get("mqtt_user"),
            password=options.get("mqtt_pass"),
        )

    def connect(self) -> None:
        self.client = mqtt.Client(callback_api_version=mqtt.CallbackAPIVersion.VERSION2)

        if self.user and self.password:
            self.client.username_pw_set(self.user, self.password)

        try:
            self.client.connect(self.host, self.port, 60)
            self.client.loop_start()
            log(f"MQTT connected to {self.host}:{self.port}", Color.MAGENTA)
        except (OSError, ValueError) as e:
            log(f"MQTT connection failed: {e}", Color.RED)

    def disconnect(self) -> None:
        if self.client is None:
            return
        self.client.loop_stop()
        self.client.disconnect()

    def publish(self, topic: str, payload: str) -> None:
        if self.client is None:
            return
        try:
            info = self.client.publish(topic, payload, qos=0, retain=True)
        except ValueError as e:
            log(f"MQTT publish failed: {e}", Color.RED)
            return
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            log(f"MQTT publish failed: {mqtt.error_string(info.rc)}", Color.RED)
            return
        log(f"MQTT → {topic}: {payload}", Color.MAGENTA)

    def publish_song(self, station: str, song: str) -> None:
        self.publish(f"{self.topic}/{station}", song)

    def publish_error(self, station: str, error: str) -> None:
        self.publish(f"{self.topic}/{station}/error", error)

    def clear_error(self, station: str) -> None:
        # empty retained payload removes the retained message
        self.publish(f"{self.topic}/{station}/error", "")

# ---------------------------------------------------------
# Async polling
# ---------------------------------------------------------

@dataclass
class StationState:
    name: str
    url: str
    last_song: tuple[str, str] | None = None
    failures: int = 0
    error_shown: bool = False


class StationMonitor:
    """
    Polls every station on a fixed interval. A title is reported when it
    changes; an error only after `failure_tolerance` consecutive failures.
    """

    def __init__(
        self,
        streams: dict[str, str],
        interval: float = DEFAULT_INTERVAL,
        failure_tolerance: int = DEFAULT_FAILURE_TOLERANCE,
        publisher: MqttPublisher | None = None,
        resolve=resolve_now_playing,
    ):
        self.stations = {name: StationState(name, url) for name, url in streams.items()}
        self.interval = interval
        self.failure_tolerance = max(int(failure_tolerance), 1)
        self.publisher = publisher
        self.resolve = resolve

    async def poll_single(self, station: StationState) -> None:
        result = await self.resolve(station.url)
        if result.ok:
            self._on_song(station, result)
        else:
            self._on_error(station, result.error)

    async def poll_once(self) -> None:
        tasks = [self.poll_single(station) for station in self.stations.values()]
        await asyncio.gather(*tasks)

    async def poll_loop(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval)

    def _on_song(self, station: StationState, result: NowPlayingResult) -> None:
        station.failures = 0
        if station.error_shown:
            station.error_shown = False
            log(f"{station.name}: back online", Color.CYAN)
            if self.publisher:
                self.publisher.clear_error(station.name)

        song = (result.display_artist(), result.title)
        if song == station.last_song:
            return

        station.last_song = song
        text = f"{song[0]} - {song[1]}"
        log(f"{station.name}: {text}", Color.GREEN)
        if self.publisher:
            self.publisher.publish_song(station.name, text)

    def _on_error(self, station: StationState, error: str) -> None:
        station.failures += 1
        debug_log(f"{station.name}: {error} ({station.failures}/{self.failure_tolerance})")

        if station.error_shown or station.failures < self.failure_tolerance:
            return

        station.error_shown = True
        station.last_song = None
        log(f"{station.name}: {error}", Color.RED)
        if self.publisher:
            self.publisher.publish_error(station.name, error)

# ---------------------------------------------------------
# Main
# ---------------------------------------------------------

def main() -> None:
    options = load_options()
    configure(timestamps=options.get("timestamps", False), debug=options.get("debug", False))

    streams = load_streams(options)
    log(f"Start now-playing monitor v{__version__} ({len(streams)} stations)", Color.CYAN)
    if not streams:
        log("No streams configured", Color.YELLOW)

    publisher = MqttPublisher.from_options(options)
    if publisher:
        publisher.connect()

    monitor = StationMonitor(
        streams,
        interval=max(float(options.get("interval", DEFAULT_INTERVAL)), 1),
        failure_tolerance=options.get("failure_tolerance", DEFAULT_FAILURE_TOLERANCE),
        publisher=publisher,
    )

    try:
        asyncio.run(monitor.poll_loop())
    except KeyboardInterrupt:
        log("Stopped", Color.YELLOW)
    finally:
        if publisher:
            publisher.disconnect()


if __name__ == "__main__":
    main()
