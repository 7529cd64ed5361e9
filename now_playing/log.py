import os
from datetime import datetime

# ---------------------------------------------------------
# Colors
# ---------------------------------------------------------

class Color:
    RESET = "\033[0m"
    GREEN = "\033[92m"
    CYAN = "\033[96m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    MAGENTA = "\033[95m"
    GREY = "\033[90m"


_settings = {
    "timestamps": False,
    "debug": os.getenv("NOW_PLAYING_DEBUG") == "1",
}


def configure(timestamps: bool | None = None, debug: bool | None = None) -> None:
    if timestamps is not None:
        _settings["timestamps"] = bool(timestamps)
    if debug is not None:
        _settings["debug"] = bool(debug) or os.getenv("NOW_PLAYING_DEBUG") == "1"


def log(msg, color=Color.RESET):
    if _settings["timestamps"]:
        now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        line = f"{color}[{now}] {msg}{Color.RESET}"
    else:
        line = f"{color}{msg}{Color.RESET}"

    try:
        print(line, flush=True)
    except (OSError, ValueError):
        # stdout gone (closed pipe, detached container log)
        pass


def debug_log(msg) -> None:
    if not _settings["debug"]:
        return
    log(f"[DEBUG] {msg}", Color.GREY)
