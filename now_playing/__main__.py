"""One-shot lookup: python -m now_playing <stream-or-page-url>"""
import asyncio
import sys

from .resolver import resolve_now_playing


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print("Usage: python -m now_playing <stream_url>", file=sys.stderr)
        return 2

    result = asyncio.run(resolve_now_playing(argv[0]))
    if not result.ok:
        print(result.error, file=sys.stderr)
        return 1

    print(f"{result.display_artist()} - {result.title}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
