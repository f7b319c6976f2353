"""
CLI to run a headless live mood session -> JSON lines.
"""
from __future__ import annotations
import argparse, asyncio, json, logging, sys
from mood.config import Settings
from mood.live import LiveMoodTracker


async def run(settings: Settings, seconds: float, every: int, save: bool, notes: str) -> int:
    tracker = LiveMoodTracker(settings)
    try:
        await tracker.start()
    except PermissionError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    results = tracker.sink.subscribe()
    loop = asyncio.get_running_loop()
    deadline = loop.time() + seconds
    n = 0
    try:
        while (remaining := deadline - loop.time()) > 0:
            try:
                result = await asyncio.wait_for(results.get(), timeout=remaining)
            except asyncio.TimeoutError:
                break
            n += 1
            if n % every:
                continue
            print(json.dumps({
                "ts": result.timestamp.isoformat(),
                "mode": result.mode.value,
                "mood": result.dominant_mood,
                "scores": {k: round(v, 3) for k, v in result.distribution.items()},
            }))

        if save:
            record = await tracker.save(notes)
            if record is not None:
                print(f"✅ Mood saved: {record.mood} (id={record.id})")
    finally:
        await tracker.stop()
        for note in tracker.sink.drain_notifications():
            print(f"[{note.level}] {note.message}", file=sys.stderr)
    return 0


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--seconds", type=float, default=10.0, help="How long to track")
    p.add_argument("--every", type=int, default=10, help="Print every Nth result")
    p.add_argument("--camera-index", type=int, default=None)
    p.add_argument("--save", action="store_true", help="Save the final mood to the API")
    p.add_argument("--notes", default="", help="Notes stored with --save")
    p.add_argument("--verbose", action="store_true")
    args = p.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    settings = Settings()
    if args.camera_index is not None:
        settings.CAMERA_INDEX = args.camera_index
    sys.exit(asyncio.run(run(settings, args.seconds, max(1, args.every), args.save, args.notes)))

if __name__ == "__main__":
    main()
