"""Run the live tracker with a camera preview window.

Usage:
    uvicorn api.main:app --port 5000  # (separate, for saving moods)
    python scripts/live_overlay.py    # (to see camera overlay window)

Keys: 'l' toggles landmarks, 's' saves the current mood, 'q' quits.
"""
import asyncio

import cv2

from mood.config import Settings
from mood.live import LiveMoodTracker
from mood.visual import draw_landmarks

WINDOW = "Mood Tracker (q to quit)"


async def run_live_overlay(settings: Settings) -> None:
    tracker = LiveMoodTracker(settings)
    await tracker.start()
    try:
        while True:
            await asyncio.sleep(0.03)
            handle = tracker.capture.handle
            if handle is None or handle.last_frame is None:
                continue
            result = tracker.sink.latest
            label, face, hands = None, None, None
            if result is not None:
                label = f"{result.dominant_mood} {result.distribution[result.dominant_mood]:.0%} [{result.mode.value}]"
                face = result.diagnostics.face_landmarks
                hands = result.diagnostics.hand_landmarks
            cv2.imshow(WINDOW, draw_landmarks(handle.last_frame, face, hands, label))

            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                break
            if key == ord("l"):
                settings.SHOW_LANDMARKS = not settings.SHOW_LANDMARKS
            if key == ord("s"):
                record = await tracker.save()
                if record is not None:
                    print(f"Saved {record.mood} ({record.id})")
            for note in tracker.sink.drain_notifications():
                print(f"[{note.level}] {note.message}")
    finally:
        await tracker.stop()
        cv2.destroyAllWindows()


if __name__ == '__main__':
    asyncio.run(run_live_overlay(Settings()))
