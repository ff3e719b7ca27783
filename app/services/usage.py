"""
app/services/usage.py – per-user generation counters (process lifetime only).
"""
from __future__ import annotations

import threading
from collections import defaultdict
from typing import Any

PLAN_LIMITS: dict[str, dict[str, int]] = {
    "free": {"text_tokens": 1_000_000, "images": 100, "videos": 20, "audio_requests": 120},
}

KINDS = ("text_tokens", "text_requests", "images", "videos", "audio_requests", "transcriptions")


class UsageTracker:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, dict[str, int]] = defaultdict(lambda: dict.fromkeys(KINDS, 0))

    def record(self, user_id: str, kind: str, amount: int = 1) -> None:
        if kind not in KINDS:
            raise ValueError(f"Unknown usage kind: {kind}")
        with self._lock:
            self._counters[user_id][kind] += amount

    def forget(self, user_id: str) -> None:
        with self._lock:
            self._counters.pop(user_id, None)

    def snapshot(self, user_id: str, plan: str = "free") -> dict[str, Any]:
        with self._lock:
            counts = dict(self._counters.get(user_id) or dict.fromkeys(KINDS, 0))
        return {
            "text_generation": {
                "total_requests": counts["text_requests"],
                "tokens_used": counts["text_tokens"],
            },
            "image_generation": {"total_requests": counts["images"]},
            "video_generation": {"total_requests": counts["videos"]},
            "audio_generation": {
                "total_requests": counts["audio_requests"],
                "transcriptions": counts["transcriptions"],
            },
            "subscription": {
                "plan": plan,
                "usage": {
                    "text_tokens": counts["text_tokens"],
                    "images": counts["images"],
                    "videos": counts["videos"],
                    "audio_requests": counts["audio_requests"],
                },
                "limits": PLAN_LIMITS[plan],
            },
        }
