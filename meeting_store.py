# meeting_store.py
from __future__ import annotations

import threading
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List

MEETING_DURATION = timedelta(minutes=60)


def to_utc_iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_utc_iso(s: str) -> datetime:
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s)


@dataclass(frozen=True)
class Meeting:
    id: str
    title: str
    meetLink: str
    isInstant: bool
    createdAt: str
    scheduledTime: Optional[str] = None
    calendarEventId: Optional[str] = None
    # start of the calendar window; not part of the public record
    startTime: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d.pop("startTime")
        return d

    def window(self) -> Optional[tuple]:
        if not self.startTime:
            return None
        start = parse_utc_iso(self.startTime)
        return start, start + MEETING_DURATION


class MeetingStore:
    """
    Per-user meeting lists held in process memory.

    Nothing here is durable: a restart empties every list.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._meetings: Dict[str, List[Meeting]] = {}

    def add(self, owner: str, meeting: Meeting) -> Meeting:
        with self._lock:
            self._meetings.setdefault(owner, []).append(meeting)
        return meeting

    def list(self, owner: str) -> List[Meeting]:
        with self._lock:
            return list(self._meetings.get(owner, []))

    def clear(self, owner: str) -> None:
        with self._lock:
            self._meetings.pop(owner, None)

    def overlaps(self, owner: str, meeting: Meeting) -> List[Meeting]:
        """Other meetings of `owner` whose calendar windows intersect `meeting`. Advisory only."""
        win = meeting.window()
        if win is None:
            return []
        start, end = win
        hits = []
        for other in self.list(owner):
            if other.id == meeting.id:
                continue
            other_win = other.window()
            if other_win and other_win[0] < end and start < other_win[1]:
                hits.append(other)
        return hits
