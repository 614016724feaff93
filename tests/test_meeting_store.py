from meeting_store import Meeting, MeetingStore


def _meeting(mid, start, instant=False):
    return Meeting(
        id=mid,
        title=mid.upper(),
        meetLink=f"https://meet.google.com/{mid}",
        isInstant=instant,
        createdAt="2026-01-01T00:00:00Z",
        scheduledTime=None if instant else start,
        calendarEventId=mid,
        startTime=start,
    )


def test_lists_are_per_owner_and_ordered():
    store = MeetingStore()
    store.add("a@x.com", _meeting("m1", "2999-01-01T10:00:00Z"))
    store.add("a@x.com", _meeting("m2", "2999-01-02T10:00:00Z"))
    store.add("b@x.com", _meeting("m3", "2999-01-01T10:00:00Z"))

    assert [m.id for m in store.list("a@x.com")] == ["m1", "m2"]
    assert [m.id for m in store.list("b@x.com")] == ["m3"]

    store.clear("a@x.com")
    assert store.list("a@x.com") == []
    assert len(store.list("b@x.com")) == 1


def test_overlap_uses_one_hour_windows():
    store = MeetingStore()
    first = store.add("a", _meeting("m1", "2999-01-01T10:00:00Z"))
    store.add("a", _meeting("m2", "2999-01-01T10:59:00Z"))
    store.add("a", _meeting("m3", "2999-01-01T11:00:00Z"))
    store.add("b", _meeting("m4", "2999-01-01T10:15:00Z"))

    assert [m.id for m in store.overlaps("a", first)] == ["m2"]


def test_record_serializes_public_fields():
    d = _meeting("m1", "2999-01-01T10:00:00Z").to_dict()

    assert set(d) == {"id", "title", "meetLink", "scheduledTime", "isInstant", "createdAt", "calendarEventId"}
    assert _meeting("m2", "2999-01-01T10:00:00Z", instant=True).to_dict()["scheduledTime"] is None
