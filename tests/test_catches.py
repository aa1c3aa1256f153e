"""Tests for catch history summaries and the device id store."""

from datetime import datetime, timedelta, timezone

from fishtracker.adapters.device.device_id import DeviceIdStore
from fishtracker.orchestrator.catches import group_catches, parse_timestamp, summarize_catches
from fishtracker.orchestrator.contracts import TrackedFish

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def tracked(fish, n, timestamp, image_url=None):
    return TrackedFish(id=f"t{n}", fish_id=fish.id, image_url=image_url, timestamp=timestamp, fish=fish)


class TestSummarizeCatches:

    def test_sorted_newest_first_with_labels(self, fish):
        history = [
            tracked(fish(1), 1, "2024-05-07T12:00:00Z"),
            tracked(fish(2), 2, "2024-05-10T09:30:00Z"),
            tracked(fish(3), 3, "2024-05-09T10:00:00+00:00"),
        ]

        catches = summarize_catches(history, now=NOW)

        assert [c.id for c in catches] == ["2", "3", "1"]
        assert catches[0].tracked_time == "2 hours ago"
        assert catches[0].show_recent_icon
        assert catches[1].tracked_time == "1 days ago"
        assert not catches[1].show_recent_icon
        assert catches[2].tracked_time == "3 days ago"

    def test_image_urls_resolved_against_base(self, fish):
        history = [
            tracked(fish(1), 1, "2024-05-10T11:00:00Z", "uploads/a.jpg"),
            tracked(fish(2), 2, "2024-05-10T10:00:00Z", "https://cdn.test/b.jpg"),
            tracked(fish(3), 3, "2024-05-10T09:00:00Z"),
        ]

        catches = summarize_catches(history, "http://fish.test/", now=NOW)

        assert [c.image_url for c in catches] == [
            "http://fish.test/uploads/a.jpg", "https://cdn.test/b.jpg", None,
        ]

    def test_naive_timestamp_is_utc(self):
        assert parse_timestamp("2024-05-10T11:00:00") == datetime(2024, 5, 10, 11, 0, tzinfo=timezone.utc)

    def test_empty_history(self):
        assert summarize_catches([], now=NOW) == []



class TestGroupCatches:

    def test_midnight_boundary(self, fish):
        now = datetime(2024, 5, 10, 0, 30, tzinfo=timezone.utc)
        history = [
            tracked(fish(1), 1, "2024-05-09T23:50:00Z"),
            tracked(fish(2), 2, "2024-05-10T00:10:00Z"),
            tracked(fish(3), 3, "2024-05-08T23:59:59Z"),
            tracked(fish(4), 4, "2024-05-09T00:00:00Z"),
        ]

        today, yesterday, older = group_catches(history, now=now)

        assert [c.id for c in today.catches] == ["2"]
        assert today.catches[0].tracked_time == "00:10:00"
        assert [c.id for c in yesterday.catches] == ["1", "4"]
        assert {c.tracked_time for c in yesterday.catches} == {"Yesterday"}
        assert [c.id for c in older.catches] == ["3"]
        assert older.catches[0].tracked_time == "2024-05-08"
        assert not any(c.show_recent_icon for g in (today, yesterday, older) for c in g.catches)

    def test_days_follow_local_timezone(self, fish):
        cest = timezone(timedelta(hours=2))
        now = datetime(2024, 5, 10, 1, 0, tzinfo=cest)
        history = [tracked(fish(1), 1, "2024-05-09T22:30:00Z", "uploads/a.jpg")]

        today, yesterday, _ = group_catches(history, "http://fish.test", now=now)

        assert today.catches[0].tracked_time == "00:30:00"
        assert today.catches[0].image_url == "http://fish.test/uploads/a.jpg"
        assert yesterday.catches == []

    def test_empty_history_keeps_all_groups(self):
        groups = group_catches([], now=NOW)

        assert [g.title for g in groups] == ["Today", "Yesterday", "Older catches"]
        assert all(g.catches == [] for g in groups)

class TestDeviceIdStore:

    def test_creates_then_reuses(self, status, tmp_path):
        path = tmp_path / "nested" / "device_id"
        store = DeviceIdStore(status, path)

        first = store.get_or_create()
        second = DeviceIdStore(status, path).get_or_create()

        assert first == second
        assert len(first) == 36
        assert path.read_text() == first

    def test_blank_file_gets_new_id(self, status, tmp_path):
        path = tmp_path / "device_id"
        path.write_text("  \n")

        device_id = DeviceIdStore(status, path).get_or_create()

        assert device_id.strip()
        assert path.read_text() == device_id
