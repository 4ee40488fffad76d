import json
from datetime import datetime, timezone

from travel_diary.comments import CommentStore
from travel_diary.models import GeoLocation
from travel_diary.persistence import load_all, load_snapshot, save_all, save_snapshot
from travel_diary.store import AccessStore


class _FakeResolver:
    def resolve(self, ip: str) -> GeoLocation:
        return GeoLocation(country="China", region="Hunan", city="Zhangjiajie", isp="CU")


def _populate() -> tuple[AccessStore, CommentStore]:
    records = AccessStore(_FakeResolver())
    records.record("8.8.8.8", "Mozilla/5.0", "/homepage.html")
    records.record("8.8.8.8", "Mozilla/5.0", "/zjj.html")
    records.record("1.1.1.1", "curl/8.0", "/nc.html")
    records.mark_blocked("1.1.1.1", "RATE_LIMITED")

    comments = CommentStore()
    comments.add("nj", "A", "hi")
    comments.add("nj", "B", "好地方")
    comments.add("xjp", "C", "hot")
    return records, comments


def test_round_trip(tmp_path):
    records_path = str(tmp_path / "access_records.json")
    comments_path = str(tmp_path / "comments.json")
    records, comments = _populate()

    assert save_all(records, comments, records_path, comments_path)

    # Simulate a restart
    fresh_records = AccessStore(_FakeResolver())
    fresh_comments = CommentStore()
    load_all(fresh_records, fresh_comments, records_path, comments_path)

    assert fresh_records.snapshot() == records.snapshot()
    assert fresh_comments.to_dict() == comments.to_dict()
    assert fresh_comments.list("nj") == comments.list("nj")


def test_snapshot_is_pretty_json_and_overwritten(tmp_path):
    path = tmp_path / "snap.json"
    assert save_snapshot(str(path), {"a": [1, 2]})
    assert save_snapshot(str(path), {"b": 1})
    text = path.read_text(encoding="utf-8")
    assert json.loads(text) == {"b": 1}
    assert "\n  " in text
    assert not (tmp_path / "snap.json.tmp").exists()


def test_block_reason_omitted_when_not_blocked(tmp_path):
    records, comments = _populate()
    data = records.to_dict()
    assert "block_reason" not in data["8.8.8.8"]
    assert data["1.1.1.1"]["block_reason"] == "RATE_LIMITED"
    assert data["1.1.1.1"]["blocked"] is True


def test_missing_files_start_empty(tmp_path):
    records = AccessStore(_FakeResolver())
    comments = CommentStore()
    load_all(records, comments, str(tmp_path / "nope.json"), str(tmp_path / "nope2.json"))
    assert records.count == 0
    assert comments.count == 0


def test_malformed_file_starts_empty(tmp_path):
    bad = tmp_path / "access_records.json"
    bad.write_text("{not json", encoding="utf-8")
    assert load_snapshot(str(bad)) == {}

    listing = tmp_path / "comments.json"
    listing.write_text("[1, 2, 3]", encoding="utf-8")
    assert load_snapshot(str(listing)) == {}


def test_partially_bad_entries_discard_whole_snapshot(tmp_path):
    records_path = tmp_path / "access_records.json"
    records_path.write_text(json.dumps({
        "8.8.8.8": {
            "ip": "8.8.8.8",
            "user_agent": "ua",
            "first_visit": "2026-03-01T12:00:00+00:00",
            "last_visit": "2026-03-01T12:00:00+00:00",
            "visit_count": 1,
            "pages_visited": ["/a.html"],
        },
        "1.1.1.1": {"ip": "1.1.1.1"},
    }), encoding="utf-8")
    comments_path = tmp_path / "comments.json"
    comments_path.write_text(json.dumps({"nj": [{"id": "x"}]}), encoding="utf-8")

    records = AccessStore(_FakeResolver())
    comments = CommentStore()
    load_all(records, comments, str(records_path), str(comments_path))
    assert records.count == 0
    assert comments.count == 0


def test_loads_zulu_timestamps(tmp_path):
    path = tmp_path / "comments.json"
    path.write_text(json.dumps({
        "nj": [{"id": 1, "nick": "A", "text": "hi", "date": "2026-03-01T12:00:00Z"}],
    }), encoding="utf-8")
    comments = CommentStore()
    load_all(AccessStore(_FakeResolver()), comments, str(tmp_path / "none.json"), str(path))
    assert comments.list("nj")[0].date == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_save_failure_is_reported_not_raised(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    # Parent "directory" is a regular file, so the write fails
    assert not save_snapshot(str(blocker / "snap.json"), {"a": 1})
    assert not save_snapshot(str(tmp_path / "snap.json"), {"a": object()})


def _record_entry(**overrides) -> dict:
    entry = {
        "ip": "8.8.8.8",
        "user_agent": "ua",
        "first_visit": "2026-03-01T12:00:00+00:00",
        "last_visit": "2026-03-01T12:05:00+00:00",
        "visit_count": 3,
        "pages_visited": ["/a.html"],
    }
    entry.update(overrides)
    return entry


def test_zero_visit_count_discards_snapshot(tmp_path):
    path = tmp_path / "access_records.json"
    path.write_text(json.dumps({"8.8.8.8": _record_entry(visit_count=0)}), encoding="utf-8")
    records = AccessStore(_FakeResolver())
    load_all(records, CommentStore(), str(path), str(tmp_path / "none.json"))
    assert records.count == 0


def test_duplicate_pages_collapsed_on_load(tmp_path):
    path = tmp_path / "access_records.json"
    pages = ["/a.html", "/b.html", "/a.html", "/b.html", "/c.html"]
    path.write_text(json.dumps({"8.8.8.8": _record_entry(pages_visited=pages)}), encoding="utf-8")
    records = AccessStore(_FakeResolver())
    load_all(records, CommentStore(), str(path), str(tmp_path / "none.json"))
    assert records.get("8.8.8.8").pages_visited == ["/a.html", "/b.html", "/c.html"]
