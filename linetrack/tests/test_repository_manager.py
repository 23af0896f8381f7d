"""Tests for RepositoryManager CRUD and queries (SQLite)."""

from datetime import datetime, timedelta
from uuid import UUID, uuid4

import pytest

from linetrack.core.analysis import RankedFile
from linetrack.core.db.models import TrackedRepository

USER = str(uuid4())


class TestRepositoryCrud:

    def test_add_and_get(self, repositories):
        repo = repositories.add_repository(USER, "acme", "widgets", "https://example.com/w.git")

        fetched = repositories.get_repository(repo["repository_id"])
        assert fetched["owner"] == "acme"
        assert fetched["watermark"] is None
        assert fetched["analysis_status"] == "idle"
        assert fetched["local_path"] is None

    def test_ids_round_trip_as_uuids(self, repositories, db_manager):
        repo = repositories.add_repository(USER, "acme", "widgets", "u")

        with db_manager.get_session() as session:
            row = session.get(TrackedRepository, UUID(repo["repository_id"]))
            assert isinstance(row.repository_id, UUID)
            assert row.user_id == UUID(USER)

        assert repositories.get_repository(repo["repository_id"].upper())["name"] == "widgets"

    def test_duplicate_rejected(self, repositories):
        repositories.add_repository(USER, "acme", "widgets", "https://example.com/w.git")
        with pytest.raises(ValueError):
            repositories.add_repository(USER, "acme", "widgets", "https://example.com/w.git")

    def test_same_name_other_user_allowed(self, repositories):
        repositories.add_repository(USER, "acme", "widgets", "u")
        other = repositories.add_repository(str(uuid4()), "acme", "widgets", "u")
        assert other["repository_id"]

    def test_list_scoped_to_user(self, repositories):
        repositories.add_repository(USER, "acme", "one", "u")
        repositories.add_repository(USER, "acme", "two", "u")
        repositories.add_repository(str(uuid4()), "acme", "three", "u")

        names = {r["name"] for r in repositories.list_repositories(USER)}
        assert names == {"one", "two"}

    def test_delete_cascades(self, repositories):
        repo = repositories.add_repository(USER, "acme", "widgets", "u")
        rid = repo["repository_id"]
        repositories.add_snapshot(rid, "abc", datetime(2024, 1, 1), 5, 5, 0, {".cs": 5})
        repositories.replace_top_files(rid, [RankedFile("a.cs", 5)])

        assert repositories.delete_repository(rid) is True

        assert repositories.get_repository(rid) is None
        assert repositories.list_snapshots(rid) == []
        assert repositories.has_top_files(rid) is False
        assert repositories.delete_repository(rid) is False


class TestSnapshotQueries:

    def test_line_history_window(self, repositories, repository):
        rid = repository["repository_id"]
        now = datetime(2024, 3, 31, 12, 0)
        repositories.add_snapshot(rid, "old", now - timedelta(days=40), 50, 50, 0, {".cs": 50})
        repositories.add_snapshot(rid, "a", now - timedelta(days=2, hours=3), 100, 50, 0, {".cs": 100})
        repositories.add_snapshot(rid, "b", now - timedelta(days=2, hours=1), 110, 10, 0, {".cs": 110})

        history = repositories.get_line_history(rid, days=30, now=now)

        assert len(history) == 1
        assert history[0]["total_lines"] == 110
        assert history[0]["lines_added"] == 60
        assert history[0]["commit_count"] == 2

    def test_all_line_history(self, repositories, repository):
        rid = repository["repository_id"]
        now = datetime(2024, 3, 31, 12, 0)
        repositories.add_snapshot(rid, "a", now - timedelta(days=1), 10, 10, 0, {".cs": 10})

        history = repositories.get_all_line_history(repository["user_id"], days=7, now=now)

        assert len(history) == 1
        assert history[0]["name"] == "widgets"
        assert history[0]["daily"][0]["total_lines"] == 10

    def test_extension_breakdown_uses_latest_snapshot(self, repositories, repository):
        rid = repository["repository_id"]
        repositories.add_snapshot(rid, "a", datetime(2024, 1, 1), 10, 10, 0, {".cs": 10})
        repositories.add_snapshot(rid, "b", datetime(2024, 1, 2), 40, 30, 0, {".cs": 30, ".ts": 10})

        breakdown = repositories.get_extension_breakdown(rid)

        assert breakdown == [
            {"extension": ".cs", "line_count": 30, "percentage": 75.0},
            {"extension": ".ts", "line_count": 10, "percentage": 25.0},
        ]

    def test_extension_breakdown_empty(self, repositories, repository):
        assert repositories.get_extension_breakdown(repository["repository_id"]) == []


class TestTopFiles:

    def test_replace_and_limit(self, repositories, repository):
        rid = repository["repository_id"]
        repositories.replace_top_files(rid, [RankedFile("old.cs", 1)])
        repositories.replace_top_files(rid, [
            RankedFile("big.cs", 30), RankedFile("mid.ts", 20), RankedFile("small.cs", 10),
        ])

        assert repositories.get_top_files(rid, 2) == [
            {"rank": 1, "file_path": "big.cs", "line_count": 30},
            {"rank": 2, "file_path": "mid.ts", "line_count": 20},
        ]

    def test_empty_before_analysis(self, repositories, repository):
        assert repositories.get_top_files(repository["repository_id"], 5) == []


class TestPreferences:

    def test_defaults_when_unset(self, repositories):
        assert repositories.get_file_extensions(USER, [".cs"]) == [".cs"]

    def test_set_normalizes(self, repositories):
        stored = repositories.set_file_extensions(USER, ["TS", ".cs", " ", ".cs"])
        assert stored == [".cs", ".ts"]
        assert repositories.get_file_extensions(USER, [".razor"]) == [".cs", ".ts"]

    def test_overwrite(self, repositories):
        repositories.set_file_extensions(USER, [".cs"])
        repositories.set_file_extensions(USER, [".ts"])
        assert repositories.get_file_extensions(USER, []) == [".ts"]
