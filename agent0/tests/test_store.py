"""Tests for the in-memory store and the run recorder."""

import pytest

from agent0.errors import PersistenceError
from agent0.models.run import Metrics, RunData, RunError
from agent0.recorder import RunRecorder


class TestMemoryStore:
    def test_insert_assigns_id(self, store):
        row = store.insert("agents", {"name": "bot"})

        assert row["id"]
        assert store.get("agents", row["id"])["name"] == "bot"

    def test_rows_are_copies(self, store):
        store.insert("agents", {"id": "a", "tags": ["x"]})

        store.get("agents", "a")["tags"].append("y")

        assert store.get("agents", "a")["tags"] == ["x"]

    def test_duplicate_id(self, store):
        store.insert("agents", {"id": "a"})
        with pytest.raises(PersistenceError):
            store.insert("agents", {"id": "a"})

    def test_select_filters(self, store):
        store.insert("workspace_users", {"id": "1", "user_id": "u1", "workspace_id": "w1", "role": "admin"})
        store.insert("workspace_users", {"id": "2", "user_id": "u2", "workspace_id": "w1", "role": "reader"})

        rows = store.select("workspace_users", workspace_id="w1", role="reader")

        assert [row["user_id"] for row in rows] == ["u2"]

    def test_update_mutable_row(self, store):
        store.insert("agents", {"id": "a", "production_version_id": None})

        updated = store.update("agents", "a", {"production_version_id": "v1"})

        assert updated["production_version_id"] == "v1"
        assert store.update("agents", "missing", {"x": 1}) is None

    @pytest.mark.parametrize("table", ["runs", "versions"])
    def test_append_only_tables(self, store, table):
        store.insert(table, {"id": "r1"})
        with pytest.raises(PersistenceError):
            store.update(table, "r1", {"is_error": True})


class TestRunRecorder:
    """Test run row shape."""

    def test_record(self, store):
        run = RunRecorder(store).record(
            workspace_id="ws-1",
            version_id="ver-1",
            run_data=RunData(metrics=Metrics(pre_processing_time=12, first_token_time=30, response_time=90)),
            start_time=1767225600.0,
        )

        row = store.get("runs", run.id)
        assert row["created_at"].startswith("2026-01-01T00:00:00")
        assert row["is_error"] is False
        assert row["data"]["metrics"] == {"preProcessingTime": 12, "firstTokenTime": 30, "responseTime": 90}

    def test_error_run(self, store):
        run = RunRecorder(store).record(
            workspace_id="ws-1",
            version_id="ver-1",
            run_data=RunData(error=RunError(name="DecryptionError", message="bad key")),
            is_error=True,
        )

        row = store.get("runs", run.id)
        assert row["is_error"] is True
        assert row["data"]["error"] == {"name": "DecryptionError", "message": "bad key"}
        assert row["created_at"]

    def test_store_failure_becomes_persistence_error(self, store):
        class BrokenStore:
            def insert(self, table, row):
                raise OSError("read-only file system")

        with pytest.raises(PersistenceError, match="read-only"):
            RunRecorder(BrokenStore()).record(workspace_id="ws-1", version_id="ver-1", run_data=RunData())
