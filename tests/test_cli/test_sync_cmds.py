"""Tests for the `campussync sync` commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from campussync.remote.store import FileRemoteStore


@pytest.fixture()
def shared_remote(project_root: Path) -> FileRemoteStore:
    """The file remote store the CLI talks to by default."""
    return FileRemoteStore(project_root / ".campussync" / "remote")


def _set_config(project_root: Path, **sections) -> None:
    config_path = project_root / ".campussync" / "config.json"
    config = json.loads(config_path.read_text())
    for name, value in sections.items():
        config[name] = value
    config_path.write_text(json.dumps(config))


class TestPush:
    def test_push_sends_pending_documents(self, invoke, invoke_json, shared_remote) -> None:
        invoke("cache", "save", "u1", "attendance", "a1", '{"status": "Present"}')
        invoke("cache", "save", "u1", "attendance", "a2", '{"status": "Absent"}')

        parsed, code = invoke_json("sync", "push", "u1", "attendance")

        assert code == 0
        assert parsed["data"] == {"collection": "attendance", "pushed_count": 2, "pending_count": 0}
        remote_doc = shared_remote.get("attendance", "a1")
        assert remote_doc["status"] == "Present"
        assert "updatedAt" in remote_doc
        assert "sync_state" not in remote_doc

    def test_push_nothing_pending(self, invoke) -> None:
        result = invoke("sync", "push", "u1", "attendance")
        assert result.exit_code == 0
        assert "Pushed 0 attendance document(s); 0 still pending." in result.output

    def test_push_failure_keeps_documents_pending(
        self, invoke, invoke_json, project_root: Path
    ) -> None:
        blocker = project_root / "blocked"
        blocker.write_text("not a directory")
        _set_config(project_root, remote={"path": str(blocker)})
        invoke("cache", "save", "u1", "attendance", "a1", "{}")

        parsed, code = invoke_json("sync", "push", "u1", "attendance")
        assert code == 0
        assert parsed["data"]["pushed_count"] == 0
        assert parsed["data"]["pending_count"] == 1


class TestPull:
    def test_pull_with_filters(self, invoke, invoke_json, shared_remote) -> None:
        shared_remote.set("students", "s1", {"name": "Asha", "year": 2})
        shared_remote.set("students", "s2", {"name": "Ravi", "year": 3})
        shared_remote.set("students", "s3", {"name": "Meena", "year": 2})

        parsed, code = invoke_json(
            "sync", "pull", "u1", "students",
            "--where", "year", "==", "2",
            "--order-by", "name:desc",
            "--limit", "1",
        )
        assert code == 0
        assert parsed["data"] == {"collection": "students", "pulled_count": 1}

        listed, _ = invoke_json("cache", "list", "u1", "students")
        assert [(d["id"], d["sync_state"]) for d in listed["data"]] == [("s3", True)]

    def test_pull_overwrites_local_edits(self, invoke, invoke_json, shared_remote) -> None:
        shared_remote.set("students", "s1", {"name": "Asha"})
        invoke("cache", "save", "u1", "students", "s1", '{"name": "Local"}')

        invoke("sync", "pull", "u1", "students")

        parsed, _ = invoke_json("cache", "get", "u1", "students", "s1")
        assert parsed["data"]["fields"] == {"name": "Asha"}
        assert parsed["data"]["sync_state"] is True

    def test_keep_pending_policy(self, invoke, invoke_json, project_root, shared_remote) -> None:
        _set_config(
            project_root,
            sync={"pull_policy": "keep_pending", "timeout_seconds": None, "collections": ["users"]},
        )
        shared_remote.set("students", "s1", {"name": "Asha"})
        invoke("cache", "save", "u1", "students", "s1", '{"name": "Local"}')

        invoke("sync", "pull", "u1", "students")

        parsed, _ = invoke_json("cache", "get", "u1", "students", "s1")
        assert parsed["data"]["fields"] == {"name": "Local"}

    def test_bad_operator(self, invoke_json) -> None:
        parsed, code = invoke_json("sync", "pull", "u1", "students", "--where", "year", "~", "2")
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_ARGUMENT"

    def test_bad_direction(self, invoke_json) -> None:
        parsed, code = invoke_json("sync", "pull", "u1", "students", "--order-by", "name:up")
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_ARGUMENT"


class TestRun:
    def test_run_by_role(self, invoke, shared_remote) -> None:
        shared_remote.set("users", "u1", {"role": "Student"})
        shared_remote.set("students", "s1", {"name": "Asha"})
        invoke("cache", "save", "u1", "users", "u1", '{"phone": "98450"}', "--merge")

        result = invoke("sync", "run", "u1", "--role", "Student")

        assert result.exit_code == 0, result.output
        assert "  users: pushed 1, pulled 1" in result.output
        assert "  students: pushed 0, pulled 1" in result.output
        assert "Pushed 1, pulled 2." in result.output
        assert shared_remote.get("users", "u1")["role"] == "Student"
        assert shared_remote.get("users", "u1")["phone"] == "98450"

    def test_run_explicit_collections_json(self, invoke, invoke_json) -> None:
        invoke("cache", "save", "u1", "notices", "n1", "{}")

        parsed, code = invoke_json("sync", "run", "u1", "--collection", "notices")

        assert code == 0
        assert parsed["data"]["pushed_count"] == 1
        assert list(parsed["data"]["collections"]) == ["notices"]
        assert parsed["data"]["cancelled"] is False
        assert parsed["data"]["skipped"] is False

    def test_unknown_role_uses_default_collections(self, invoke_json) -> None:
        parsed, code = invoke_json("sync", "run", "u1", "--role", "Alumni")
        assert code == 0
        assert list(parsed["data"]["collections"]) == ["users"]

    def test_offline_run_is_skipped(self, invoke_json, project_root: Path) -> None:
        # Port 1 on localhost refuses connections.
        _set_config(
            project_root,
            connectivity={"host": "127.0.0.1", "port": 1, "timeout_seconds": 0.5},
        )
        parsed, code = invoke_json("sync", "run", "u1")
        assert code == 1
        assert parsed["error"]["code"] == "OFFLINE"


class TestStatus:
    def test_status_counts(self, invoke, invoke_json) -> None:
        invoke("cache", "save", "u1", "students", "s1", "{}")
        invoke("cache", "save", "u1", "students", "s2", "{}", "--synced")
        invoke("cache", "save", "u1", "staff", "t1", "{}", "--synced")
        invoke("cache", "save", "u2", "parents", "p1", "{}")

        parsed, code = invoke_json("sync", "status", "u1")
        assert code == 0
        assert parsed["data"] == {
            "user_id": "u1",
            "collections": [
                {"collection": "staff", "documents": 1, "pending": 0},
                {"collection": "students", "documents": 2, "pending": 1},
            ],
        }

    def test_status_empty(self, invoke) -> None:
        result = invoke("sync", "status", "u1")
        assert "Nothing cached for u1." in result.output
