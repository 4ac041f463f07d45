import os
import shutil
from pathlib import Path

import pytest

from core import (
    BoardIOError,
    LaneNotFoundError,
    TaskNotFoundError,
    ValidationError,
    decode_filename,
    extract_tags,
    is_task_id,
)
from infrastructure.file_repository import FileTaskRepository
from infrastructure.ownership import OwnershipPolicy


@pytest.fixture
def repo(tmp_path: Path) -> FileTaskRepository:
    return FileTaskRepository(tmp_path / "tasks", ownership=OwnershipPolicy())


def _lane_files(repo: FileTaskRepository, lane: str):
    return repo.lanes.list_lane_files(lane)


class TestCreateAndGet:
    def test_create_then_get_roundtrip(self, repo):
        content = "Investigate crash #bug #urgent\n\nsteps: #bug"
        created = repo.create_task("backlog", "Fix bug", content)

        assert is_task_id(created.id)
        loaded = repo.get_task(created.id)
        assert loaded.content == content
        assert loaded.tags == extract_tags(content) == ["bug", "urgent", "bug"]
        assert loaded.lane == "backlog"
        assert loaded.title == "Fix bug"
        assert loaded.path == created.path

    def test_content_written_verbatim_title_only_in_filename(self, repo):
        task = repo.create_task("backlog", "Write docs", "body")
        path = Path(task.path)
        assert path.read_text(encoding="utf-8") == "body"
        assert path.name == f"Write-docs-{task.id}.md"
        assert path.parent == repo.tasks_dir / "backlog"

    def test_create_makes_missing_lane(self, repo):
        repo.create_task("brand new lane", "t", "")
        assert (repo.tasks_dir / "brand new lane").is_dir()

    def test_untitled_task_uses_bare_id_filename(self, repo):
        task = repo.create_task("backlog", "", "")
        assert Path(task.path).name == f"{task.id}.md"
        assert repo.get_task(task.id).title == ""

    def test_get_with_wrong_lane_hint(self, repo):
        task = repo.create_task("backlog", "t", "")
        repo.create_lane("done")
        with pytest.raises(TaskNotFoundError, match="Failed to get task content for"):
            repo.get_task(task.id, "done")
        assert repo.get_task(task.id, "backlog").id == task.id

    def test_get_missing(self, repo):
        with pytest.raises(TaskNotFoundError) as exc:
            repo.get_task("3f2b8c1e-9a4d-4c6b-8e2f-1a2b3c4d5e6f")
        assert "not found" in str(exc.value)

    def test_legacy_file_derives_title_from_heading(self, repo):
        lane = repo.tasks_dir / "backlog"
        lane.mkdir(parents=True)
        (lane / "task1.md").write_text("# Task 1\n\nTask 1 content #urgent", encoding="utf-8")

        task = repo.get_task("task1")
        assert task.title == "Task 1"
        assert task.tags == ["urgent"]
        assert task.lane == "backlog"


class TestUpdate:
    def test_update_content_in_place(self, repo):
        task = repo.create_task("backlog", "t", "old")
        updated = repo.update_task(task.id, content="new #done")
        assert updated.content == "new #done"
        assert updated.tags == ["done"]
        assert updated.path == task.path

    def test_update_moves_to_new_lane_keeping_filename(self, repo):
        task = repo.create_task("backlog", "t", "x")
        updated = repo.update_task(task.id, new_lane="done")
        assert updated.lane == "done"
        assert Path(updated.path).name == Path(task.path).name
        assert not Path(task.path).exists()
        assert repo.get_task(task.id).lane == "done"

    def test_update_content_and_lane_with_hint(self, repo):
        task = repo.create_task("backlog", "t", "x")
        updated = repo.update_task(task.id, content="y", lane="backlog", new_lane="review")
        assert (updated.lane, updated.content) == ("review", "y")

    def test_update_without_changes_confirms_existence(self, repo):
        task = repo.create_task("backlog", "t", "x")
        assert repo.update_task(task.id).to_dict() == repo.get_task(task.id).to_dict()
        with pytest.raises(TaskNotFoundError, match="Failed to update task"):
            repo.update_task("missing")

    def test_same_lane_is_not_a_move(self, repo):
        task = repo.create_task("backlog", "t", "x")
        assert repo.update_task(task.id, new_lane="backlog").path == task.path


class TestTitle:
    def test_rename_within_lane(self, repo):
        task = repo.create_task("backlog", "Old name", "keep me")
        renamed = repo.update_task_title(task.id, "New name", "backlog")
        assert renamed.id == task.id
        assert renamed.title == "New name"
        assert renamed.content == "keep me"
        assert Path(renamed.path).name == f"New-name-{task.id}.md"
        assert not Path(task.path).exists()
        assert _lane_files(repo, "backlog") == [Path(renamed.path).name]

    def test_untitled_task_gains_title(self, repo):
        task = repo.create_task("backlog", "", "")
        renamed = repo.update_task_title(task.id, "Named later", "backlog")
        assert decode_filename(Path(renamed.path).name).title == "Named later"

    def test_legacy_non_uuid_id_cannot_take_a_title(self, repo):
        lane = repo.tasks_dir / "backlog"
        lane.mkdir(parents=True)
        (lane / "task1.md").write_text("", encoding="utf-8")
        with pytest.raises(ValidationError):
            repo.update_task_title("task1", "Titled", "backlog")
        assert (lane / "task1.md").exists()


class TestMoveAndDelete:
    def test_move_changes_lane(self, repo):
        task = repo.create_task("A", "t", "content #x")
        moved = repo.move_task(task.id, "A", "B")
        assert moved.lane == "B"
        assert repo.get_task(task.id).lane == "B"
        assert _lane_files(repo, "A") == []
        assert os.listdir(repo.tasks_dir / "B") == [Path(task.path).name]
        assert moved.content == "content #x"

    def test_move_resolves_only_in_source_lane(self, repo):
        task = repo.create_task("A", "t", "")
        repo.create_lane("C")
        with pytest.raises(TaskNotFoundError, match="Failed to move task"):
            repo.move_task(task.id, "C", "B")
        assert repo.get_task(task.id).lane == "A"

    def test_failed_copy_leaves_source_and_no_staging(self, repo, monkeypatch):
        task = repo.create_task("A", "t", "payload")

        def boom(src, dst):
            Path(dst).write_text("partial", encoding="utf-8")
            raise OSError("disk full")

        monkeypatch.setattr(shutil, "copyfile", boom)
        with pytest.raises(BoardIOError, match="disk full"):
            repo.move_task(task.id, "A", "B")
        assert Path(task.path).read_text(encoding="utf-8") == "payload"
        assert os.listdir(repo.tasks_dir / "B") == []

    def test_delete_then_get_fails(self, repo):
        task = repo.create_task("backlog", "t", "")
        assert repo.delete_task(task.id) == {"success": True, "id": task.id}
        with pytest.raises(TaskNotFoundError):
            repo.get_task(task.id)
        with pytest.raises(TaskNotFoundError, match="Failed to delete task"):
            repo.delete_task(task.id)


class TestLanes:
    def test_create_lane_with_generated_name(self, repo):
        lane = repo.create_lane()
        assert is_task_id(lane.id)
        assert Path(lane.path).is_dir()
        assert lane.id in repo.list_lanes()

    def test_create_lane_is_idempotent(self, repo):
        repo.create_lane("backlog")
        task = repo.create_task("backlog", "t", "")
        assert repo.create_lane("backlog").id == "backlog"
        assert repo.get_task(task.id).lane == "backlog"

    def test_delete_lane_removes_tasks(self, repo):
        task = repo.create_task("doomed", "t", "")
        assert repo.delete_lane("doomed")["success"] is True
        assert "doomed" not in repo.list_lanes()
        with pytest.raises(TaskNotFoundError):
            repo.get_task(task.id)
        with pytest.raises(LaneNotFoundError):
            repo.delete_lane("doomed")

    def test_rename_lane_keeps_task_ids(self, repo):
        task = repo.create_task("todo", "t", "x")
        lane = repo.rename_lane("todo", "doing")
        assert lane.id == "doing"
        assert repo.get_task(task.id).lane == "doing"
        assert "todo" not in repo.list_lanes()

    def test_rename_lane_errors(self, repo):
        repo.create_lane("a")
        repo.create_lane("b")
        with pytest.raises(BoardIOError, match="already exists"):
            repo.rename_lane("a", "b")
        with pytest.raises(LaneNotFoundError):
            repo.rename_lane("missing", "c")

    def test_undecodable_file_does_not_break_listing(self, repo):
        good = repo.create_task("backlog", "fine", "ok #tag")
        (repo.tasks_dir / "backlog" / "bad.md").write_bytes(b"\xff\xfe caf\xe9")

        tasks = {t.id: t for t in repo.list_all_tasks()}
        assert tasks[good.id].content == "ok #tag"
        assert "\ufffd" in tasks["bad"].content
        assert repo.get_task("bad").content.endswith("caf\ufffd")

    def test_listing(self, repo):
        first = repo.create_task("backlog", "one", "#a")
        second = repo.create_task("done", "two", "")
        assert {t.id for t in repo.list_all_tasks()} == {first.id, second.id}
        assert [t.id for t in repo.list_lane_tasks("backlog")] == [first.id]
        assert repo.list_lane_tasks("nope") == []


def test_end_to_end_board_flow(repo):
    repo.create_lane("backlog")
    task = repo.create_task("backlog", "Fix bug", "desc")
    assert len(repo.lanes.list_lane_files("backlog")) == 1

    repo.move_task(task.id, "backlog", "done")
    assert len(repo.lanes.list_lane_files("done")) == 1
    assert len(repo.lanes.list_lane_files("backlog")) == 0


class TestReconcile:
    def test_removes_abandoned_staging_files(self, repo):
        task = repo.create_task("A", "t", "x")
        dest = repo.tasks_dir / "B"
        dest.mkdir()
        leftover = dest / f".{Path(task.path).name}.staging"
        leftover.write_text("x", encoding="utf-8")

        report = repo.reconcile()
        assert report["staging_removed"] == [f"B/{leftover.name}"]
        assert not leftover.exists()
        assert repo.get_task(task.id).lane == "A"

    def test_identical_duplicate_keeps_newest_copy(self, repo):
        task = repo.create_task("A", "t", "same")
        source = Path(task.path)
        copy = repo.tasks_dir / "B" / source.name
        copy.parent.mkdir()
        shutil.copyfile(source, copy)
        os.utime(source, ns=(1_000_000_000, 1_000_000_000))

        report = repo.reconcile()
        assert report["duplicates_removed"] == [f"A/{source.name}"]
        assert not source.exists()
        assert repo.get_task(task.id).lane == "B"

    def test_diverging_copies_are_reported_not_touched(self, repo):
        task = repo.create_task("A", "t", "one")
        other = repo.tasks_dir / "B" / Path(task.path).name
        other.parent.mkdir()
        other.write_text("two", encoding="utf-8")

        report = repo.reconcile()
        assert sorted(report["conflicts"][task.id]) == ["A", "B"]
        assert Path(task.path).exists() and other.exists()


class TestOwnership:
    def test_created_lane_and_file_are_chowned(self, tmp_path, monkeypatch):
        calls = []
        monkeypatch.setattr(os, "chown", lambda path, uid, gid: calls.append((Path(path), uid, gid)))
        repo = FileTaskRepository(tmp_path / "tasks", ownership=OwnershipPolicy(1000, 1000))

        task = repo.create_task("backlog", "t", "")
        assert (repo.tasks_dir / "backlog", 1000, 1000) in calls
        assert (Path(task.path), 1000, 1000) in calls

    def test_move_reapplies_ownership_at_destination(self, tmp_path, monkeypatch):
        calls = []
        monkeypatch.setattr(os, "chown", lambda path, uid, gid: calls.append(Path(path)))
        repo = FileTaskRepository(tmp_path / "tasks", ownership=OwnershipPolicy(uid=1234))
        task = repo.create_task("A", "t", "")
        calls.clear()

        repo.move_task(task.id, "A", "B")
        assert repo.tasks_dir / "B" in calls
        assert any(p.parent == repo.tasks_dir / "B" and p.name.endswith(".staging") for p in calls)

    def test_disabled_policy_never_chowns(self, tmp_path, monkeypatch):
        monkeypatch.setattr(os, "chown", lambda *a: pytest.fail("chown called"))
        repo = FileTaskRepository(tmp_path / "tasks", ownership=OwnershipPolicy())
        repo.create_task("backlog", "t", "")
