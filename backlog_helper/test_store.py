"""Tests for store.py: workbook lifecycle, record operations, failure handling."""

import logging
import uuid

import pytest
from openpyxl import Workbook, load_workbook

from backlog_helper import store as store_module
from backlog_helper.codec import CODECS
from backlog_helper.enums import GoalStatus, PlanType, Priority, TaskStatus
from backlog_helper.records import Goal, Plan, RecordKind, Task
from backlog_helper.store import SpreadsheetStore, StoreError

SHEETS = ["BacklogTasks", "FutureGoals", "PlanningItems", "Obstacles"]


# ── Fixtures ──

@pytest.fixture
def task():
    return Task(task_title="Implement feature X", priority=Priority.HIGH)


def _append_raw(path, sheet, row):
    """Append a row to a sheet behind the store's back."""
    wb = load_workbook(path)
    wb[sheet].append(row)
    wb.save(path)


# ── Document lifecycle ──

class TestLoad:
    def test_new_file_created_with_all_sheets(self, store, data_path):
        assert not data_path.exists()
        store.load()
        assert data_path.exists()

        wb = load_workbook(data_path)
        assert wb.sheetnames == SHEETS
        for kind, codec in CODECS.items():
            ws = wb[codec.sheet_name]
            assert [c.value for c in ws[1]] == list(codec.headers)

    def test_fresh_store_lists_nothing(self, store, data_path):
        for kind in RecordKind:
            assert store.list_all(kind) == []
        wb = load_workbook(data_path)
        assert wb["BacklogTasks"].max_row == 1

    def test_nested_directories_created(self, tmp_path):
        path = tmp_path / "a" / "b" / "data.xlsx"
        SpreadsheetStore(path).load()
        assert path.exists()

    def test_corrupt_file_raises(self, data_path):
        data_path.write_bytes(b"this is not a workbook")
        store = SpreadsheetStore(data_path)
        with pytest.raises(StoreError) as exc:
            store.load()
        assert exc.value.path == data_path
        assert not store.is_loaded

    def test_missing_sheet_healed(self, data_path):
        wb = Workbook()
        wb.active.title = "BacklogTasks"
        wb.active.append(list(CODECS[RecordKind.TASK].headers))
        wb.save(data_path)

        store = SpreadsheetStore(data_path)
        assert store.load().sheetnames[0] == "BacklogTasks"
        assert set(SHEETS) <= set(store.load().sheetnames)

        # Healed sheets reach the file with the next mutation.
        store.add(Goal(goal_title="G", target_completion_date="2025-01-01", priority=Priority.LOW))
        assert set(SHEETS) <= set(load_workbook(data_path).sheetnames)

    def test_empty_sheet_gets_headers(self, data_path):
        wb = Workbook()
        wb.active.title = "Obstacles"
        wb.save(data_path)

        store = SpreadsheetStore(data_path)
        ws = store.load()["Obstacles"]
        assert [c.value for c in ws[1]] == list(CODECS[RecordKind.OBSTACLE].headers)
        assert store.list_all(RecordKind.OBSTACLE) == []


class TestCache:
    def test_load_is_cached(self, store):
        assert store.load() is store.load()
        assert store.is_loaded

    def test_cache_kept_after_save(self, store, task):
        wb = store.load()
        store.add(task)
        assert store.load() is wb

    def test_invalidate_and_reload(self, store):
        first = store.load()
        store.invalidate()
        assert not store.is_loaded
        assert store.reload() is not first
        assert store.is_loaded

    def test_cache_hides_outside_changes_until_invalidated(self, store, data_path, task):
        store.add(task)
        _append_raw(data_path, "BacklogTasks", ["outside-1", "Outside", None, "low"])
        assert len(store.list_all(RecordKind.TASK)) == 1
        store.invalidate()
        assert len(store.list_all(RecordKind.TASK)) == 2

    def test_stale_store_overwrites_other_changes(self, data_path):
        a = SpreadsheetStore(data_path)
        b = SpreadsheetStore(data_path)
        a.load()
        b.load()
        a.add(Task(task_title="From A", priority=Priority.LOW))
        b.add(Task(task_title="From B", priority=Priority.LOW))

        titles = [t.task_title for t in SpreadsheetStore(data_path).list_all(RecordKind.TASK)]
        assert titles == ["From B"]


# ── Records ──

class TestAdd:
    def test_add_scenario(self, store, task):
        new_id = store.add(task)
        assert uuid.UUID(new_id).version == 4

        tasks = store.list_all(RecordKind.TASK)
        assert len(tasks) == 1
        assert tasks[0].task_title == "Implement feature X"
        assert tasks[0].priority is Priority.HIGH

    def test_add_replaces_caller_id(self, store, task):
        task.id = "caller-chosen"
        new_id = store.add(task)
        assert new_id != "caller-chosen"
        assert task.id == new_id

    def test_add_stamps_equal_timestamps(self, store, task):
        store.add(task)
        assert task.created_at == task.updated_at
        stored = store.get_by_id(RecordKind.TASK, task.id)
        assert stored.created_at == stored.updated_at == task.created_at

    def test_add_persists(self, store, data_path, task):
        new_id = store.add(task)
        fresh = SpreadsheetStore(data_path)
        assert fresh.get_by_id(RecordKind.TASK, new_id) == task

    def test_rows_kept_in_order(self, store):
        for title in ("one", "two", "three"):
            store.add(Task(task_title=title, priority=Priority.MEDIUM))
        titles = [t.task_title for t in store.list_all(RecordKind.TASK)]
        assert titles == ["one", "two", "three"]

    def test_formula_text_stored_verbatim(self, store, data_path):
        store.add(Task(task_title="=SUM(A1:A2)", priority=Priority.LOW))
        tasks = SpreadsheetStore(data_path).list_all(RecordKind.TASK)
        assert tasks[0].task_title == "=SUM(A1:A2)"

    def test_illegal_character_rejected(self, store, data_path):
        store.load()
        before = data_path.read_bytes()
        with pytest.raises(StoreError):
            store.add(Task(task_title="bad\x00title", priority=Priority.LOW))
        assert data_path.read_bytes() == before
        assert not store.is_loaded
        assert store.list_all(RecordKind.TASK) == []

    def test_kinds_kept_on_their_own_sheets(self, store, data_path):
        store.add(Plan(plan_title="Roadmap", plan_type=PlanType.STRATEGIC, status="On Track"))
        assert store.list_all(RecordKind.TASK) == []
        assert [p.plan_title for p in store.list_all(RecordKind.PLAN)] == ["Roadmap"]
        assert load_workbook(data_path)["PlanningItems"].max_row == 2


class TestListAll:
    def test_blank_id_rows_skipped(self, store, data_path, task):
        store.add(task)
        _append_raw(data_path, "BacklogTasks", [None, "Orphan", "no id here", "high"])
        _append_raw(data_path, "BacklogTasks", ["", "Also orphan", None, "low"])

        tasks = SpreadsheetStore(data_path).list_all(RecordKind.TASK)
        assert [t.task_title for t in tasks] == ["Implement feature X"]

    def test_invalid_row_skipped_and_logged(self, store, data_path, task, caplog):
        store.add(task)
        _append_raw(data_path, "BacklogTasks", ["bad-1", "Bad priority", None, "urgent"])

        fresh = SpreadsheetStore(data_path)
        with caplog.at_level(logging.WARNING, logger="backlog.store"):
            tasks = fresh.list_all(RecordKind.TASK)
        assert [t.id for t in tasks] == [task.id]
        assert "Skipping row" in caplog.text
        assert "Priority" in caplog.text

    def test_missing_sheet_recreated(self, store, data_path):
        wb = store.load()
        wb.remove(wb["FutureGoals"])
        assert store.list_all(RecordKind.GOAL) == []
        assert "FutureGoals" in load_workbook(data_path).sheetnames


class TestGetById:
    def test_found(self, store, task):
        new_id = store.add(task)
        assert store.get_by_id(RecordKind.TASK, new_id).task_title == "Implement feature X"

    def test_unknown_id(self, store, task):
        store.add(task)
        assert store.get_by_id(RecordKind.TASK, "no-such-id") is None

    def test_wrong_kind(self, store, task):
        new_id = store.add(task)
        assert store.get_by_id(RecordKind.GOAL, new_id) is None

    def test_unparseable_row_is_not_found(self, store, data_path, caplog):
        store.load()
        _append_raw(data_path, "BacklogTasks", ["bad-1", "Bad priority", None, "urgent"])
        store.invalidate()
        with caplog.at_level(logging.WARNING, logger="backlog.store"):
            assert store.get_by_id(RecordKind.TASK, "bad-1") is None
        assert "bad-1" in caplog.text

    def test_missing_sheet(self, store):
        wb = store.load()
        wb.remove(wb["Obstacles"])
        assert store.get_by_id(RecordKind.OBSTACLE, "anything") is None


class TestUpdate:
    def test_unknown_id_leaves_file_alone(self, store, data_path, task):
        store.add(task)
        before = data_path.read_bytes()
        ghost = Task(task_title="Ghost", priority=Priority.LOW, id="no-such-id")
        assert store.update(ghost) is False
        assert data_path.read_bytes() == before

    def test_update_persists_changes(self, store, data_path, task):
        new_id = store.add(task)
        record = store.get_by_id(RecordKind.TASK, new_id)
        record.status = TaskStatus.DONE
        record.resolution = "Shipped"
        assert store.update(record) is True

        fresh = SpreadsheetStore(data_path).get_by_id(RecordKind.TASK, new_id)
        assert fresh.status is TaskStatus.DONE
        assert fresh.resolution == "Shipped"
        assert fresh.created_at == task.created_at
        assert fresh.updated_at > fresh.created_at

    def test_update_clears_optional_field(self, store, data_path):
        goal = Goal(goal_title="Learn Rust", target_completion_date="2025-06-01",
                    priority=Priority.MEDIUM, kpis="Ship a CLI",
                    current_status=GoalStatus.PLANNING)
        new_id = store.add(goal)
        goal.kpis = None
        goal.current_status = None
        assert store.update(goal)

        fresh = SpreadsheetStore(data_path).get_by_id(RecordKind.GOAL, new_id)
        assert fresh.kpis is None
        assert fresh.current_status is None
        assert fresh.goal_title == "Learn Rust"

    def test_update_touches_only_its_row(self, store):
        first = store.add(Task(task_title="first", priority=Priority.LOW))
        second = store.add(Task(task_title="second", priority=Priority.LOW))
        record = store.get_by_id(RecordKind.TASK, second)
        record.task_title = "second, edited"
        store.update(record)

        titles = {t.id: t.task_title for t in store.list_all(RecordKind.TASK)}
        assert titles == {first: "first", second: "second, edited"}

    def test_missing_sheet_fails(self, store, task):
        store.add(task)
        wb = store.load()
        wb.remove(wb["BacklogTasks"])
        assert store.update(task) is False


# ── Daily backup ──

class TestDailyBackup:
    def test_backup_taken_once_per_day(self, data_path, task):
        store = SpreadsheetStore(data_path, daily_backup=True)
        store.load()
        backups = data_path.parent / ".backups"
        assert not backups.exists()

        store.add(task)
        assert len(list(backups.iterdir())) == 1
        store.add(Task(task_title="another", priority=Priority.LOW))
        assert len(list(backups.iterdir())) == 1

    def test_backup_off(self, store, data_path, task):
        store.add(task)
        store.add(Task(task_title="another", priority=Priority.LOW))
        assert not (data_path.parent / ".backups").exists()


class TestDurableWrite:
    def test_data_synced_before_rename(self, store, data_path, task, monkeypatch):
        events = []
        real_fsync = store_module.os.fsync
        real_replace = store_module.os.replace

        def fsync(fd):
            events.append("fsync")
            real_fsync(fd)

        def replace(src, dst):
            events.append("replace")
            real_replace(src, dst)

        monkeypatch.setattr(store_module.os, "fsync", fsync)
        monkeypatch.setattr(store_module.os, "replace", replace)
        store.add(task)
        assert events[-2:] == ["fsync", "replace"]
        assert [p.name for p in data_path.parent.glob("*.tmp")] == []
