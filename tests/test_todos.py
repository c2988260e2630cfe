"""Tests for the todo model and the todo store operations."""

from datetime import datetime, timezone

import pytest

from todo_service.exceptions import TaskNotFoundError, TaskValidationError
from todo_service.models.task import Priority, SortField, Task
from todo_service.schemas import TaskUpdate
from todo_service.services.persistence import MemorySlot
from todo_service.services.todo_store import TodoStore, default_tasks


def _ids(store):
    return [task.id for task in store.tasks]


def _texts(store):
    return [task.text for task in store.tasks]


class TestTaskModel:
    """Test Task domain model."""

    def test_task_creation(self):
        """Test task creation with default values."""
        task = Task(text="Test Todo", description="Test description")

        assert task.text == "Test Todo"
        assert task.description == "Test description"
        assert task.completed is False
        assert task.priority == "medium"
        assert task.category == "general"
        assert task.due_date is None
        assert task.id
        assert task.created_at == task.updated_at

    def test_task_ids_are_unique(self):
        assert Task(text="a").id != Task(text="b").id

    def test_task_requires_text(self):
        with pytest.raises(ValueError):
            Task(text="")

    def test_task_from_camel_case(self):
        task = Task.model_validate({
            "id": "t1",
            "text": "Camel",
            "dueDate": "2024-03-01",
            "createdAt": "2024-01-01T00:00:00Z",
            "updatedAt": "2024-01-02T00:00:00Z",
        })

        assert task.due_date == datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert task.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert task.updated_at == datetime(2024, 1, 2, tzinfo=timezone.utc)

    def test_updated_at_never_before_created_at(self):
        task = Task.model_validate({
            "text": "Out of order",
            "createdAt": "2024-01-02T00:00:00Z",
            "updatedAt": "2024-01-01T00:00:00Z",
        })

        assert task.updated_at == task.created_at

    def test_update_timestamp(self):
        task = Task(text="Test", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        later = datetime(2024, 1, 5, tzinfo=timezone.utc)

        task.update_timestamp(later)

        assert task.updated_at == later

    def test_update_timestamp_clamps_to_created_at(self):
        created = datetime(2024, 1, 5, tzinfo=timezone.utc)
        task = Task(text="Test", created_at=created)

        task.update_timestamp(datetime(2024, 1, 1, tzinfo=timezone.utc))

        assert task.updated_at == created

    def test_is_overdue(self):
        now = datetime(2024, 1, 10, tzinfo=timezone.utc)
        past = datetime(2024, 1, 1, tzinfo=timezone.utc)

        assert Task(text="late", due_date=past).is_overdue(now) is True
        assert Task(text="done", due_date=past, completed=True).is_overdue(now) is False
        assert Task(text="undated").is_overdue(now) is False

    def test_task_serialization(self):
        """Test task serialization to a camelCase dict."""
        task = Task(text="Test", due_date="2024-02-01T10:00:00Z")
        task_dict = task.to_dict()

        assert task_dict["text"] == "Test"
        assert task_dict["dueDate"].startswith("2024-02-01T10:00:00")
        assert "createdAt" in task_dict
        assert "updatedAt" in task_dict
        assert "created_at" not in task_dict

    def test_models_use_config_dict(self):
        from todo_service.config import Settings
        from todo_service.schemas import TaskCreate

        for model in (Task, TaskCreate, Settings):
            assert "Config" not in vars(model)
        assert Task.model_config["populate_by_name"] is True

    def test_priority_enum(self):
        assert Priority.LOW == "low"
        assert Priority.URGENT == "urgent"


class TestStoreLoad:
    """Test loading and seeding the collection."""

    def test_empty_slot_seeds_examples(self, seeded_store):
        assert _texts(seeded_store) == [
            "Welcome to your glassmorphism todo app",
            "Try dragging todos to reorder them",
        ]
        assert seeded_store.tasks[1].category == "tips"
        assert seeded_store.load_error is None

    def test_seeding_can_be_disabled(self, todo_store):
        assert todo_store.tasks == []

    def test_default_tasks_share_timestamps(self, clock):
        tasks = default_tasks(clock())

        assert all(task.created_at == clock() for task in tasks)
        assert tasks[0].priority == "medium"
        assert tasks[1].priority == "low"

    def test_store_defaults_to_memory_slot(self, test_settings):
        store = TodoStore(test_settings)

        assert len(store) == 0


class TestCreateTask:
    """Test todo creation."""

    def test_create_task_success(self, todo_store, clock):
        task = todo_store.create_task(
            "Write tests", description="All of them", priority="high", category="work"
        )

        assert task.text == "Write tests"
        assert task.description == "All of them"
        assert task.priority == "high"
        assert task.category == "work"
        assert task.completed is False
        assert task.created_at == clock()
        assert task.updated_at == clock()
        assert todo_store.get_task(task.id) == task

    def test_create_applies_defaults(self, todo_store):
        task = todo_store.create_task("Defaults")

        assert task.priority == "medium"
        assert task.category == "general"
        assert task.description == ""
        assert task.due_date is None

    def test_create_inserts_at_front(self, todo_store):
        first = todo_store.create_task("first")
        second = todo_store.create_task("second")

        assert _ids(todo_store) == [second.id, first.id]

    @pytest.mark.parametrize("text", ["a", "x" * 200, "  padded  ", "  " + "y" * 200 + "  "])
    def test_create_trims_valid_text(self, todo_store, text):
        task = todo_store.create_task(text)

        assert task.text == text.strip()

    @pytest.mark.parametrize("text", ["", "   ", "x" * 201])
    def test_create_rejects_invalid_text(self, todo_store, text):
        todo_store.create_task("existing")
        before = todo_store.tasks

        with pytest.raises(TaskValidationError):
            todo_store.create_task(text)

        assert todo_store.tasks == before

    def test_create_rejects_non_string_text(self, todo_store):
        with pytest.raises(TaskValidationError):
            todo_store.create_task_from_schema({"text": 42})

    def test_create_accepts_title_alias(self, todo_store):
        task = todo_store.create_task_from_schema({"title": "From title"})

        assert task.text == "From title"

    def test_create_rejects_unknown_priority(self, todo_store):
        with pytest.raises(TaskValidationError) as exc_info:
            todo_store.create_task("Test", priority="urgent")

        assert exc_info.value.errors == ["Priority must be one of: low, medium, high"]

    def test_configured_priorities(self, test_settings, clock):
        settings = test_settings.model_copy(update={"priorities": ["low", "medium", "high", "urgent"]})
        store = TodoStore(settings, MemorySlot(), clock=clock)

        assert store.create_task("Now", priority="urgent").priority == "urgent"

    def test_create_rejects_long_description(self, todo_store):
        with pytest.raises(TaskValidationError) as exc_info:
            todo_store.create_task("Test", description="d" * 1001)

        assert exc_info.value.errors == ["Description must be at most 1000 characters"]

    def test_create_rejects_long_category(self, todo_store):
        with pytest.raises(TaskValidationError) as exc_info:
            todo_store.create_task("Test", category="c" * 51)

        assert exc_info.value.errors == ["Category must be at most 50 characters"]

    def test_create_with_closed_category_list(self, test_settings, clock):
        settings = test_settings.model_copy(update={"categories": ["general", "work"]})
        store = TodoStore(settings, MemorySlot(), clock=clock)

        assert store.create_task("Ok", category="work").category == "work"
        with pytest.raises(TaskValidationError) as exc_info:
            store.create_task("Nope", category="hobby")
        assert exc_info.value.errors == ["Category must be one of: general, work"]

    def test_create_blank_category_uses_default(self, todo_store):
        assert todo_store.create_task("Test", category="  ").category == "general"

    def test_create_collects_every_error(self, todo_store):
        with pytest.raises(TaskValidationError) as exc_info:
            todo_store.create_task("x" * 201, priority="bogus")

        assert len(exc_info.value.errors) == 2

    @pytest.mark.parametrize("due_date,expected", [
        ("2024-02-01", datetime(2024, 2, 1, tzinfo=timezone.utc)),
        ("2024-02-01T09:30:00Z", datetime(2024, 2, 1, 9, 30, tzinfo=timezone.utc)),
        ("2024-02-01T09:30:00", datetime(2024, 2, 1, 9, 30, tzinfo=timezone.utc)),
    ])
    def test_create_parses_due_date(self, todo_store, due_date, expected):
        assert todo_store.create_task("Due", due_date=due_date).due_date == expected

    def test_create_rejects_invalid_due_date(self, todo_store):
        with pytest.raises(TaskValidationError) as exc_info:
            todo_store.create_task("Due", due_date="not a date")

        assert exc_info.value.errors == ["Due date must be a valid date"]


class TestReadTasks:
    """Test reading, listing and searching."""

    def test_get_task_not_found(self, todo_store):
        with pytest.raises(TaskNotFoundError):
            todo_store.get_task("missing")

    def test_list_tasks_without_query(self, abc_store):
        page = abc_store.list_tasks()

        assert [task.text for task in page.items] == ["a", "b", "c"]
        assert page.total == 3
        assert page.page is None

    def test_list_tasks_from_dict(self, abc_store):
        abc_store.toggle_task(abc_store.tasks[1].id)

        page = abc_store.list_tasks({"filter": "active", "sortBy": "alphabetical", "sortOrder": "asc"})

        assert [task.text for task in page.items] == ["a", "c"]
        assert page.total == 2

    def test_list_tasks_rejects_unconfigured_priority_filter(self, abc_store):
        with pytest.raises(TaskValidationError) as exc_info:
            abc_store.list_tasks({"priority": "urgent"})

        assert exc_info.value.message == "Query validation failed"

    def test_list_tasks_rejects_bad_limit(self, abc_store):
        with pytest.raises(TaskValidationError):
            abc_store.list_tasks({"limit": 101})

    def test_list_tasks_does_not_mutate(self, abc_store):
        before = abc_store.tasks

        abc_store.list_tasks({"sort_by": SortField.TITLE, "sort_order": "asc"})

        assert abc_store.tasks == before

    def test_search_drag_on_seeded_tasks(self, seeded_store):
        results = seeded_store.search_tasks("drag")

        assert [task.text for task in results] == ["Try dragging todos to reorder them"]

    def test_search_blank_returns_nothing(self, seeded_store):
        assert seeded_store.search_tasks("   ") == []

    def test_search_limit(self, seeded_store):
        assert len(seeded_store.search_tasks("o", limit=1)) == 1


class TestUpdateTask:
    """Test partial updates and single-field conveniences."""

    def test_update_task_success(self, todo_store, clock):
        task = todo_store.create_task("Original")
        clock.advance(minutes=5)

        updated = todo_store.update_task(task.id, {"text": " Changed ", "completed": True})

        assert updated.text == "Changed"
        assert updated.completed is True
        assert updated.created_at == task.created_at
        assert updated.updated_at == clock()
        assert todo_store.get_task(task.id) == updated

    def test_update_with_schema(self, todo_store):
        task = todo_store.create_task("Original", priority="low")

        updated = todo_store.update_task(task.id, TaskUpdate(priority="high"))

        assert updated.priority == "high"
        assert updated.text == "Original"

    def test_update_clears_due_date(self, todo_store):
        task = todo_store.create_task("Due", due_date="2024-02-01")

        updated = todo_store.update_task(task.id, {"dueDate": None})

        assert updated.due_date is None

    def test_update_requires_a_field(self, todo_store):
        task = todo_store.create_task("Test")

        with pytest.raises(TaskValidationError) as exc_info:
            todo_store.update_task(task.id, {})

        assert exc_info.value.errors == ["At least one field must be provided for update"]

    def test_update_rejects_invalid_field(self, todo_store):
        task = todo_store.create_task("Test")

        with pytest.raises(TaskValidationError):
            todo_store.update_task(task.id, {"text": ""})

        assert todo_store.get_task(task.id).text == "Test"

    def test_update_rejects_non_boolean_completed(self, todo_store):
        task = todo_store.create_task("Test")

        with pytest.raises(TaskValidationError):
            todo_store.update_task(task.id, {"completed": "yes"})

    def test_update_not_found(self, todo_store):
        with pytest.raises(TaskNotFoundError):
            todo_store.update_task("missing", {"text": "x"})

    def test_edit_task(self, todo_store):
        task = todo_store.create_task("Old text")

        assert todo_store.edit_task(task.id, "New text").text == "New text"

    def test_set_priority(self, todo_store):
        task = todo_store.create_task("Test")

        assert todo_store.set_priority(task.id, "low").priority == "low"
        with pytest.raises(TaskValidationError):
            todo_store.set_priority(task.id, "critical")


class TestToggle:
    """Test completion toggles."""

    def test_toggle_is_involutive(self, todo_store, clock):
        task = todo_store.create_task("Toggle me")

        clock.advance(seconds=1)
        once = todo_store.toggle_task(task.id)
        clock.advance(seconds=1)
        twice = todo_store.toggle_task(task.id)

        assert once.completed is True
        assert twice.completed is False
        assert once.updated_at < twice.updated_at

    def test_toggle_not_found(self, todo_store):
        with pytest.raises(TaskNotFoundError):
            todo_store.toggle_task("missing")

    def test_toggle_all_completes_when_any_active(self, abc_store):
        abc_store.toggle_task(abc_store.tasks[0].id)

        tasks = abc_store.toggle_all()

        assert all(task.completed for task in tasks)

    def test_toggle_all_reopens_when_all_completed(self, abc_store):
        abc_store.toggle_all()

        tasks = abc_store.toggle_all()

        assert not any(task.completed for task in tasks)

    def test_toggle_all_empty(self, todo_store):
        assert todo_store.toggle_all() == []


class TestDelete:
    """Test deleting todos."""

    def test_delete_then_not_found(self, abc_store):
        task_id = abc_store.tasks[1].id

        removed = abc_store.delete_task(task_id)

        assert removed.id == task_id
        assert task_id not in _ids(abc_store)
        assert task_id not in [task.id for task in abc_store.list_tasks().items]
        with pytest.raises(TaskNotFoundError):
            abc_store.get_task(task_id)
        with pytest.raises(TaskNotFoundError):
            abc_store.delete_task(task_id)

    def test_clear_completed(self, todo_store):
        todo_store.replace_all([
            {"id": "1", "text": "done", "completed": True},
            {"id": "2", "text": "open", "completed": False},
        ])

        removed = todo_store.clear_completed()

        assert [task.id for task in removed] == ["1"]
        assert _ids(todo_store) == ["2"]

    def test_clear_completed_nothing_to_clear(self, abc_store):
        assert abc_store.clear_completed() == []
        assert len(abc_store) == 3

    def test_clear_all(self, abc_store):
        assert abc_store.clear_all_tasks() == 3
        assert abc_store.tasks == []


class TestReorder:
    """Test reordering by id list and by index."""

    def test_reorder_full_list(self, abc_store):
        a, b, c = _ids(abc_store)

        abc_store.reorder_tasks([c, a, b])

        assert _ids(abc_store) == [c, a, b]

    def test_reorder_partial_list_appends_omitted(self, abc_store):
        a, b, c = _ids(abc_store)

        abc_store.reorder_tasks([c, a])

        assert _ids(abc_store) == [c, a, b]

    def test_reorder_touches_only_moved_todos(self, abc_store, clock):
        a, b, c = abc_store.tasks
        clock.advance(hours=1)

        abc_store.reorder_tasks([b.id, a.id])

        reordered = {task.id: task for task in abc_store.tasks}
        assert reordered[a.id].updated_at == clock()
        assert reordered[b.id].updated_at == clock()
        assert reordered[c.id].updated_at == c.updated_at

    def test_reorder_rejects_unknown_ids(self, abc_store):
        before = _ids(abc_store)

        with pytest.raises(TaskValidationError) as exc_info:
            abc_store.reorder_tasks(["nope", before[0]])

        assert exc_info.value.errors == ["Invalid todo IDs: nope"]
        assert _ids(abc_store) == before

    def test_reorder_rejects_duplicates(self, abc_store):
        a = _ids(abc_store)[0]

        with pytest.raises(TaskValidationError) as exc_info:
            abc_store.reorder_tasks([a, a])

        assert exc_info.value.errors == [f"Duplicate todo IDs: {a}"]

    def test_move_task(self, abc_store):
        a, b, c = _ids(abc_store)

        abc_store.move_task(0, 2)

        assert _ids(abc_store) == [b, c, a]

    def test_move_task_out_of_range(self, abc_store):
        with pytest.raises(TaskValidationError) as exc_info:
            abc_store.move_task(0, 3)

        assert exc_info.value.errors == ["End index 3 is out of range (0-2)"]

    def test_timestamps_ordered_after_every_operation(self, abc_store, clock):
        a, b, c = _ids(abc_store)
        clock.advance(minutes=1)
        abc_store.toggle_task(a)
        abc_store.update_task(b, {"text": "bee"})
        abc_store.reorder_tasks([c, b, a])
        abc_store.move_task(2, 0)
        abc_store.toggle_all()

        assert all(task.created_at <= task.updated_at for task in abc_store.tasks)


class TestReplaceAll:
    """Test replacing the whole collection."""

    def test_replace_all(self, abc_store):
        tasks = abc_store.replace_all([{"id": "x", "text": "only"}])

        assert [task.id for task in tasks] == ["x"]
        assert _ids(abc_store) == ["x"]

    def test_replace_all_applies_field_limits(self, abc_store):
        before = abc_store.tasks

        with pytest.raises(TaskValidationError) as exc_info:
            abc_store.apply({"type": "set_tasks", "todos": [
                {"id": "x", "text": "x" * 500, "priority": "bogus", "category": "c" * 300},
                {"id": "y", "text": "   "},
            ]})

        assert exc_info.value.errors == [
            "Todo 0: Text must be at most 200 characters",
            "Todo 0: Priority must be one of: low, medium, high",
            "Todo 0: Category must be at most 50 characters",
            "Todo 1: Text cannot be empty",
        ]
        assert abc_store.tasks == before

    def test_replace_all_stores_trimmed_values(self, todo_store):
        tasks = todo_store.replace_all([{"id": "x", "text": "  padded  ", "category": " work "}])

        assert tasks[0].text == "padded"
        assert todo_store.get_task("x").category == "work"

    def test_replace_all_rejects_duplicate_ids(self, abc_store):
        with pytest.raises(TaskValidationError):
            abc_store.replace_all([{"id": "x", "text": "one"}, {"id": "x", "text": "two"}])

        assert len(abc_store) == 3
