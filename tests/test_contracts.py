import uuid

import pytest

from goalforge_voice.errors import ToolArgumentError, UnknownFunctionError
from goalforge_voice.models import Priority, Status
from goalforge_voice.tools.contracts import (
    ADD_TASK,
    COMPLETE_SUBTASK,
    EDIT_TASK,
    AddTaskCall,
    CompleteSubtaskCall,
    EditTaskCall,
    function_declarations,
    parse_function_call,
)


def test_declarations_cover_the_three_functions():
    declarations = {d["name"]: d for d in function_declarations()}

    assert set(declarations) == {ADD_TASK, EDIT_TASK, COMPLETE_SUBTASK}
    assert declarations[EDIT_TASK]["parameters"]["required"] == ["taskId"]
    assert declarations[COMPLETE_SUBTASK]["parameters"]["required"] == ["taskId", "subtaskId"]
    task_schema = declarations[ADD_TASK]["parameters"]["properties"]["task"]
    assert task_schema["properties"]["priority"]["enum"] == ["High", "Medium", "Low"]


def test_add_task_fills_defaults():
    call = parse_function_call("c1", ADD_TASK, {"task": {"subtasks": [{}]}})

    assert isinstance(call, AddTaskCall)
    task = call.task
    uuid.UUID(task.id)
    assert task.title == "Untitled Task"
    assert task.description == ""
    assert task.priority is Priority.MEDIUM
    assert task.time_estimate == "N/A"
    assert task.status is Status.TODO
    assert len(task.subtasks) == 1
    assert task.subtasks[0].text == "Unnamed subtask"
    assert task.subtasks[0].completed is False
    uuid.UUID(task.subtasks[0].id)


def test_add_task_keeps_provided_values():
    args = {
        "task": {
            "id": "t-9",
            "title": "Write tests",
            "description": "Cover the dispatcher",
            "priority": "High",
            "timeEstimate": "1 hour",
            "status": "In Progress",
            "subtasks": [{"id": "s-1", "text": "Fixtures", "completed": True}],
        }
    }

    task = parse_function_call("c1", ADD_TASK, args).task

    assert task.id == "t-9"
    assert task.priority is Priority.HIGH
    assert task.status is Status.IN_PROGRESS
    assert task.subtasks[0].completed is True


def test_add_task_rejects_bad_enum():
    with pytest.raises(ToolArgumentError) as info:
        parse_function_call("c1", ADD_TASK, {"task": {"title": "x", "priority": "Urgent"}})

    assert "priority" in str(info.value)


def test_add_task_requires_task_object():
    with pytest.raises(ToolArgumentError):
        parse_function_call("c1", ADD_TASK, {})


def test_edit_task_only_carries_provided_fields():
    call = parse_function_call("c2", EDIT_TASK, {"taskId": "t-1", "status": "Done", "timeEstimate": "3h"})

    assert isinstance(call, EditTaskCall)
    assert call.task_id == "t-1"
    assert call.updates == {"status": Status.DONE, "time_estimate": "3h"}


def test_edit_task_rejects_wrong_types():
    with pytest.raises(ToolArgumentError):
        parse_function_call("c2", EDIT_TASK, {"taskId": 42})
    with pytest.raises(ToolArgumentError):
        parse_function_call("c2", EDIT_TASK, {"title": "missing id"})


def test_complete_subtask_requires_both_ids():
    call = parse_function_call("c3", COMPLETE_SUBTASK, {"taskId": "t-1", "subtaskId": "s-2"})

    assert isinstance(call, CompleteSubtaskCall)
    assert (call.task_id, call.subtask_id) == ("t-1", "s-2")
    with pytest.raises(ToolArgumentError):
        parse_function_call("c3", COMPLETE_SUBTASK, {"taskId": "t-1"})


def test_non_object_arguments_are_rejected():
    with pytest.raises(ToolArgumentError):
        parse_function_call("c4", EDIT_TASK, ["t-1"])


def test_unknown_name_raises_unknown_function_error():
    with pytest.raises(UnknownFunctionError, match="Unknown function call: delete_everything"):
        parse_function_call("c5", "delete_everything", {"x": 1})
