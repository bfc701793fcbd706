"""Function declarations offered to the model and their typed call variants."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError

from ..errors import ToolArgumentError, UnknownFunctionError
from ..models import Priority, Status, Subtask, Task, new_id


# Names are part of the wire contract with the model.
ADD_TASK = "add_task_to_plan"
EDIT_TASK = "edit_task_in_plan"
COMPLETE_SUBTASK = "complete_subtask"

PRIORITY_VALUES = [p.value for p in Priority]
STATUS_VALUES = [s.value for s in Status]


def function_declarations() -> List[Dict[str, Any]]:
    """Return the function declarations for the session setup message."""
    return [
        {
            "name": ADD_TASK,
            "description": "Adds a new task to the existing project plan.",
            "parameters": {
                "type": "OBJECT",
                "properties": {
                    "task": {
                        "type": "OBJECT",
                        "properties": {
                            "id": {
                                "type": "STRING",
                                "description": "An optional unique UUID for the task. If not provided, one will be generated.",
                            },
                            "title": {"type": "STRING"},
                            "description": {"type": "STRING"},
                            "priority": {"type": "STRING", "enum": PRIORITY_VALUES},
                            "timeEstimate": {"type": "STRING"},
                            "status": {
                                "type": "STRING",
                                "enum": STATUS_VALUES,
                                "description": 'The status of the task, defaults to "To Do".',
                            },
                            "subtasks": {
                                "type": "ARRAY",
                                "items": {
                                    "type": "OBJECT",
                                    "properties": {
                                        "id": {
                                            "type": "STRING",
                                            "description": "An optional unique UUID for the subtask. If not provided, one will be generated.",
                                        },
                                        "text": {"type": "STRING"},
                                        "completed": {"type": "BOOLEAN", "description": "Default to false."},
                                    },
                                    "required": ["text", "completed"],
                                },
                            },
                        },
                        "required": ["title", "description", "priority", "timeEstimate", "subtasks"],
                    },
                },
                "required": ["task"],
            },
        },
        {
            "name": EDIT_TASK,
            "description": "Edits an existing task in the project plan. Only provide the fields that need to be changed.",
            "parameters": {
                "type": "OBJECT",
                "properties": {
                    "taskId": {"type": "STRING", "description": "The ID of the task to edit."},
                    "title": {"type": "STRING", "description": "The new title for the task."},
                    "description": {"type": "STRING", "description": "The new description for the task."},
                    "priority": {
                        "type": "STRING",
                        "enum": PRIORITY_VALUES,
                        "description": "The new priority for the task.",
                    },
                    "timeEstimate": {"type": "STRING", "description": "The new time estimate for the task."},
                    "status": {
                        "type": "STRING",
                        "enum": STATUS_VALUES,
                        "description": "The new status for the task.",
                    },
                },
                "required": ["taskId"],
            },
        },
        {
            "name": COMPLETE_SUBTASK,
            "description": "Marks a specific subtask as complete based on its text content.",
            "parameters": {
                "type": "OBJECT",
                "properties": {
                    "taskId": {"type": "STRING", "description": "The ID of the parent task."},
                    "subtaskId": {"type": "STRING", "description": "The ID of the subtask to mark as complete."},
                },
                "required": ["taskId", "subtaskId"],
            },
        },
    ]


# Argument schemas. Types and enums are checked strictly; missing task fields fall
# back to defaults when the call is converted into a Task.

PriorityValue = Literal["High", "Medium", "Low"]
StatusValue = Literal["To Do", "In Progress", "Done"]


class _Args(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _SubtaskArgs(_Args):
    id: Optional[StrictStr] = None
    text: Optional[StrictStr] = None
    completed: Optional[StrictBool] = None


class _TaskArgs(_Args):
    id: Optional[StrictStr] = None
    title: Optional[StrictStr] = None
    description: Optional[StrictStr] = None
    priority: Optional[PriorityValue] = None
    timeEstimate: Optional[StrictStr] = None
    status: Optional[StatusValue] = None
    subtasks: Optional[List[_SubtaskArgs]] = None


class _AddTaskArgs(_Args):
    task: _TaskArgs


class _EditTaskArgs(_Args):
    taskId: StrictStr = Field(min_length=1)
    title: Optional[StrictStr] = None
    description: Optional[StrictStr] = None
    priority: Optional[PriorityValue] = None
    timeEstimate: Optional[StrictStr] = None
    status: Optional[StatusValue] = None


class _CompleteSubtaskArgs(_Args):
    taskId: StrictStr = Field(min_length=1)
    subtaskId: StrictStr = Field(min_length=1)


@dataclass(frozen=True)
class AddTaskCall:
    call_id: Optional[str]
    task: Task
    name: str = ADD_TASK


@dataclass(frozen=True)
class EditTaskCall:
    call_id: Optional[str]
    task_id: str
    updates: Dict[str, Any] = field(default_factory=dict)
    name: str = EDIT_TASK


@dataclass(frozen=True)
class CompleteSubtaskCall:
    call_id: Optional[str]
    task_id: str
    subtask_id: str
    name: str = COMPLETE_SUBTASK


ToolCall = Union[AddTaskCall, EditTaskCall, CompleteSubtaskCall]

# Maps the wire names of editable task fields onto Task attributes.
_EDITABLE_FIELDS = {
    "title": "title",
    "description": "description",
    "priority": "priority",
    "timeEstimate": "time_estimate",
    "status": "status",
}


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "arguments"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def _validate(schema, name: str, arguments: Any):
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise ToolArgumentError(f"{name} expects an object of arguments.")
    try:
        return schema.model_validate(arguments)
    except ValidationError as exc:
        raise ToolArgumentError(f"Invalid arguments for {name}: {_describe(exc)}") from exc


def _task_from_args(args: _TaskArgs) -> Task:
    subtasks = [
        Subtask(
            id=st.id or new_id(),
            text=st.text or "Unnamed subtask",
            completed=bool(st.completed),
        )
        for st in (args.subtasks or [])
    ]
    return Task(
        id=args.id or new_id(),
        title=args.title or "Untitled Task",
        description=args.description or "",
        priority=Priority(args.priority) if args.priority else Priority.MEDIUM,
        time_estimate=args.timeEstimate or "N/A",
        status=Status(args.status) if args.status else Status.TODO,
        subtasks=subtasks,
    )


def parse_function_call(call_id: Optional[str], name: Optional[str], arguments: Any) -> ToolCall:
    """Validate raw call arguments and return the matching call variant.

    Raises ToolArgumentError when the arguments break the declared schema
    and UnknownFunctionError for names outside the contract.
    """
    if name == ADD_TASK:
        add_args = _validate(_AddTaskArgs, name, arguments)
        return AddTaskCall(call_id=call_id, task=_task_from_args(add_args.task))
    if name == EDIT_TASK:
        edit_args = _validate(_EditTaskArgs, name, arguments)
        provided = edit_args.model_dump(exclude_none=True)
        updates: Dict[str, Any] = {}
        for wire_name, attr in _EDITABLE_FIELDS.items():
            if wire_name in provided:
                value = provided[wire_name]
                if attr == "priority":
                    value = Priority(value)
                elif attr == "status":
                    value = Status(value)
                updates[attr] = value
        return EditTaskCall(call_id=call_id, task_id=edit_args.taskId, updates=updates)
    if name == COMPLETE_SUBTASK:
        complete_args = _validate(_CompleteSubtaskArgs, name, arguments)
        return CompleteSubtaskCall(
            call_id=call_id,
            task_id=complete_args.taskId,
            subtask_id=complete_args.subtaskId,
        )
    raise UnknownFunctionError(f"Unknown function call: {name}")
