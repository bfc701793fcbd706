"""Function call dispatch against the project plan."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from ..errors import ToolExecutionError, UnknownFunctionError
from ..live.events import FunctionCall
from ..models import Task
from ..plan_store import PlanStore
from .contracts import (
    AddTaskCall,
    CompleteSubtaskCall,
    EditTaskCall,
    ToolCall,
    parse_function_call,
)


logger = logging.getLogger(__name__)

SUCCESS_RESULT = "Function executed successfully."

Responder = Callable[[Optional[str], str, str], None]


@dataclass
class ToolDispatcher:
    plan_store: PlanStore
    on_error: Optional[Callable[[str], None]] = None
    on_system_message: Optional[Callable[[str], None]] = None

    def dispatch_batch(self, calls: List[FunctionCall], respond: Responder) -> List[str]:
        """Run every call in the batch and send exactly one response per call."""
        results: List[str] = []
        for call in calls:
            result = self.dispatch(call)
            try:
                respond(call.id, call.name, result)
            except Exception as exc:
                logger.error("Tools: failed to send response for %s (id=%s): %s", call.name, call.id, exc)
            results.append(result)
        return results

    def dispatch(self, call: FunctionCall) -> str:
        """Handle a single call and return the result string for the model."""
        logger.info("Tools: invoking %s (id=%s) with arguments=%s", call.name, call.id, call.args)
        try:
            parsed = parse_function_call(call.id, call.name, call.args)
            summary = self._execute(parsed)
        except UnknownFunctionError as exc:
            result = str(exc)
            logger.warning("Tools: %s", result)
            self._report_error(result)
            return result
        except ToolExecutionError as exc:
            result = f"Error executing function {call.name}: {exc}"
            logger.warning("Tools: %s", result)
            self._report_error(result)
            return result
        except Exception as exc:
            result = f"Error executing function {call.name}: {exc}"
            logger.exception("Tools: unexpected failure in %s", call.name)
            self._report_error(result)
            return result

        logger.info("Tools: %s completed (%s)", call.name, summary)
        if self.on_system_message is not None:
            self.on_system_message(summary)
        return SUCCESS_RESULT

    def _execute(self, call: ToolCall) -> str:
        if isinstance(call, AddTaskCall):
            return self._add_task(call)
        if isinstance(call, EditTaskCall):
            return self._edit_task(call)
        if isinstance(call, CompleteSubtaskCall):
            return self._complete_subtask(call)
        raise TypeError(f"Unhandled call variant: {type(call).__name__}")

    def _add_task(self, call: AddTaskCall) -> str:
        task = call.task

        def _mutate(plan: List[Task]) -> List[Task]:
            if any(existing.id == task.id for existing in plan):
                raise ToolExecutionError(f"A task with id '{task.id}' already exists.")
            return plan + [task]

        self.plan_store.apply_plan_mutation(_mutate)
        return f'Task "{task.title}" has been added to the plan.'

    def _edit_task(self, call: EditTaskCall) -> str:
        title = {}

        def _mutate(plan: List[Task]) -> List[Task]:
            index = _find_task(plan, call.task_id)
            current = plan[index]
            title["value"] = current.title
            plan[index] = current.model_copy(update=call.updates)
            return plan

        self.plan_store.apply_plan_mutation(_mutate)
        return f'Task "{title["value"]}" has been updated.'

    def _complete_subtask(self, call: CompleteSubtaskCall) -> str:
        names = {}

        def _mutate(plan: List[Task]) -> List[Task]:
            index = _find_task(plan, call.task_id)
            task = plan[index]
            subtasks = list(task.subtasks)
            for position, subtask in enumerate(subtasks):
                if subtask.id == call.subtask_id:
                    subtasks[position] = subtask.model_copy(update={"completed": True})
                    names["subtask"] = subtask.text
                    break
            else:
                raise ToolExecutionError(
                    f"Subtask '{call.subtask_id}' not found in task '{call.task_id}'."
                )
            names["task"] = task.title
            plan[index] = task.model_copy(update={"subtasks": subtasks})
            return plan

        self.plan_store.apply_plan_mutation(_mutate)
        return f'Subtask "{names["subtask"]}" in "{names["task"]}" marked as complete.'

    def _report_error(self, message: str) -> None:
        if self.on_error is None:
            return
        try:
            self.on_error(message)
        except Exception:
            logger.exception("Tools: error callback failed")


def _find_task(plan: List[Task], task_id: Any) -> int:
    for index, task in enumerate(plan):
        if task.id == task_id:
            return index
    raise ToolExecutionError(f"Task '{task_id}' not found in the plan.")
