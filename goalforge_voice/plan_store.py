"""Plan stores: the single owner of a project's task list."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, List

from .models import Project, Task


logger = logging.getLogger(__name__)

PlanMutation = Callable[[List[Task]], List[Task]]


class PlanStore:
    """Holds a project in memory; subclasses decide how `persist` stores it."""

    def __init__(self, project: Project) -> None:
        self._project = project
        self._lock = threading.Lock()

    @property
    def project(self) -> Project:
        return self._project

    def get_current_plan(self) -> List[Task]:
        with self._lock:
            return [task.model_copy(deep=True) for task in self._project.plan]

    def apply_plan_mutation(self, mutation: PlanMutation) -> List[Task]:
        """Apply `mutation` to a copy of the plan, then store and persist the result.

        If the mutation raises, the stored plan is left untouched.
        """
        with self._lock:
            working = [task.model_copy(deep=True) for task in self._project.plan]
            updated = list(mutation(working))
            self._project = self._project.model_copy(update={"plan": updated})
        self.persist(updated)
        return [task.model_copy(deep=True) for task in updated]

    def persist(self, plan: List[Task]) -> None:
        logger.debug("PlanStore: in-memory plan now has %d task(s).", len(plan))


InMemoryPlanStore = PlanStore


class JsonPlanStore(PlanStore):
    """Project persisted as one JSON document on disk."""

    def __init__(self, path: Path, project: Project) -> None:
        super().__init__(project)
        self.path = Path(path)

    @classmethod
    def load(cls, path: Path) -> "JsonPlanStore":
        path = Path(path)
        with path.open("r", encoding="utf-8") as f:
            project = Project.model_validate_json(f.read())
        logger.info("PlanStore: loaded project %s (%d tasks) from %s.", project.id, len(project.plan), path)
        return cls(path, project)

    def persist(self, plan: List[Task]) -> None:
        project = self._project.model_copy(update={"plan": plan})
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(project.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)
        logger.debug("PlanStore: persisted %d task(s) to %s.", len(plan), self.path)
