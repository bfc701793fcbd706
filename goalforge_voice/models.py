"""Project plan and conversation models (camelCase on the wire)."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    return str(uuid.uuid4())


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Status(str, Enum):
    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    DONE = "Done"


class Subtask(BaseModel):
    id: str = Field(default_factory=new_id)
    text: str
    completed: bool = False


class Task(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id)
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    subtasks: List[Subtask] = Field(default_factory=list)
    time_estimate: str = Field(default="N/A", alias="timeEstimate")
    status: Status = Status.TODO
    start_date: Optional[str] = Field(default=None, alias="startDate")
    google_calendar_event_id: Optional[str] = Field(default=None, alias="googleCalendarEventId")


class Project(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    goal: str
    plan: List[Task] = Field(default_factory=list)
    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        alias="createdAt",
    )


class Sender(str, Enum):
    USER = "user"
    AI = "ai"
    SYSTEM = "system"


class ConversationMessage(BaseModel):
    sender: Sender
    text: str
    is_final: bool = False
