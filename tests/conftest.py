from pathlib import Path

import pytest

from goalforge_voice.config import (
    DEFAULT_LIVE_MODEL,
    LIVE_ENDPOINT,
    AppConfig,
    AppPaths,
    AudioInputConfig,
    AudioOutputConfig,
    LiveConfig,
)
from goalforge_voice.models import Priority, Project, Status, Subtask, Task


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        live=LiveConfig(
            endpoint=LIVE_ENDPOINT,
            model=DEFAULT_LIVE_MODEL,
            voice=None,
            connect_timeout=5.0,
            setup_timeout=1.0,
            instructions_prompt="You are GoalForge AI.",
        ),
        audio_input=AudioInputConfig(sample_rate=16000, block_size=4096, device_name=None, device_index=None),
        audio_output=AudioOutputConfig(sample_rate=24000, device_name=None, device_index=None),
        paths=AppPaths(data_dir=tmp_path, settings_file=tmp_path / "settings.yaml"),
    )


@pytest.fixture
def project() -> Project:
    return Project(
        id="proj-1",
        goal="Launch the garden blog",
        plan=[
            Task(
                id="task-1",
                title="Pick a platform",
                description="Compare hosted blog platforms.",
                priority=Priority.HIGH,
                time_estimate="2 hours",
                status=Status.IN_PROGRESS,
                subtasks=[
                    Subtask(id="sub-1", text="List candidates", completed=True),
                    Subtask(id="sub-2", text="Check pricing"),
                ],
            ),
            Task(
                id="task-2",
                title="Buy a domain",
                description="Register the domain name.",
                priority=Priority.LOW,
                time_estimate="30 minutes",
                status=Status.DONE,
            ),
        ],
    )
