"""
Shared test fixtures and configuration.
"""

from pathlib import Path
from typing import Dict, List, Sequence

import pytest

from devlift.errors import StepFailure
from devlift.model import Choice, Config, Step
from devlift.step_workflows import ExecutorRegistry, StepContext
from devlift.ui.console import Console


class RecordingExecutor:
    """Executor double: records calls, fails the steps named in `fail`."""

    def __init__(self, fail: Sequence[str] = ()):
        self.fail = set(fail)
        self.calls: List[str] = []

    def __call__(self, step: Step, ctx: StepContext) -> str:
        self.calls.append(step.name)
        if step.name in self.fail:
            raise StepFailure(step=step.name, message="boom", exit_code=1)
        return "ok"


class ScriptedResolver:
    """Choice resolver double answering from a dict keyed by step name."""

    def __init__(self, answers: Dict[str, str]):
        self.answers = answers
        self.asked: List[str] = []

    def resolve(self, name, prompt, options):
        self.asked.append(name)
        return self.answers[name]


def shell(name: str, *deps: str, command: str = "true") -> Step:
    return Step(name=name, type="shell", command=command, depends_on=tuple(deps))


def choice(name: str, *branches: Choice, deps: Sequence[str] = ()) -> Step:
    return Step(
        name=name,
        type="choice",
        prompt=f"{name}?",
        choices=tuple(branches),
        depends_on=tuple(deps),
    )


def config(*steps: Step, **kwargs) -> Config:
    return Config(version="1", setup_steps=tuple(steps), **kwargs)


@pytest.fixture
def recorder() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def registry(recorder: RecordingExecutor) -> ExecutorRegistry:
    reg = ExecutorRegistry()
    for step_type in ("shell", "package-manager", "docker", "docker-compose", "database", "service"):
        reg.register(step_type, recorder)
    return reg


@pytest.fixture
def console() -> Console:
    return Console(debug=False)


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    d = tmp_path / "repo"
    d.mkdir()
    return d
