# step_workflows/__init__.py
from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Union

import click

from ..errors import ConfigError, InteractiveError, StepFailure
from ..model import Step
from ..ui.console import Console, get_console

logger = logging.getLogger(__name__)


TOOL_HINTS = {
    "npm": "Install Node.js (includes npm) or fix PATH.",
    "pnpm": "Install pnpm (e.g., npm install -g pnpm) or fix PATH.",
    "yarn": "Install yarn (e.g., npm install -g yarn) or fix PATH.",
    "docker": "Install Docker and ensure the daemon is running.",
    "git": "Install Git or fix PATH.",
    "code": "Install the VS Code 'code' shell command.",
}


@dataclass
class StepContext:
    """What an executor gets besides the step itself."""
    workdir: Path
    assume_yes: bool = False
    console: Console = field(default_factory=get_console)
    env: Dict[str, str] = field(default_factory=dict)


# run_step(step, ctx) -> "ok" | "skipped"; raises StepFailure
Executor = Callable[[Step, StepContext], str]


# ---------------------------------------------------------------------
# Shared execution primitives
# ---------------------------------------------------------------------

def confirm(step: Step, ctx: StepContext, message: str) -> bool:
    """
    Ask before running a command unless --yes was given.

    Answering "no" skips the step. EOF on stdin is an InteractiveError for
    the step; Ctrl-C is re-raised as KeyboardInterrupt.
    """
    if ctx.assume_yes:
        return True
    try:
        return click.confirm(message, default=True)
    except click.Abort as e:
        # click folds Ctrl-C and EOF into Abort; the original is the context
        if isinstance(e.__context__, KeyboardInterrupt):
            raise KeyboardInterrupt from e
        raise InteractiveError(
            step=step.name,
            message="confirmation aborted",
            hint="Pass --yes to run without prompts.",
        ) from e


def require_command(step: Step) -> str:
    if not step.command:
        raise StepFailure(step=step.name, message=f"{step.type} step is missing a command")
    return step.command


def run_command(
    step: Step,
    ctx: StepContext,
    cmd: Union[str, List[str]],
    *,
    shell: bool,
) -> str:
    """
    Run one command in the working directory, streaming output to the
    terminal. Non-zero exit or a missing binary becomes a StepFailure.
    """
    display = cmd if isinstance(cmd, str) else " ".join(cmd)
    if not ctx.workdir.exists():
        raise StepFailure(step=step.name, message=f"working directory not found: {ctx.workdir}")

    env = os.environ.copy()
    env.update(ctx.env)

    logger.debug("Running %r in %s", display, ctx.workdir)
    try:
        proc = subprocess.run(
            cmd,
            shell=shell,
            cwd=str(ctx.workdir),
            env=env,
            text=True,
        )
    except FileNotFoundError as e:
        tool = cmd[0] if isinstance(cmd, list) else display.split()[0]
        raise StepFailure(
            step=step.name,
            message=f"{tool} is not available",
            command=display,
            hint=TOOL_HINTS.get(tool, f"Install {tool} or fix PATH."),
        ) from e

    if proc.returncode != 0:
        raise StepFailure(
            step=step.name,
            message=f"command exited with status {proc.returncode}: {display}",
            exit_code=proc.returncode,
            command=display,
        )
    return "ok"


# ---------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------

class ExecutorRegistry:
    """Maps a step type to the function that carries it out."""

    def __init__(self) -> None:
        self._executors: Dict[str, Executor] = {}

    def register(self, step_type: str, executor: Executor) -> None:
        if step_type == "choice":
            raise ValueError("choice steps are resolved by the engine, not an executor")
        if step_type in self._executors:
            logger.warning("Overwriting executor for step type: %s", step_type)
        self._executors[step_type] = executor

    def get(self, step_type: str) -> Executor:
        executor = self._executors.get(step_type)
        if executor is None:
            raise ConfigError(f"No executor registered for step type '{step_type}'")
        return executor

    def types(self) -> List[str]:
        return list(self._executors)

    def __contains__(self, step_type: str) -> bool:
        return step_type in self._executors


def default_registry() -> ExecutorRegistry:
    from . import docker, package_manager, shell

    registry = ExecutorRegistry()
    registry.register("shell", shell.run_step)
    registry.register("database", shell.run_step)
    registry.register("service", shell.run_step)
    registry.register("package-manager", package_manager.run_step)
    registry.register("docker", docker.run_docker)
    registry.register("docker-compose", docker.run_compose)
    return registry
