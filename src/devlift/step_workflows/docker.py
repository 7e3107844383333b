# step_workflows/docker.py
from __future__ import annotations

import shlex

from . import StepContext, confirm, require_command, run_command
from ..model import Step

DEFAULT_COMPOSE_FILE = "docker-compose.yml"


# ---------------------------------------------------------------------
# Docker step execution
# ---------------------------------------------------------------------

def run_docker(step: Step, ctx: StepContext) -> str:
    """Run `docker <command>` in the working directory."""
    args = shlex.split(require_command(step))
    cmd = ["docker", *args]
    display = " ".join(cmd)
    ctx.console.print_step(step.name, display)

    if not confirm(step, ctx, f"Execute Docker command?\n  {display}\n"):
        ctx.console.print_skipped(step.name, "declined")
        return "skipped"

    return run_command(step, ctx, cmd, shell=False)


def run_compose(step: Step, ctx: StepContext) -> str:
    """Run `docker compose [-f file] <command>` in the working directory."""
    args = shlex.split(require_command(step))
    compose_file = step.file or DEFAULT_COMPOSE_FILE

    if not (ctx.workdir / compose_file).exists():
        ctx.console.print_warning(f"{compose_file} not found")

    cmd = ["docker", "compose"]
    if step.file:
        cmd.extend(["-f", step.file])
    cmd.extend(args)
    display = " ".join(cmd)
    ctx.console.print_step(step.name, display)

    if not confirm(step, ctx, f"Execute Docker Compose command?\n  {display}\n"):
        ctx.console.print_skipped(step.name, "declined")
        return "skipped"

    return run_command(step, ctx, cmd, shell=False)
