# step_workflows/shell.py
from __future__ import annotations

from . import StepContext, confirm, require_command, run_command
from ..model import Step

_LABELS = {
    "shell": "Execute the following command?",
    "database": "Execute database command?",
    "service": "Execute service command?",
}


def run_step(step: Step, ctx: StepContext) -> str:
    """Run a shell, database or service step through the system shell."""
    command = require_command(step)
    ctx.console.print_step(step.name, command)

    label = _LABELS.get(step.type, "Execute the following command?")
    if not confirm(step, ctx, f"{label}\n  {command}\n"):
        ctx.console.print_skipped(step.name, "declined")
        return "skipped"

    return run_command(step, ctx, command, shell=True)
