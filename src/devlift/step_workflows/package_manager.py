# step_workflows/package_manager.py
from __future__ import annotations

from pathlib import Path

from . import StepContext, confirm, require_command, run_command
from ..model import Step

# lockfile -> manager, checked in order
LOCKFILES = (
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
)
DEFAULT_MANAGER = "npm"


def determine_manager(step: Step, workdir: Path) -> str:
    """Explicit `manager` wins; otherwise sniff the lockfile."""
    if step.manager:
        return step.manager
    for lockfile, manager in LOCKFILES:
        if (workdir / lockfile).exists():
            return manager
    return DEFAULT_MANAGER


def run_step(step: Step, ctx: StepContext) -> str:
    """Run `<manager> <command>`, e.g. `pnpm install`."""
    manager = determine_manager(step, ctx.workdir)
    command = f"{manager} {require_command(step)}"
    ctx.console.print_step(step.name, command)

    if not confirm(step, ctx, f"Execute the following command?\n  {command}\n"):
        ctx.console.print_skipped(step.name, "declined")
        return "skipped"

    return run_command(step, ctx, command, shell=True)
