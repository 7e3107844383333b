# engine.py
from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

import click

from .dag import build_graph, schedule
from .errors import DevliftError, InteractiveError, StepFailure
from .model import Config, PostSetupAction, Step
from .step_workflows import ExecutorRegistry, StepContext, default_registry
from .step_workflows.choice import (
    ChoiceResolver,
    InteractiveChoiceResolver,
    PrespecifiedChoiceResolver,
    validate_prespecified,
)
from .ui.console import Console, get_console

logger = logging.getLogger(__name__)

# Run states: built -> scheduled -> running -> succeeded | failed
PENDING = "pending"
BUILT = "built"
SCHEDULED = "scheduled"
RUNNING = "running"
SUCCEEDED = "succeeded"
FAILED = "failed"

POST_SETUP_CHOICE_NAME = "post-setup"
DEFAULT_BROWSER_URL = "http://localhost:3000"
EDITORS = ("code", "subl")


@dataclass
class RunResult:
    """
    Terminal outcome of one engine run.

    statuses maps step names to "ok" | "skipped" | "failed". Actions of a
    choice branch are keyed "<choice step> > <action>".
    """
    state: str
    plan: List[str] = field(default_factory=list)
    completed: List[str] = field(default_factory=list)
    statuses: Dict[str, str] = field(default_factory=dict)
    failed_step: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.state == SUCCEEDED

    def raise_for_status(self) -> None:
        if self.error is not None:
            raise self.error


class ExecutionEngine:
    """
    Runs a Config's setup steps one at a time, in dependency order.

    The graph and plan are rebuilt on every run(). The first failing step
    ends the run; nothing after it in the plan is started, whether or not it
    depends on the failed step.
    """

    def __init__(
        self,
        config: Config,
        workdir: str | Path,
        *,
        registry: Optional[ExecutorRegistry] = None,
        resolver: Optional[ChoiceResolver] = None,
        prespecified_choices: Optional[Mapping[str, str]] = None,
        assume_yes: bool = False,
        console: Optional[Console] = None,
        env: Optional[Dict[str, str]] = None,
    ):
        self.config = config
        self.workdir = Path(workdir)
        self.registry = registry or default_registry()
        self.console = console or get_console()
        self.prespecified = dict(prespecified_choices or {})
        self.resolver: ChoiceResolver = PrespecifiedChoiceResolver(
            self.prespecified, fallback=resolver or InteractiveChoiceResolver()
        )
        self.ctx = StepContext(
            workdir=self.workdir,
            assume_yes=assume_yes,
            console=self.console,
            env=dict(env or {}),
        )
        self.state = PENDING

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(self) -> List[Step]:
        """Build the graph and return the top-level steps in execution order."""
        steps = list(self.config.setup_steps)
        graph = build_graph(steps)
        self.state = BUILT
        order = schedule(graph)
        self.state = SCHEDULED
        by_name = {s.name: s for s in steps}
        return [by_name[n] for n in order]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(self) -> RunResult:
        result = RunResult(state=PENDING)
        self.state = PENDING

        try:
            validate_prespecified(self.config.setup_steps, self.prespecified)
            validate_prespecified(
                self.config.post_setup, self.prespecified, default_name=POST_SETUP_CHOICE_NAME
            )
            ordered = self.plan()
        except DevliftError as e:
            logger.debug("Run rejected before execution: %s", e)
            return self._finish(result, FAILED, error=e)

        result.plan = [s.name for s in ordered]
        self.console.print_plan(result.plan)

        self.state = RUNNING
        try:
            self.run_sequence(ordered, result)
        except DevliftError as e:
            self._report_failure(result, e)
            return self._finish(result, FAILED, error=e)

        self._run_post_setup(self.config.post_setup)
        return self._finish(result, SUCCEEDED)

    def run_sequence(
        self,
        steps: Sequence[Step],
        result: RunResult,
        parent: Optional[str] = None,
    ) -> None:
        """Execute steps strictly in the given order; stop at the first failure."""
        for step in steps:
            key = f"{parent} > {step.name}" if parent else step.name
            self._execute(step, result, key)

    def _execute(self, step: Step, result: RunResult, key: str) -> None:
        logger.debug("Dispatching %r (type=%s)", key, step.type)
        try:
            if step.is_choice:
                status = self._run_choice(step, result, key)
            else:
                executor = self.registry.get(step.type)
                status = executor(step, self.ctx)
        except DevliftError:
            self._mark_failed(result, key)
            raise
        except Exception as e:
            self._mark_failed(result, key)
            raise StepFailure(step=step.name, message=str(e) or type(e).__name__) from e

        result.statuses[key] = status
        result.completed.append(key)
        if status == "ok":
            self.console.print_success(step.name)

    def _run_choice(self, step: Step, result: RunResult, key: str) -> str:
        if not step.choices:
            raise StepFailure(step=step.name, message="choice step has no choices")

        options = [(c.name, c.value) for c in step.choices]
        value = self.resolver.resolve(step.name, step.prompt or step.name, options)
        selected = step.choice_for(value)
        if selected is None:
            raise InteractiveError(step=step.name, message=f"selection {value!r} matches no choice")

        self.console.print_choice(
            step.name, selected.name, prespecified=step.name in self.prespecified
        )
        if not selected.actions:
            self.console.print_skipped(step.name, f"no actions for {selected.name}")
            return "ok"

        # private sub-plan: declared order, no graph
        self.run_sequence(selected.actions, result, parent=key)
        return "ok"

    def _mark_failed(self, result: RunResult, key: str) -> None:
        result.statuses[key] = "failed"
        # innermost failure is recorded first and wins
        if result.failed_step is None:
            result.failed_step = key

    def _report_failure(self, result: RunResult, exc: DevliftError) -> None:
        name = result.failed_step or "?"
        if isinstance(exc, StepFailure):
            self.console.print_failure(name, exc.message, exit_code=exc.exit_code, hint=exc.hint)
        else:
            self.console.print_failure(name, str(exc))

    def _finish(self, result: RunResult, state: str, error: Optional[BaseException] = None) -> RunResult:
        self.state = state
        result.state = state
        result.error = error
        logger.debug("Run finished: %s (failed_step=%s)", state, result.failed_step)
        return result

    # ------------------------------------------------------------------
    # Post-setup
    # ------------------------------------------------------------------

    def _run_post_setup(self, actions: Sequence[PostSetupAction]) -> None:
        if not actions:
            return
        self.console.print_header("Running post-setup actions")
        for action in actions:
            try:
                self._post_setup_action(action)
            except (DevliftError, OSError) as e:
                # setup itself already succeeded
                self.console.print_warning(f"post-setup action failed: {e}")

    def _post_setup_action(self, action: PostSetupAction) -> None:
        if action.type == "message":
            if action.content:
                self.console.print_message(action.content)
        elif action.type == "open":
            if action.target == "editor":
                self._open_editor(action.path or ".")
            elif action.target == "browser":
                self._open_browser(action.path or DEFAULT_BROWSER_URL)
            else:
                self.console.print_warning(f"Unknown open target: {action.target}")
        elif action.type == "choice":
            name = action.name or POST_SETUP_CHOICE_NAME
            options = [(c.name, c.value) for c in action.choices]
            value = self.resolver.resolve(name, action.prompt or name, options)
            selected = action.choice_for(value)
            if selected is None:
                raise InteractiveError(step=name, message=f"selection {value!r} matches no choice")
            for sub in selected.actions:
                self._post_setup_action(sub)
        else:
            self.console.print_warning(f"Unknown post-setup action type: {action.type}")

    def _open_editor(self, target: str) -> None:
        full_path = (self.workdir / target).resolve()
        self.console.print_info(f"\nOpening {full_path} in editor...")
        for editor in EDITORS:
            try:
                proc = subprocess.run([editor, str(full_path)], cwd=str(self.workdir))
            except OSError as e:
                logger.debug("Editor %s unavailable: %s", editor, e)
                continue
            if proc.returncode == 0:
                return
        self.console.print_warning("Could not open editor automatically. Please open the project manually.")

    def _open_browser(self, url: str) -> None:
        self.console.print_info(f"\nOpening {url} in browser...")
        if click.launch(url) != 0:
            self.console.print_warning(f"Could not open browser automatically. Please visit {url} manually.")
