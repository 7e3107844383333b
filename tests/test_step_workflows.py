"""
Tests for the step executors, the executor registry and choice resolvers.
"""

import subprocess
from types import SimpleNamespace

import click
import pytest

from devlift.errors import ConfigError, InteractiveError, StepFailure
from devlift.model import Choice, PostSetupAction, PostSetupChoice, Step
from devlift.step_workflows import ExecutorRegistry, StepContext, default_registry, docker, package_manager, shell
from devlift.step_workflows.choice import (
    InteractiveChoiceResolver,
    PrespecifiedChoiceResolver,
    parse_choice_args,
    validate_prespecified,
)


class FakeRun:
    """Stands in for subprocess.run; exit status comes from `returncode`."""

    def __init__(self):
        self.list = []
        self.returncode = 0

    def __call__(self, cmd, **kwargs):
        self.list.append(SimpleNamespace(cmd=cmd, **kwargs))
        return subprocess.CompletedProcess(cmd, self.returncode)


@pytest.fixture
def calls(monkeypatch):
    fake = FakeRun()
    monkeypatch.setattr("devlift.step_workflows.subprocess.run", fake)
    return fake


@pytest.fixture
def ctx(workdir, console):
    return StepContext(workdir=workdir, assume_yes=True, console=console)


# ── Registry ─────────────────────────────────────────────────────────


class TestRegistry:
    def test_default_registry_covers_every_executable_type(self):
        reg = default_registry()
        assert sorted(reg.types()) == sorted(
            ["shell", "database", "service", "package-manager", "docker", "docker-compose"]
        )
        assert reg.get("database") is shell.run_step

    def test_unknown_type(self):
        with pytest.raises(ConfigError, match="No executor registered"):
            ExecutorRegistry().get("kubernetes")

    def test_choice_cannot_be_registered(self):
        with pytest.raises(ValueError):
            ExecutorRegistry().register("choice", lambda s, c: "ok")


# ── Executors ────────────────────────────────────────────────────────


class TestShell:
    def test_runs_through_shell_in_workdir(self, calls, ctx, workdir):
        status = shell.run_step(Step(name="hi", type="shell", command="echo hi"), ctx)
        assert status == "ok"
        call = calls.list[0]
        assert call.cmd == "echo hi"
        assert call.shell is True
        assert call.cwd == str(workdir)

    def test_non_zero_exit(self, calls, ctx):
        calls.returncode = 3
        with pytest.raises(StepFailure) as exc:
            shell.run_step(Step(name="bad", type="shell", command="false"), ctx)
        assert exc.value.exit_code == 3
        assert exc.value.step == "bad"

    def test_missing_command(self, calls, ctx):
        with pytest.raises(StepFailure, match="missing a command"):
            shell.run_step(Step(name="empty", type="service"), ctx)
        assert calls.list == []

    def test_declined_confirmation_skips(self, calls, workdir, console, monkeypatch):
        monkeypatch.setattr("devlift.step_workflows.click.confirm", lambda *a, **k: False)
        ctx = StepContext(workdir=workdir, assume_yes=False, console=console)
        assert shell.run_step(Step(name="db", type="database", command="make db"), ctx) == "skipped"
        assert calls.list == []

    def test_eof_at_confirmation_fails_step(self, calls, workdir, console, monkeypatch):
        def eof(*a, **k):
            try:
                raise EOFError()
            except EOFError:
                raise click.Abort() from None

        monkeypatch.setattr("devlift.step_workflows.click.confirm", eof)
        ctx = StepContext(workdir=workdir, assume_yes=False, console=console)
        with pytest.raises(InteractiveError) as exc:
            shell.run_step(Step(name="db", type="database", command="make db"), ctx)
        assert exc.value.step == "db"
        assert "--yes" in exc.value.hint
        assert calls.list == []

    def test_ctrl_c_at_confirmation_interrupts(self, calls, workdir, console, monkeypatch):
        def interrupted(*a, **k):
            try:
                raise KeyboardInterrupt()
            except KeyboardInterrupt:
                raise click.Abort() from None

        monkeypatch.setattr("devlift.step_workflows.click.confirm", interrupted)
        ctx = StepContext(workdir=workdir, assume_yes=False, console=console)
        with pytest.raises(KeyboardInterrupt):
            docker.run_docker(Step(name="ps", type="docker", command="ps"), ctx)
        assert calls.list == []

    def test_env_overrides(self, calls, workdir, console):
        ctx = StepContext(workdir=workdir, assume_yes=True, console=console, env={"APP_ENV": "dev"})
        shell.run_step(Step(name="env", type="shell", command="env"), ctx)
        assert calls.list[0].env["APP_ENV"] == "dev"


class TestPackageManager:
    @pytest.mark.parametrize(
        "lockfile, expected",
        [(None, "npm"), ("yarn.lock", "yarn"), ("pnpm-lock.yaml", "pnpm")],
    )
    def test_lockfile_detection(self, workdir, lockfile, expected):
        if lockfile:
            (workdir / lockfile).write_text("")
        step = Step(name="install", type="package-manager", command="install")
        assert package_manager.determine_manager(step, workdir) == expected

    def test_pnpm_wins_over_yarn(self, workdir):
        (workdir / "yarn.lock").write_text("")
        (workdir / "pnpm-lock.yaml").write_text("")
        step = Step(name="install", type="package-manager", command="install")
        assert package_manager.determine_manager(step, workdir) == "pnpm"

    def test_explicit_manager(self, calls, ctx, workdir):
        (workdir / "yarn.lock").write_text("")
        package_manager.run_step(
            Step(name="install", type="package-manager", manager="bun", command="install"), ctx
        )
        assert calls.list[0].cmd == "bun install"


class TestDocker:
    def test_docker_args(self, calls, ctx):
        docker.run_docker(Step(name="pull", type="docker", command="pull redis:7"), ctx)
        assert calls.list[0].cmd == ["docker", "pull", "redis:7"]
        assert calls.list[0].shell is False

    def test_compose_warns_when_file_missing(self, calls, ctx, capsys):
        docker.run_compose(Step(name="up", type="docker-compose", command="up -d"), ctx)
        assert calls.list[0].cmd == ["docker", "compose", "up", "-d"]
        assert "docker-compose.yml not found" in capsys.readouterr().out

    def test_compose_custom_file(self, calls, ctx, workdir, capsys):
        (workdir / "compose.dev.yml").write_text("services: {}\n")
        docker.run_compose(
            Step(name="up", type="docker-compose", command="up -d", file="compose.dev.yml"), ctx
        )
        assert calls.list[0].cmd == ["docker", "compose", "-f", "compose.dev.yml", "up", "-d"]
        assert "not found" not in capsys.readouterr().out

    def test_missing_binary(self, ctx, monkeypatch):
        def not_found(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr("devlift.step_workflows.subprocess.run", not_found)
        with pytest.raises(StepFailure) as exc:
            docker.run_docker(Step(name="ps", type="docker", command="ps"), ctx)
        assert "docker is not available" in exc.value.message
        assert "Docker" in exc.value.hint


# ── Choice resolution ────────────────────────────────────────────────


class TestChoiceResolvers:
    OPTIONS = [("Docker-based", "docker"), ("Local", "local")]

    def test_no_tty_is_interactive_failure(self, monkeypatch):
        monkeypatch.setattr("devlift.step_workflows.choice.sys.stdin", SimpleNamespace(isatty=lambda: False))
        with pytest.raises(InteractiveError) as exc:
            InteractiveChoiceResolver().resolve("env", "Pick one", self.OPTIONS)
        assert "--choice" in exc.value.hint

    def test_prompt_by_number(self, monkeypatch):
        monkeypatch.setattr("devlift.step_workflows.choice.click.prompt", lambda *a, **k: "2")
        resolver = InteractiveChoiceResolver(require_tty=False)
        assert resolver.resolve("env", "Pick one", self.OPTIONS) == "local"

    def test_prompt_by_value(self, monkeypatch):
        monkeypatch.setattr("devlift.step_workflows.choice.click.prompt", lambda *a, **k: "docker")
        resolver = InteractiveChoiceResolver(require_tty=False)
        assert resolver.resolve("env", "Pick one", self.OPTIONS) == "docker"

    def test_numeric_values_are_not_menu_numbers(self, monkeypatch):
        seen = {}

        def prompt(text, type=None, **kwargs):
            seen["accepted"] = list(type.choices)
            return "1"

        monkeypatch.setattr("devlift.step_workflows.choice.click.prompt", prompt)
        options = [("Node 2", "2"), ("Node 1", "1")]
        resolver = InteractiveChoiceResolver(require_tty=False)
        assert resolver.resolve("node", "Which major?", options) == "1"
        assert seen["accepted"] == ["2", "1"]

    def test_prompt_abort(self, monkeypatch):
        def abort(*a, **k):
            raise click.Abort()

        monkeypatch.setattr("devlift.step_workflows.choice.click.prompt", abort)
        with pytest.raises(InteractiveError):
            InteractiveChoiceResolver(require_tty=False).resolve("env", "Pick one", self.OPTIONS)

    def test_prespecified_then_fallback(self):
        class Fallback:
            def resolve(self, name, prompt, options):
                return "asked"

        resolver = PrespecifiedChoiceResolver({"env": "local"}, fallback=Fallback())
        assert resolver.resolve("env", "?", self.OPTIONS) == "local"
        assert resolver.resolve("other", "?", self.OPTIONS) == "asked"
        assert resolver.used == {"env": "local"}


class TestChoiceArgs:
    def test_parse(self):
        assert parse_choice_args(["env=docker", "Choose Build Configuration = dev-build"]) == {
            "env": "docker",
            "Choose Build Configuration": "dev-build",
        }

    @pytest.mark.parametrize("raw", ["env", "=docker", "env="])
    def test_invalid(self, raw):
        with pytest.raises(ConfigError):
            parse_choice_args([raw])

    def test_validate_ignores_unrelated_names(self):
        step = Step(name="env", type="choice", prompt="?", choices=(Choice("A", "a"),))
        validate_prespecified([step], {"something-else": "x"})

    def test_validate_rejects_unknown_value(self):
        step = Step(name="env", type="choice", prompt="?", choices=(Choice("A", "a"), Choice("B", "b")))
        with pytest.raises(ConfigError, match='for step "env". Valid choices are: a, b'):
            validate_prespecified([step], {"env": "c"})

    def test_validate_names_post_setup_actions(self):
        action = PostSetupAction(type="choice", prompt="Next?", choices=(PostSetupChoice("Editor", "editor"),))
        with pytest.raises(ConfigError, match='for post-setup action "post-setup"'):
            validate_prespecified([action], {"post-setup": "bogus"}, default_name="post-setup")
