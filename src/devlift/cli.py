# cli.py
from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from typing import Optional

import click

from devlift import __version__
from devlift.config import infer_config, load_config, supported_config_files
from devlift.engine import ExecutionEngine
from devlift.errors import DevliftError
from devlift.git_facts.git import clone, input_type, is_repo
from devlift.model import Config, Step
from devlift.paths import clone_path
from devlift.step_workflows.choice import parse_choice_args
from devlift.ui.console import Console, get_console, set_console


def resolve_workdir(repo: str) -> Path:
    """
    Turn the `lift` argument into a working directory, cloning if it is a URL.

    Raises:
        SystemExit: If the input is neither a git URL nor a directory, or
            the clone fails.
    """
    console = get_console()
    kind = input_type(repo)

    if kind == "invalid":
        console.print_error(
            "Invalid input",
            f"Not a Git repository URL or an existing directory: {repo}",
            suggestion="Examples:\n  dev lift https://github.com/owner/repo.git\n  dev lift ./my-project",
        )
        sys.exit(1)

    if kind == "path":
        workdir = Path(repo).expanduser().resolve()
        console.print_info(f"Using local repository at {workdir}...")
        if not is_repo(workdir):
            console.print_warning("This directory is not a Git repository.")
        return workdir

    dest = clone_path(repo)
    console.print_info(f"Cloning into {dest}...")
    try:
        return clone(repo, dest)
    except FileNotFoundError:
        console.print_error(
            "Git command not found",
            "Could not find git command.",
            suggestion="Install Git and try again.",
        )
        sys.exit(1)
    except subprocess.CalledProcessError as e:
        console.print_error(
            "Clone failed",
            f"git clone exited with status {e.returncode}",
            details=[repo, str(dest)],
            suggestion="Check the URL and your access to the repository.",
        )
        sys.exit(1)


def find_config(workdir: Path) -> Optional[Config]:
    """Load the directory's config, falling back to package.json inference."""
    console = get_console()
    console.print_info(f"Looking for {', '.join(supported_config_files())}...")
    config = load_config(workdir)
    if config is not None:
        return config

    console.print_info("No dev.yml configuration found.")
    config = infer_config(workdir)
    if config is not None:
        console.print_info("Found package.json. Inferring setup steps...")
    return config


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.version_option(__version__, prog_name="devlift")
@click.pass_context
def cli(ctx, debug):
    """devlift: lift a repository into a ready-to-use development environment."""
    console = Console(debug=debug)
    set_console(console)
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("repo")
@click.option("-y", "--yes", "assume_yes", is_flag=True, default=False, help="Skip all confirmation prompts")
@click.option(
    "--choice",
    "choices",
    multiple=True,
    metavar="NAME=VALUE",
    help="Pre-select a branch of a choice step (repeatable)",
)
@click.pass_context
def lift(ctx, repo, assume_yes, choices):
    """Lift REPO (a git URL or a local path) into a development environment."""
    console = get_console()

    try:
        prespecified = parse_choice_args(choices)
        workdir = resolve_workdir(repo)
        config = find_config(workdir)
        if config is None:
            console.print_error(
                "No configuration",
                "No dev.yml configuration found and nothing to infer setup steps from.",
                suggestion="Add a dev.yml to the repository root, for example:\n"
                "  version: \"1\"\n  setup_steps:\n    - name: Install\n      type: shell\n      command: make install",
            )
            sys.exit(1)

        console.print_run_started(
            project=config.project_name or workdir.name,
            directory=str(workdir),
            step_count=len(config.setup_steps),
        )

        engine = ExecutionEngine(
            config,
            workdir,
            prespecified_choices=prespecified,
            assume_yes=assume_yes,
            console=console,
        )
        result = engine.run()
        console.print_results(result.statuses)

        if not result.ok:
            if result.failed_step is None and result.error is not None:
                # rejected before anything ran
                console.print_error("Setup aborted", str(result.error))
            sys.exit(1)

        console.print_info("\nSetup complete!")

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except DevliftError as e:
        console.print_error("Setup aborted", str(e))
        sys.exit(1)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command()
@click.argument("path", default=".", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.pass_context
def plan(ctx, path):
    """Show the execution plan for the project at PATH without running it."""
    console = get_console()

    try:
        config = find_config(path.resolve())
        if config is None:
            console.print_error("No configuration", f"No dev.yml found in {path}")
            sys.exit(1)
        ordered = ExecutionEngine(config, path, console=console).plan()
    except DevliftError as e:
        console.print_error("Invalid configuration", str(e))
        sys.exit(1)

    console.print_header(f"Execution plan ({len(ordered)} steps)")
    if not ordered:
        console.print_info("  (no setup steps)")
    for i, step in enumerate(ordered, start=1):
        _print_plan_step(console, step, f"{i}.", indent="  ")


def _print_plan_step(console: Console, step: Step, label: str, indent: str) -> None:
    line = f"{indent}{label} {step.name} [{step.type}]"
    if step.depends_on:
        line += f" after: {', '.join(step.depends_on)}"
    console.print_info(line)
    for choice in step.choices:
        console.print_info(f"{indent}    ? {choice.name} ({choice.value})")
        for j, action in enumerate(choice.actions, start=1):
            _print_plan_step(console, action, f"{j})", indent + "        ")


if __name__ == "__main__":
    cli()
