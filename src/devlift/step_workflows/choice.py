# step_workflows/choice.py
from __future__ import annotations

import logging
import sys
from typing import Dict, Mapping, Optional, Protocol, Sequence, Tuple, Union

import click

from ..errors import ConfigError, InteractiveError
from ..model import PostSetupAction, Step

logger = logging.getLogger(__name__)

# (display name, value) in declared order
Option = Tuple[str, str]


class ChoiceResolver(Protocol):
    def resolve(self, name: str, prompt: str, options: Sequence[Option]) -> str:
        """Return the `value` of the selected option."""
        ...


class InteractiveChoiceResolver:
    """
    Ask on the terminal. Blocks until the user answers; there is no
    timeout. Without a TTY there is nobody to ask, so it fails.
    """

    def __init__(self, require_tty: bool = True):
        self.require_tty = require_tty

    def resolve(self, name: str, prompt: str, options: Sequence[Option]) -> str:
        if self.require_tty and not sys.stdin.isatty():
            raise InteractiveError(
                step=name,
                message="no interactive terminal available to answer the prompt",
                hint=f"Pass --choice \"{name}=<value>\" to select a branch up front.",
            )

        click.echo(f"\n{prompt}")
        for i, (label, value) in enumerate(options, start=1):
            click.echo(f"  {i}) {label} [{value}]")

        by_index = {str(i): value for i, (_, value) in enumerate(options, start=1)}
        values = [value for _, value in options]
        if any(v.isdigit() for v in values):
            # numeric values would shadow menu numbers
            by_index = {}
        accepted = list(by_index) + values
        try:
            answer = click.prompt(
                "Select",
                type=click.Choice(accepted),
                show_choices=False,
            )
        except click.Abort as e:
            if isinstance(e.__context__, KeyboardInterrupt):
                raise KeyboardInterrupt from e
            raise InteractiveError(step=name, message="prompt aborted") from e

        return by_index.get(answer, answer)


class PrespecifiedChoiceResolver:
    """Answer from `--choice NAME=VALUE` first, then fall back."""

    def __init__(self, choices: Mapping[str, str], fallback: Optional[ChoiceResolver] = None):
        self.choices = dict(choices)
        self.fallback = fallback or InteractiveChoiceResolver()
        self.used: Dict[str, str] = {}

    def resolve(self, name: str, prompt: str, options: Sequence[Option]) -> str:
        if name in self.choices:
            value = self.choices[name]
            self.used[name] = value
            logger.debug("Using pre-specified choice %r for %r", value, name)
            return value
        return self.fallback.resolve(name, prompt, options)


def parse_choice_args(values: Sequence[str]) -> Dict[str, str]:
    """Parse `NAME=VALUE` pairs; the step name may itself contain spaces."""
    out: Dict[str, str] = {}
    for raw in values:
        name, sep, value = raw.rpartition("=")
        if not sep or not name.strip() or not value.strip():
            raise ConfigError(f"Invalid --choice {raw!r}; expected NAME=VALUE")
        out[name.strip()] = value.strip()
    return out


def validate_prespecified(
    items: Sequence[Union[Step, PostSetupAction]],
    choices: Mapping[str, str],
    *,
    default_name: Optional[str] = None,
) -> None:
    """
    Check every pre-specified value against the choice it names, recursing
    into the branch that value selects. Raises ConfigError on a mismatch.
    """
    for item in items:
        if item.type != "choice":
            continue
        name = item.name or default_name
        kind = "post-setup action" if isinstance(item, PostSetupAction) else "step"
        if name not in choices:
            continue
        wanted = choices[name]
        selected = item.choice_for(wanted)
        if selected is None:
            valid = ", ".join(c.value for c in item.choices)
            raise ConfigError(
                f'Invalid pre-specified choice "{wanted}" for {kind} "{name}". '
                f"Valid choices are: {valid}"
            )
        validate_prespecified(selected.actions, choices, default_name=default_name)
