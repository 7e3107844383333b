# errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


class DevliftError(Exception):
    """Base class for every error devlift raises on purpose."""


class ConfigError(DevliftError):
    """Invalid configuration: detected before any step runs."""


class MissingDependencyError(ConfigError):
    def __init__(self, step: str, missing: str, known: List[str]):
        self.step = step
        self.missing = missing
        self.known = known
        super().__init__(
            f"Step '{step}' depends on missing step '{missing}'. "
            f"Known steps: {known}"
        )


class CircularDependencyError(DevliftError):
    MESSAGE = "Circular dependency detected in setup steps."

    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(self.MESSAGE)


@dataclass
class StepFailure(DevliftError):
    """
    A step reported a failed outcome.

    Carries enough context for the CLI to print a short summary and a hint
    without a traceback.
    """
    step: str
    message: str
    exit_code: Optional[int] = None
    command: Optional[str] = None
    hint: Optional[str] = None

    def __str__(self) -> str:
        text = f"step '{self.step}' failed: {self.message}"
        if self.exit_code is not None:
            text += f" (exit={self.exit_code})"
        return text


@dataclass
class InteractiveError(StepFailure):
    """An interactive prompt could not be answered."""
