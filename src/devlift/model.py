# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple


STEP_TYPES = (
    "package-manager",
    "shell",
    "docker-compose",
    "docker",
    "database",
    "service",
    "choice",
)

# every type that is handed to an executor (choice is handled by the engine)
EXECUTABLE_TYPES = tuple(t for t in STEP_TYPES if t != "choice")

POST_SETUP_TYPES = ("message", "open", "choice")


@dataclass(frozen=True)
class Choice:
    """One branch of a choice step."""
    name: str
    value: str
    actions: Tuple["Step", ...] = ()


@dataclass(frozen=True)
class Step:
    """
    A single setup step.

    `name` is unique inside its list (top-level setup_steps or a choice's
    actions) and is the node identity used by `depends_on`.
    """
    name: str
    type: str
    command: Optional[str] = None
    manager: Optional[str] = None
    file: Optional[str] = None       # docker-compose file override
    prompt: Optional[str] = None
    choices: Tuple[Choice, ...] = ()
    depends_on: Tuple[str, ...] = ()

    @property
    def is_choice(self) -> bool:
        return self.type == "choice"

    def choice_for(self, value: str) -> Optional[Choice]:
        for c in self.choices:
            if c.value == value:
                return c
        return None


@dataclass(frozen=True)
class PostSetupChoice:
    name: str
    value: str
    actions: Tuple["PostSetupAction", ...] = ()


@dataclass(frozen=True)
class PostSetupAction:
    """An action run once every setup step has succeeded."""
    type: str
    name: Optional[str] = None
    content: Optional[str] = None
    target: Optional[str] = None     # "editor" | "browser"
    path: Optional[str] = None
    prompt: Optional[str] = None
    choices: Tuple[PostSetupChoice, ...] = ()

    def choice_for(self, value: str) -> Optional[PostSetupChoice]:
        for c in self.choices:
            if c.value == value:
                return c
        return None


@dataclass(frozen=True)
class Config:
    """A validated dev.yml / dev.json document."""
    version: str = "1"
    project_name: Optional[str] = None
    setup_steps: Tuple[Step, ...] = ()
    post_setup: Tuple[PostSetupAction, ...] = field(default_factory=tuple)
