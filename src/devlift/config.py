"""
Configuration loader: reads dev.yml / dev.yaml / dev.json into the
engine's Config model.

The document is validated with pydantic schema models and then converted
to the frozen dataclasses in `devlift.model`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ConfigError
from .model import (
    EXECUTABLE_TYPES,
    STEP_TYPES,
    Choice,
    Config,
    PostSetupAction,
    PostSetupChoice,
    Step,
)

logger = logging.getLogger(__name__)

SUPPORTED_VERSION = "1"

# priority order: YAML first, then JSON
CONFIG_FILES = (
    ("dev.yml", "yaml"),
    ("dev.yaml", "yaml"),
    ("dev.json", "json"),
)


@dataclass(frozen=True)
class ConfigFileInfo:
    path: Path
    format: str  # "yaml" | "json"


# ---------------------------------------------------------------------
# Document schema
# ---------------------------------------------------------------------

class ChoiceSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    value: str
    actions: List["StepSchema"] = Field(default_factory=list)


class StepSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    type: str
    command: Optional[str] = None
    manager: Optional[str] = None
    file: Optional[str] = None
    prompt: Optional[str] = None
    choices: Optional[List[ChoiceSchema]] = None
    depends_on: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_type_fields(self) -> "StepSchema":
        if self.type not in STEP_TYPES:
            raise ValueError(f"Invalid step type: {self.type}")
        if self.type in EXECUTABLE_TYPES and not self.command:
            raise ValueError(f'{self.type} step "{self.name}" is missing a command')
        if self.type == "choice":
            if not self.prompt:
                raise ValueError(f'Choice step "{self.name}" is missing a prompt')
            if not self.choices:
                raise ValueError(f'Choice step "{self.name}" is missing choices or has empty choices array')
            values = [c.value for c in self.choices]
            if len(set(values)) != len(values):
                raise ValueError(f'Choice step "{self.name}" has duplicate choice values')
            for c in self.choices:
                _check_unique_names(c.actions, f'actions of choice "{c.value}"')
        return self


class PostSetupChoiceSchema(BaseModel):
    name: str
    value: str
    actions: List["PostSetupSchema"] = Field(default_factory=list)


class PostSetupSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["message", "open", "choice"]
    name: Optional[str] = None
    content: Optional[str] = None
    target: Optional[str] = None
    path: Optional[str] = None
    prompt: Optional[str] = None
    choices: List[PostSetupChoiceSchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_choice(self) -> "PostSetupSchema":
        if self.type == "choice":
            if not self.prompt:
                raise ValueError("Post-setup choice action is missing a prompt")
            if not self.choices:
                raise ValueError("Post-setup choice action is missing choices or has empty choices array")
        return self


class ConfigSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: Optional[str] = None
    project_name: Optional[str] = None
    setup_steps: Optional[List[StepSchema]] = None
    # older configs (and the prep wizard) wrote `setup`
    setup: Optional[List[StepSchema]] = None
    post_setup: List[PostSetupSchema] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _coerce_version(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("version"), (int, float)):
            data = {**data, "version": str(data["version"]).removesuffix(".0")}
        return data

    @model_validator(mode="after")
    def _check(self) -> "ConfigSchema":
        if not self.version:
            raise ValueError("Missing required field: version")
        if self.version != SUPPORTED_VERSION:
            raise ValueError(f"Unsupported configuration version: {self.version}")
        _check_unique_names(self.steps, "setup_steps")
        return self

    @property
    def steps(self) -> List[StepSchema]:
        return self.setup_steps if self.setup_steps is not None else (self.setup or [])


def _check_unique_names(steps: List[StepSchema], where: str) -> None:
    names = [s.name for s in steps]
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        raise ValueError(f"Duplicate step names in {where}: {dupes}")


for _schema in (ChoiceSchema, StepSchema, PostSetupChoiceSchema, PostSetupSchema, ConfigSchema):
    _schema.model_rebuild()


# ---------------------------------------------------------------------
# Schema -> model
# ---------------------------------------------------------------------

def _to_step(s: StepSchema) -> Step:
    return Step(
        name=s.name,
        type=s.type,
        command=s.command,
        manager=s.manager,
        file=s.file,
        prompt=s.prompt,
        choices=tuple(
            Choice(name=c.name, value=c.value, actions=tuple(_to_step(a) for a in c.actions))
            for c in (s.choices or [])
        ),
        depends_on=tuple(s.depends_on),
    )


def _to_post_setup(a: PostSetupSchema) -> PostSetupAction:
    return PostSetupAction(
        type=a.type,
        name=a.name,
        content=a.content,
        target=a.target,
        path=a.path,
        prompt=a.prompt,
        choices=tuple(
            PostSetupChoice(
                name=c.name,
                value=c.value,
                actions=tuple(_to_post_setup(x) for x in c.actions),
            )
            for c in a.choices
        ),
    )


def validate_config(data: Any) -> Config:
    """Validate a parsed document and return the engine's Config."""
    if not isinstance(data, dict):
        raise ConfigError("Configuration file does not contain a valid object")
    try:
        doc = ConfigSchema.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_format_validation_error(e)) from e

    return Config(
        version=doc.version or SUPPORTED_VERSION,
        project_name=doc.project_name,
        setup_steps=tuple(_to_step(s) for s in doc.steps),
        post_setup=tuple(_to_post_setup(a) for a in doc.post_setup),
    )


def _format_validation_error(e: ValidationError) -> str:
    lines = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"])
        msg = err["msg"].removeprefix("Value error, ")
        lines.append(f"{loc}: {msg}" if loc else msg)
    return "Invalid configuration: " + "; ".join(lines)


# ---------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------

def find_config_file(directory: str | Path) -> Optional[ConfigFileInfo]:
    """First of dev.yml, dev.yaml, dev.json that exists in `directory`."""
    directory = Path(directory)
    for name, fmt in CONFIG_FILES:
        candidate = directory / name
        if candidate.is_file():
            return ConfigFileInfo(path=candidate, format=fmt)
    return None


def load_config(directory: str | Path) -> Optional[Config]:
    """
    Load and validate the dev configuration in `directory`.

    Returns None when there is no config file.

    Raises:
        ConfigError: If the file cannot be read, parsed, or validated.
    """
    info = find_config_file(directory)
    if info is None:
        return None

    logger.debug("Loading config from %s", info.path)
    try:
        raw = info.path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {info.path}: {e}") from e

    try:
        data = yaml.safe_load(raw) if info.format == "yaml" else json.loads(raw)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(
            f"Failed to parse {info.format.upper()} configuration file: {e}"
        ) from e

    config = validate_config(data)
    logger.info("Loaded %s with %d setup steps", info.path.name, len(config.setup_steps))
    return config


def infer_config(directory: str | Path) -> Optional[Config]:
    """Fallback when there is no config file but a package.json exists."""
    if not (Path(directory) / "package.json").is_file():
        return None
    return Config(
        version=SUPPORTED_VERSION,
        setup_steps=(
            Step(name="Install npm dependencies", type="package-manager", command="install"),
        ),
    )


def supported_config_files() -> List[str]:
    return [name for name, _ in CONFIG_FILES]


def config_exists(directory: str | Path) -> bool:
    return find_config_file(directory) is not None
