"""Project configuration loaded from YAML.

A project file looks like::

    project: demo
    region: eu-west-1
    global:
      tags: {owner: ops}
      variables: {env: dev}
    stacks:
      vpc:
        source: templates/vpc.yml
        parameters:
          - VpcCidr: 10.0.0.0/16
        capabilities: [CAPABILITY_IAM]
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import yaml
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, field_validator

from stackwright.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = "config.yml"


def _flatten_pairs(value: object) -> dict[str, str]:
    """Accept a mapping or a list of single-key mappings and return a flat dict."""
    if value is None:
        return {}
    if isinstance(value, dict):
        return {str(k): str(v) for k, v in value.items()}
    if isinstance(value, list):
        flat: dict[str, str] = {}
        for item in value:
            if not isinstance(item, dict):
                raise ValueError(f"expected a mapping, got {item!r}")
            flat.update({str(k): str(v) for k, v in item.items()})
        return flat
    raise ValueError(f"expected a mapping or a list of mappings, got {value!r}")


Pairs = Annotated[dict[str, str], BeforeValidator(_flatten_pairs)]


class GlobalConfig(BaseModel):
    tags: Pairs = Field(default_factory=dict)
    variables: dict = Field(default_factory=dict)


class StackConfig(BaseModel):
    """One entry under ``stacks:``."""

    source: str = ""
    parameters: Pairs = Field(default_factory=dict)
    tags: Pairs = Field(default_factory=dict)
    capabilities: list[str] = Field(default_factory=list)
    policy: dict | None = None
    variables: dict = Field(default_factory=dict)
    timeout: int | None = None
    role_arn: str = ""
    termination_protection: bool = False


class ProjectConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project: str
    region: str = ""
    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    stacks: dict[str, StackConfig] = Field(default_factory=dict)

    @field_validator("stacks", mode="before")
    @classmethod
    def _empty_stacks(cls, value: object) -> object:
        # `stacks:` or `vpc:` with nothing under it parses as None
        if value is None:
            return {}
        if isinstance(value, dict):
            return {k: (v if v is not None else {}) for k, v in value.items()}
        return value


def parse_config(text: str, origin: str = "<string>") -> ProjectConfig:
    """Parse YAML text into a ProjectConfig."""
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"{origin}: invalid YAML: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"{origin}: configuration must be a mapping")

    try:
        cfg = ProjectConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"{origin}: {exc}") from exc

    logger.debug("Loaded %d stacks from %s: %s", len(cfg.stacks), origin, list(cfg.stacks))
    return cfg


def load_config(path: Path) -> ProjectConfig:
    """Read and parse a configuration file from disk."""
    try:
        text = path.read_text()
    except OSError as exc:
        raise ConfigError(f"unable to read config [{path}]: {exc}") from exc
    return parse_config(text, origin=str(path))
