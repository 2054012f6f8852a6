"""`stackwright init` — lays out a new project directory."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_TEMPLATE = """\
# stackwright project configuration
project: {project}
region: {region}

global:
  tags:
    project: {project}
  variables: {{}}

stacks:
  # vpc:
  #   source: templates/vpc.yml
  #   parameters:
  #     - VpcCidr: 10.0.0.0/16
  #   capabilities: [CAPABILITY_IAM]
  #   variables:
  #     env: dev
"""


def config_template(project: str, region: str) -> str:
    return CONFIG_TEMPLATE.format(project=project, region=region)


def init_project(target: Path, project: str, region: str, *, write_config: bool = True) -> list[Path]:
    """Create config.yml, templates/ and files/ under target.

    Existing directories are left alone. Returns the paths that were created.
    """
    created: list[Path] = []
    target.mkdir(parents=True, exist_ok=True)

    config_path = target / "config.yml"
    if write_config:
        config_path.write_text(config_template(project, region))
        created.append(config_path)
        logger.debug("Wrote %s", config_path)

    for name in ("templates", "files"):
        directory = target / name
        if directory.exists():
            logger.warning("[%s] already exists, not created", directory)
            continue
        directory.mkdir()
        created.append(directory)

    return created
