"""
Pytest configuration and fixtures for stackwright tests.
"""

import threading
from pathlib import Path

import pytest

from stackwright.config import parse_config
from stackwright.errors import BackendError
from stackwright.models import StackStatus
from stackwright.registry import StackRegistry
from stackwright.renderer import TemplateRenderer

SAMPLE_CONFIG = """
project: demo
region: eu-west-1
global:
  tags:
    owner: ops
  variables:
    env: dev
stacks:
  vpc:
    source: templates/vpc.yml
    parameters:
      - VpcCidr: 10.0.0.0/16
    capabilities: [CAPABILITY_IAM]
  db:
    variables:
      engine: postgres
  app:
    source: templates/app.yml
    policy:
      Statement:
        - Effect: Allow
          Action: "Update:*"
          Principal: "*"
          Resource: "*"
"""


class FakeBackend:
    """In-memory StackBackend recording every call."""

    def __init__(self, fail: dict[str, str] | None = None) -> None:
        self.fail = fail or {}
        self.calls: list[tuple[str, str]] = []
        self.threads: set[str] = set()
        self.statuses: dict[str, StackStatus] = {}
        self.outputs: dict[str, list[tuple[str, str]]] = {}
        self._lock = threading.Lock()

    def _record(self, op: str, name: str) -> None:
        with self._lock:
            self.calls.append((op, name))
            self.threads.add(threading.current_thread().name)
        if name in self.fail:
            raise BackendError(self.fail[name])

    def create(self, name, template, stack):
        self._record("create", name)

    def update(self, name, template, stack):
        self._record("update", name)

    def delete(self, name):
        self._record("delete", name)

    def validate(self, template):
        self._record("validate", template.strip())
        return "checked"

    def describe_status(self, name):
        self._record("status", name)
        return self.statuses.get(name, StackStatus.DEPLOYED)

    def describe_outputs(self, name):
        self._record("outputs", name)
        return self.outputs.get(name, [])

    def set_policy(self, name, policy):
        self._record("set_policy", name)

    def list_exports(self):
        self._record("exports", "")
        return [("demo-VpcId", "vpc-123", "arn:aws:cloudformation:stack/demo-vpc")]

    def names(self, op: str) -> list[str]:
        return [name for call_op, name in self.calls if call_op == op]


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project directory with config.yml and two templates."""
    templates = tmp_path / "templates"
    templates.mkdir()
    (templates / "vpc.yml").write_text("Description: {{ stack_name }} in {{ vars.env }}\n")
    (templates / "app.yml").write_text("Description: app for {{ project }}\n")
    (templates / "broken.yml").write_text("Description: {{ vars.missing }}\n")
    (tmp_path / "config.yml").write_text(SAMPLE_CONFIG)
    return tmp_path


@pytest.fixture
def registry() -> StackRegistry:
    return StackRegistry(parse_config(SAMPLE_CONFIG))


@pytest.fixture
def renderer(registry: StackRegistry, project_dir: Path) -> TemplateRenderer:
    return TemplateRenderer(registry, base_dir=project_dir)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
