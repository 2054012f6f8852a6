"""Data models for stackwright invocations."""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field


class SourceKind(enum.StrEnum):
    """Where a template source lives, derived from the location syntax."""

    LOCAL = "local"
    HTTP = "http"
    OBJECT_STORE = "object_store"
    REPO_PATH = "repo_path"


class StackStatus(enum.StrEnum):
    """Deployment status of a stack, fetched fresh on every query."""

    UNKNOWN = "unknown"
    NOT_DEPLOYED = "not_deployed"
    DEPLOYED = "deployed"
    FAILED = "failed"


class RequestKind(enum.StrEnum):
    """Operation requested for one command invocation."""

    GENERATE = "generate"
    DEPLOY = "deploy"
    UPDATE = "update"
    VALIDATE = "validate"
    TERMINATE = "terminate"
    STATUS = "status"
    OUTPUTS = "outputs"
    SET_POLICY = "set_policy"
    INVOKE = "invoke"
    EXPORT = "export"


# Operations fanned out across a thread pool; everything else runs one stack at a time.
FAN_OUT_REQUESTS = frozenset({RequestKind.STATUS, RequestKind.OUTPUTS, RequestKind.SET_POLICY})

# Operations that need a rendered template before the backend call.
RENDER_REQUESTS = frozenset(
    {RequestKind.GENERATE, RequestKind.DEPLOY, RequestKind.UPDATE, RequestKind.VALIDATE}
)


class StackSource(BaseModel):
    """A parsed `[stack::]location` descriptor."""

    model_config = ConfigDict(frozen=True)

    stack_id: str = ""
    location: str
    kind: SourceKind


class Stack(BaseModel):
    """A named, independently deployable unit plus its per-run state."""

    id: str
    source: str = ""
    rendered_template: str = ""
    status: StackStatus = StackStatus.UNKNOWN
    outputs: list[tuple[str, str]] = Field(default_factory=list)
    # configuration values consumed by the renderer and the backend
    parameters: dict[str, str] = Field(default_factory=dict)
    tags: dict[str, str] = Field(default_factory=dict)
    capabilities: list[str] = Field(default_factory=list)
    policy: dict | None = None
    variables: dict = Field(default_factory=dict)
    timeout: int | None = None  # minutes, passed to create-stack
    role_arn: str = ""
    termination_protection: bool = False


class Job(BaseModel):
    """Resolved request and targets for a single invocation."""

    request: RequestKind
    target_stacks: dict[str, str] = Field(default_factory=dict)
    all_stacks: bool = False


class Phase(enum.StrEnum):
    RESOLVE = "resolve"
    RENDER = "render"
    EXECUTE = "execute"


class TaskOutcome(BaseModel):
    """Result of one phase for one stack."""

    stack: str
    phase: Phase
    success: bool
    detail: str = ""
    error_kind: str = ""


class InvocationSummary(BaseModel):
    """Everything that happened during one invocation."""

    request: RequestKind
    outcomes: list[TaskOutcome] = Field(default_factory=list)
    fatal_error: str = ""

    @property
    def failed(self) -> list[TaskOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def exit_code(self) -> int:
        return 1 if self.fatal_error or self.failed else 0
