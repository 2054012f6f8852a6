"""Job dispatcher — turns a Job into per-stack backend calls.

An invocation moves through ``idle -> resolving -> rendering -> executing ->
done``. Only an unknown stack name ends the job before anything runs. After
that every stack is independent: a failure in any phase is recorded as a
TaskOutcome and its siblings carry on.

Generate, deploy, update, validate and terminate run one stack at a time.
Status, outputs and set-policy are read-only and fan out over a thread pool,
joined before the invocation returns.
"""

# ruff: noqa: T201 — print is used for user-facing command output

from __future__ import annotations

import enum
import json
import logging
import sys
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TextIO

from stackwright.backends.base import StackBackend
from stackwright.errors import ConfigError, StackNotFoundError, StackwrightError
from stackwright.models import (
    FAN_OUT_REQUESTS,
    RENDER_REQUESTS,
    InvocationSummary,
    Job,
    Phase,
    RequestKind,
    TaskOutcome,
)
from stackwright.registry import StackRegistry
from stackwright.renderer import TemplateRenderer
from stackwright.source import parse_source

logger = logging.getLogger(__name__)


class State(enum.StrEnum):
    IDLE = "idle"
    RESOLVING = "resolving"
    RENDERING = "rendering"
    EXECUTING = "executing"
    DONE = "done"


def expand_targets(job: Job, registry: StackRegistry) -> tuple[dict[str, str], list[str]]:
    """Compute the target set for a job.

    Explicit targets always win over configured defaults. With ``all_stacks``
    every configured stack is added; for operations that render, stacks
    without a source are skipped rather than failed.

    Returns:
        (targets, skipped) where targets maps stack id -> override location.

    Raises:
        StackNotFoundError: an explicit target is not in the registry.
    """
    targets: dict[str, str] = {}
    for stack_id, location in job.target_stacks.items():
        if stack_id not in registry:
            raise StackNotFoundError(stack_id, f"stack [{stack_id}] not found in config")
        targets[stack_id] = location

    skipped: list[str] = []
    if job.all_stacks:
        needs_source = job.request in RENDER_REQUESTS
        configured = registry.configured_sources()
        for stack_id in registry:
            if stack_id in targets:
                continue
            if needs_source and stack_id not in configured:
                skipped.append(stack_id)
                continue
            targets[stack_id] = ""

    return targets, skipped


class Dispatcher:
    """Executes jobs against one registry, backend and renderer."""

    def __init__(
        self,
        registry: StackRegistry,
        backend: StackBackend,
        renderer: TemplateRenderer,
        out: TextIO | None = None,
    ) -> None:
        self.registry = registry
        self.backend = backend
        self.renderer = renderer
        self.out = out or sys.stdout
        self.state = State.IDLE
        self._print_lock = threading.Lock()
        self._handlers: dict[RequestKind, Callable[[str], str]] = {
            RequestKind.GENERATE: self._generate,
            RequestKind.DEPLOY: self._deploy,
            RequestKind.UPDATE: self._update,
            RequestKind.VALIDATE: self._validate,
            RequestKind.TERMINATE: self._terminate,
            RequestKind.STATUS: self._status,
            RequestKind.OUTPUTS: self._outputs,
            RequestKind.SET_POLICY: self._set_policy,
        }

    def _enter(self, state: State) -> None:
        logger.debug("Dispatcher state: %s -> %s", self.state, state)
        self.state = state

    def _print(self, text: str) -> None:
        with self._print_lock:
            print(text, file=self.out)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, job: Job) -> InvocationSummary:
        summary = InvocationSummary(request=job.request)
        self._enter(State.RESOLVING)

        if job.request is RequestKind.EXPORT:
            self._enter(State.EXECUTING)
            summary.outcomes.append(self._guard("exports", Phase.EXECUTE, self._exports))
            self._enter(State.DONE)
            return summary

        if job.request not in self._handlers:
            summary.fatal_error = f"{job.request} is not dispatched per stack"
            self._enter(State.DONE)
            return summary

        try:
            targets, skipped = expand_targets(job, self.registry)
        except StackwrightError as exc:
            logger.error("%s", exc)
            summary.fatal_error = str(exc)
            self._enter(State.DONE)
            return summary

        for stack_id in skipped:
            logger.warning("Skipping [%s]: no source configured", stack_id)

        if not targets:
            if job.request in RENDER_REQUESTS and not job.all_stacks:
                exc = StackNotFoundError("", f"no stack specified for {job.request}")
                logger.error("%s", exc)
                summary.fatal_error = str(exc)
            elif job.request is RequestKind.TERMINATE:
                logger.warning("No stack specified for termination")
            else:
                logger.warning("No stacks to %s", job.request)
            self._enter(State.DONE)
            return summary

        if job.request in RENDER_REQUESTS:
            summary.outcomes.extend(self._run_rendered(job.request, targets))
        elif job.request in FAN_OUT_REQUESTS:
            self._enter(State.EXECUTING)
            summary.outcomes.extend(self._fan_out(job.request, list(targets)))
        else:
            self._enter(State.EXECUTING)
            summary.outcomes.extend(self._sequential(job.request, list(targets)))

        self._enter(State.DONE)
        return summary

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _guard(self, stack_id: str, phase: Phase, fn: Callable[[], str]) -> TaskOutcome:
        """Run fn at the task boundary and turn any error into a failed outcome."""
        try:
            detail = fn()
        except StackwrightError as exc:
            logger.error("[%s] %s failed: %s", stack_id, phase, exc)
            return TaskOutcome(
                stack=stack_id,
                phase=phase,
                success=False,
                detail=str(exc),
                error_kind=type(exc).__name__,
            )
        except Exception as exc:
            logger.exception("[%s] %s raised an unexpected error", stack_id, phase)
            return TaskOutcome(
                stack=stack_id,
                phase=phase,
                success=False,
                detail=str(exc),
                error_kind=type(exc).__name__,
            )
        return TaskOutcome(stack=stack_id, phase=phase, success=True, detail=detail or "")

    def _resolve(self, stack_id: str, override: str) -> str:
        location = self.registry.resolve(stack_id, override)
        source = parse_source(location, self.renderer.files)
        self.registry.set_source(stack_id, source.location)
        return f"{source.kind}: {source.location}"

    def _run_rendered(self, request: RequestKind, targets: dict[str, str]) -> list[TaskOutcome]:
        outcomes: list[TaskOutcome] = []

        resolved: list[str] = []
        for stack_id, override in targets.items():
            outcome = self._guard(
                stack_id, Phase.RESOLVE, lambda s=stack_id, o=override: self._resolve(s, o)
            )
            outcomes.append(outcome)
            if outcome.success:
                resolved.append(stack_id)

        self._enter(State.RENDERING)
        rendered: list[str] = []
        for stack_id in resolved:
            name = self.registry.cloud_name(stack_id)
            logger.debug("Generating a template for %s", name)
            outcome = self._guard(
                stack_id, Phase.RENDER, lambda s=stack_id: self._render(s)
            )
            outcomes.append(outcome)
            if outcome.success:
                rendered.append(stack_id)

        self._enter(State.EXECUTING)
        outcomes.extend(self._sequential(request, rendered))
        return outcomes

    def _render(self, stack_id: str) -> str:
        self.renderer.render(stack_id)
        return ""

    def _sequential(self, request: RequestKind, stack_ids: list[str]) -> list[TaskOutcome]:
        handler = self._handlers[request]
        return [
            self._guard(stack_id, Phase.EXECUTE, lambda s=stack_id: handler(s))
            for stack_id in stack_ids
        ]

    def _fan_out(self, request: RequestKind, stack_ids: list[str]) -> list[TaskOutcome]:
        handler = self._handlers[request]
        results: dict[str, TaskOutcome] = {}

        with ThreadPoolExecutor(max_workers=len(stack_ids)) as executor:
            future_map = {
                executor.submit(self._guard, stack_id, Phase.EXECUTE, lambda s=stack_id: handler(s)):
                stack_id
                for stack_id in stack_ids
            }
            for future in as_completed(future_map):
                results[future_map[future]] = future.result()

        # report in target order, not completion order
        return [results[stack_id] for stack_id in stack_ids]

    # ------------------------------------------------------------------
    # Per-stack operations
    # ------------------------------------------------------------------

    def _generate(self, stack_id: str) -> str:
        self._print(self.registry[stack_id].rendered_template)
        return "generated"

    def _deploy(self, stack_id: str) -> str:
        stack = self.registry[stack_id]
        name = self.registry.cloud_name(stack_id)
        logger.info("Deploying %s", name)
        self.backend.create(name, stack.rendered_template, stack)
        self._print(f"{name}: deployed")
        return "deployed"

    def _update(self, stack_id: str) -> str:
        stack = self.registry[stack_id]
        name = self.registry.cloud_name(stack_id)
        logger.info("Updating %s", name)
        self.backend.update(name, stack.rendered_template, stack)
        self._print(f"{name}: updated")
        return "updated"

    def _validate(self, stack_id: str) -> str:
        name = self.registry.cloud_name(stack_id)
        self._print(f"Validating template for {name}")
        description = self.backend.validate(self.registry[stack_id].rendered_template)
        self._print(f"{name}: valid template{f' ({description})' if description else ''}")
        return "valid"

    def _terminate(self, stack_id: str) -> str:
        name = self.registry.cloud_name(stack_id)
        logger.info("Terminating %s", name)
        self.backend.delete(name)
        self._print(f"{name}: deleted")
        return "deleted"

    def _status(self, stack_id: str) -> str:
        stack = self.registry[stack_id]
        name = self.registry.cloud_name(stack_id)
        stack.status = self.backend.describe_status(name)
        self._print(f"{name}: {stack.status}")
        return stack.status.value

    def _outputs(self, stack_id: str) -> str:
        stack = self.registry[stack_id]
        name = self.registry.cloud_name(stack_id)
        stack.outputs = self.backend.describe_outputs(name)
        rendered = json.dumps(
            [{"OutputKey": k, "OutputValue": v} for k, v in stack.outputs], indent=2
        )
        self._print(f"{name}:\n{rendered}")
        return f"{len(stack.outputs)} outputs"

    def _set_policy(self, stack_id: str) -> str:
        stack = self.registry[stack_id]
        name = self.registry.cloud_name(stack_id)
        if not stack.policy:
            raise ConfigError(f"no stack policy configured for [{stack_id}]")
        self.backend.set_policy(name, stack.policy)
        self._print(f"{name}: stack policy set")
        return "policy set"

    def _exports(self) -> str:
        exports = self.backend.list_exports()
        for export_name, value, exporter in exports:
            self._print(f"{export_name}\t{value}\t{exporter}")
        return f"{len(exports)} exports"
