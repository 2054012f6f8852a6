"""Stack registry — the named stacks of one project and their per-run state."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping

from stackwright.config import ProjectConfig
from stackwright.errors import StackNotFoundError
from stackwright.models import Stack

logger = logging.getLogger(__name__)


class StackRegistry:
    """Stacks keyed by id, built from a ProjectConfig.

    Concurrent tasks may each mutate the entry for their own stack id; entries
    are never added or removed after construction.
    """

    def __init__(self, config: ProjectConfig, files: Mapping[str, str] | None = None) -> None:
        self.project = config.project
        self.region = config.region
        self.global_tags = dict(config.global_.tags)
        self.global_variables = dict(config.global_.variables)
        # file map of the repository the config came from, if any
        self.files = files
        self._stacks: dict[str, Stack] = {}

        for stack_id, sc in config.stacks.items():
            self._stacks[stack_id] = Stack(
                id=stack_id,
                source=sc.source,
                parameters=sc.parameters,
                tags={**self.global_tags, **sc.tags},
                capabilities=sc.capabilities,
                policy=sc.policy,
                variables=sc.variables,
                timeout=sc.timeout,
                role_arn=sc.role_arn,
                termination_protection=sc.termination_protection,
            )

    def __contains__(self, stack_id: object) -> bool:
        return stack_id in self._stacks

    def __getitem__(self, stack_id: str) -> Stack:
        try:
            return self._stacks[stack_id]
        except KeyError:
            raise StackNotFoundError(stack_id, f"stack [{stack_id}] not found in config") from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._stacks)

    def __len__(self) -> int:
        return len(self._stacks)

    def cloud_name(self, stack_id: str) -> str:
        """Name of the stack in the backend: ``<project>-<stack>``."""
        return f"{self.project}-{stack_id}"

    def configured_sources(self) -> dict[str, str]:
        """Ids and default sources of every stack that has one."""
        return {sid: s.source for sid, s in self._stacks.items() if s.source}

    def resolve(self, stack_id: str, override: str = "") -> str:
        """Return the effective source location for a stack.

        Precedence: a non-empty override for this invocation, then the
        configured default. A bare stack name (empty override) is only usable
        when the stack has a default.

        Raises:
            StackNotFoundError: the id is unknown or no source is usable.
        """
        stack = self[stack_id]
        if override:
            return override
        if stack.source:
            return stack.source
        raise StackNotFoundError(stack_id)

    def set_source(self, stack_id: str, location: str) -> None:
        stack = self[stack_id]
        if stack.source != location:
            logger.debug("Source for [%s] overridden: %s -> %s", stack_id, stack.source, location)
        stack.source = location

    def template_values(self, stack_id: str) -> dict:
        """Values exposed to the template renderer for one stack."""
        stack = self[stack_id]
        return {
            "project": self.project,
            "region": self.region,
            "stack": stack_id,
            "stack_name": self.cloud_name(stack_id),
            "vars": {**self.global_variables, **stack.variables},
            "parameters": stack.parameters,
            "tags": stack.tags,
        }
