"""StackBackend protocol — the calls the dispatcher makes against a cloud."""

from __future__ import annotations

from typing import Protocol

from stackwright.models import Stack, StackStatus


class StackBackend(Protocol):
    """Cloud stack-management service.

    Every method raises ``BackendError`` on failure; the dispatcher reports the
    message verbatim against the stack it was called for.
    """

    def create(self, name: str, template: str, stack: Stack) -> None:
        """Create ``name`` from a rendered template and wait for completion."""
        ...

    def update(self, name: str, template: str, stack: Stack) -> None:
        """Update ``name`` in place and wait for completion."""
        ...

    def delete(self, name: str) -> None: ...

    def validate(self, template: str) -> str:
        """Validate a rendered template and return a short description."""
        ...

    def describe_status(self, name: str) -> StackStatus: ...

    def describe_outputs(self, name: str) -> list[tuple[str, str]]: ...

    def set_policy(self, name: str, policy: dict) -> None: ...

    def list_exports(self) -> list[tuple[str, str, str]]:
        """Return (name, value, exporting stack id) for every export."""
        ...
