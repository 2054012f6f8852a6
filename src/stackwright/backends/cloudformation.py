"""CloudFormationBackend — StackBackend implemented with boto3."""

from __future__ import annotations

import json
import logging

from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from stackwright.errors import BackendError
from stackwright.models import Stack, StackStatus

logger = logging.getLogger(__name__)

_FAILED_SUFFIXES = ("_FAILED", "ROLLBACK_COMPLETE")

_WAITER_CONFIG = {"Delay": 10, "MaxAttempts": 360}


def _is_missing(exc: ClientError) -> bool:
    return "does not exist" in exc.response.get("Error", {}).get("Message", "")


def _no_updates(exc: ClientError) -> bool:
    return "No updates are to be performed" in exc.response.get("Error", {}).get("Message", "")


def map_status(raw: str) -> StackStatus:
    """Collapse a CloudFormation StackStatus into a StackStatus."""
    if raw == "DELETE_COMPLETE":
        return StackStatus.NOT_DEPLOYED
    # rolled back to the previous template, still serving
    if raw == "UPDATE_ROLLBACK_COMPLETE":
        return StackStatus.DEPLOYED
    if raw.endswith(_FAILED_SUFFIXES):
        return StackStatus.FAILED
    if raw.endswith("_COMPLETE"):
        return StackStatus.DEPLOYED
    return StackStatus.UNKNOWN


class CloudFormationBackend:
    """Drives AWS CloudFormation through a boto3 session."""

    def __init__(self, session) -> None:
        self.session = session
        self._client = None

    @property
    def client(self):
        if self._client is None:
            self._client = self.session.client("cloudformation")
        return self._client

    def _stack_args(self, name: str, template: str, stack: Stack) -> dict:
        args: dict = {
            "StackName": name,
            "TemplateBody": template,
            "Parameters": [
                {"ParameterKey": k, "ParameterValue": v} for k, v in stack.parameters.items()
            ],
            "Tags": [{"Key": k, "Value": v} for k, v in stack.tags.items()],
        }
        if stack.capabilities:
            args["Capabilities"] = stack.capabilities
        if stack.role_arn:
            args["RoleARN"] = stack.role_arn
        return args

    def _wait(self, waiter_name: str, name: str) -> None:
        try:
            self.client.get_waiter(waiter_name).wait(StackName=name, WaiterConfig=_WAITER_CONFIG)
        except WaiterError as exc:
            raise BackendError(f"{name}: {exc}") from exc

    def create(self, name: str, template: str, stack: Stack) -> None:
        args = self._stack_args(name, template, stack)
        if stack.timeout:
            args["TimeoutInMinutes"] = stack.timeout
        if stack.policy:
            args["StackPolicyBody"] = json.dumps(stack.policy)
        args["EnableTerminationProtection"] = stack.termination_protection

        logger.debug("Calling create_stack for %s", name)
        try:
            self.client.create_stack(**args)
        except (ClientError, BotoCoreError) as exc:
            raise BackendError(f"{name}: {exc}") from exc

        logger.info("Waiting for stack %s to reach CREATE_COMPLETE", name)
        self._wait("stack_create_complete", name)

    def update(self, name: str, template: str, stack: Stack) -> None:
        logger.debug("Calling update_stack for %s", name)
        try:
            self.client.update_stack(**self._stack_args(name, template, stack))
        except ClientError as exc:
            if _no_updates(exc):
                logger.info("No updates to be performed for %s", name)
                return
            raise BackendError(f"{name}: {exc}") from exc
        except BotoCoreError as exc:
            raise BackendError(f"{name}: {exc}") from exc

        logger.info("Waiting for stack %s to reach UPDATE_COMPLETE", name)
        self._wait("stack_update_complete", name)

    def delete(self, name: str) -> None:
        logger.debug("Calling delete_stack for %s", name)
        try:
            self.client.delete_stack(StackName=name)
        except (ClientError, BotoCoreError) as exc:
            raise BackendError(f"{name}: {exc}") from exc

        logger.info("Waiting for stack %s to reach DELETE_COMPLETE", name)
        self._wait("stack_delete_complete", name)

    def validate(self, template: str) -> str:
        try:
            response = self.client.validate_template(TemplateBody=template)
        except (ClientError, BotoCoreError) as exc:
            raise BackendError(str(exc)) from exc
        return response.get("Description", "")

    def describe_status(self, name: str) -> StackStatus:
        try:
            response = self.client.describe_stacks(StackName=name)
        except ClientError as exc:
            if _is_missing(exc):
                return StackStatus.NOT_DEPLOYED
            raise BackendError(f"{name}: {exc}") from exc
        except BotoCoreError as exc:
            raise BackendError(f"{name}: {exc}") from exc

        stacks = response.get("Stacks", [])
        if not stacks:
            return StackStatus.NOT_DEPLOYED
        raw = stacks[0].get("StackStatus", "")
        logger.debug("Stack %s status: %s", name, raw)
        return map_status(raw)

    def describe_outputs(self, name: str) -> list[tuple[str, str]]:
        try:
            response = self.client.describe_stacks(StackName=name)
        except (ClientError, BotoCoreError) as exc:
            raise BackendError(f"{name}: {exc}") from exc

        outputs: list[tuple[str, str]] = []
        for s in response.get("Stacks", []):
            for o in s.get("Outputs", []):
                outputs.append((o["OutputKey"], o["OutputValue"]))
        return outputs

    def set_policy(self, name: str, policy: dict) -> None:
        try:
            self.client.set_stack_policy(StackName=name, StackPolicyBody=json.dumps(policy))
        except (ClientError, BotoCoreError) as exc:
            raise BackendError(f"{name}: {exc}") from exc

    def list_exports(self) -> list[tuple[str, str, str]]:
        exports: list[tuple[str, str, str]] = []
        try:
            for page in self.client.get_paginator("list_exports").paginate():
                for e in page.get("Exports", []):
                    exports.append((e["Name"], e["Value"], e.get("ExportingStackId", "")))
        except (ClientError, BotoCoreError) as exc:
            raise BackendError(str(exc)) from exc
        return exports
