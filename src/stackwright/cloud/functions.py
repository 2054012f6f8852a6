"""Lambda function invocation."""

from __future__ import annotations

import json
import logging

from botocore.exceptions import BotoCoreError, ClientError

from stackwright.errors import BackendError, UnhandledFunctionError

logger = logging.getLogger(__name__)


def invoke_function(name: str, payload: str | None, session) -> str:
    """Invoke a Lambda function synchronously and return its response payload.

    Args:
        name: Function name or ARN.
        payload: JSON event string; an empty object is sent when omitted.
        session: boto3 Session.

    Raises:
        UnhandledFunctionError: the function itself raised (``FunctionError`` set).
        BackendError: the invoke call failed.
    """
    if payload:
        try:
            json.loads(payload)
        except ValueError as exc:
            raise BackendError(f"event for {name} is not valid JSON: {exc}") from exc

    client = session.client("lambda")
    logger.debug("Invoking lambda %s with payload: %s", name, payload)
    try:
        response = client.invoke(
            FunctionName=name,
            InvocationType="RequestResponse",
            Payload=(payload or "{}").encode(),
        )
    except (ClientError, BotoCoreError) as exc:
        raise BackendError(f"{name}: {exc}") from exc

    body = response["Payload"].read().decode("utf-8")
    if response.get("FunctionError"):
        raise UnhandledFunctionError(name, body)
    return body
