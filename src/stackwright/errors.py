"""Exception hierarchy shared by every stackwright component."""

from __future__ import annotations


class StackwrightError(Exception):
    """Base class for all errors reported to the user."""


class ConfigError(StackwrightError):
    """Raised when the project configuration cannot be loaded."""


class MalformedSourceError(StackwrightError):
    """Raised for an empty descriptor or an empty location."""


class StackNotFoundError(StackwrightError):
    """Raised when a stack id is unknown or has no usable source."""

    def __init__(self, stack_id: str, message: str = "") -> None:
        self.stack_id = stack_id
        super().__init__(message or f"no usable source for stack [{stack_id}]")


class UnresolvedStackError(StackwrightError):
    """Raised when a repository path is absent from the fetched tree."""

    def __init__(self, location: str) -> None:
        self.location = location
        super().__init__(f"[{location}] not found in fetched repository")


class FetchError(StackwrightError):
    """Raised when a repository clone fails."""


class AuthError(FetchError):
    """Raised when repository credentials cannot be loaded or used."""


class RenderError(StackwrightError):
    """Raised when a stack template cannot be fetched or expanded."""

    def __init__(self, stack_id: str, cause: str) -> None:
        self.stack_id = stack_id
        super().__init__(f"failed to render [{stack_id}]: {cause}")


class BackendError(StackwrightError):
    """Raised for any cloud backend failure. The message is reported verbatim."""


class UnhandledFunctionError(BackendError):
    """Raised when a Lambda function fails inside its own code."""

    def __init__(self, function: str, payload: str) -> None:
        self.function = function
        self.payload = payload
        super().__init__(
            f"Unhandled Exception: potential issue with Lambda function logic for {function}: "
            f"{payload}"
        )
