"""Template renderer — fetches a stack's raw template and expands it.

Templates are Jinja2 documents rendered with the stack's configuration values::

    Parameters:
      Env:
        Default: {{ vars.env }}
    Resources:
      Bucket:
        Properties:
          BucketName: {{ stack_name }}-data
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

import httpx
import jinja2
from botocore.exceptions import BotoCoreError, ClientError

from stackwright.errors import RenderError, StackwrightError
from stackwright.models import SourceKind
from stackwright.registry import StackRegistry
from stackwright.source import classify, repo_key

logger = logging.getLogger(__name__)


class TemplateRenderer:
    """Renders templates for the stacks of one registry.

    Args:
        registry: Stacks and project values.
        session: boto3 Session used for ``s3://`` sources.
        base_dir: Directory relative local sources are resolved against.
        files: File map of the active repository, if any.
    """

    def __init__(
        self,
        registry: StackRegistry,
        session=None,
        base_dir: Path | None = None,
        files: Mapping[str, str] | None = None,
    ) -> None:
        self.registry = registry
        self.session = session
        self.base_dir = base_dir or Path.cwd()
        self.files = files if files is not None else registry.files
        self._env = jinja2.Environment(undefined=jinja2.StrictUndefined, keep_trailing_newline=True)

    def fetch(self, location: str) -> str:
        """Return the raw template text at location."""
        kind = classify(location, self.files)
        logger.debug("Fetching template [%s] (%s)", location, kind)

        if kind is SourceKind.HTTP:
            response = httpx.get(location, follow_redirects=True, timeout=30)
            response.raise_for_status()
            return response.text

        if kind is SourceKind.OBJECT_STORE:
            from stackwright.cloud.s3 import read_object

            if self.session is None:
                from stackwright.cloud.config import AwsSettings

                self.session = AwsSettings.from_env(region=self.registry.region or None).session()

            return read_object(location, self.session)

        if kind is SourceKind.REPO_PATH:
            key = repo_key(location)
            if key not in self.files:
                raise FileNotFoundError(f"[{location}] not found in fetched repository")
            return self.files[key]

        path = Path(location).expanduser()
        if not path.is_absolute():
            path = self.base_dir / path
        return path.read_text()

    def render(self, stack_id: str) -> str:
        """Render one stack and store the result on its registry entry.

        Raises:
            RenderError: the source could not be fetched or expanded.
        """
        stack = self.registry[stack_id]
        if not stack.source:
            raise RenderError(stack_id, "stack has no source")

        try:
            raw = self.fetch(stack.source)
            template = self._env.from_string(raw)
            rendered = template.render(**self.registry.template_values(stack_id))
        except (
            OSError,
            httpx.HTTPError,
            jinja2.TemplateError,
            ClientError,
            BotoCoreError,
            StackwrightError,
        ) as exc:
            raise RenderError(stack_id, str(exc)) from exc

        stack.rendered_template = rendered
        return rendered
