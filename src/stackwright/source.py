"""Source descriptor parsing.

A descriptor has the form ``[stack::]location``. The location decides where the
template comes from::

    vpc::templates/vpc.yml          local file
    vpc::https://example.com/vpc    HTTP(S) download
    vpc::s3://bucket/vpc.yml        S3 object
    vpc::templates/vpc.yml          path inside the fetched repo (with --repo)
"""

from __future__ import annotations

from collections.abc import Mapping

from stackwright.errors import MalformedSourceError, UnresolvedStackError
from stackwright.models import SourceKind, StackSource

SEPARATOR = "::"


def classify(location: str, files: Mapping[str, str] | None = None) -> SourceKind:
    """Return the SourceKind for a location string."""
    if location.startswith(("http://", "https://")):
        return SourceKind.HTTP
    if location.startswith("s3://"):
        return SourceKind.OBJECT_STORE
    if files is not None:
        return SourceKind.REPO_PATH
    return SourceKind.LOCAL


def repo_key(location: str) -> str:
    """Normalise a location into a key of the fetched file map."""
    key = location
    while key.startswith("./"):
        key = key[2:]
    return key.lstrip("/")


def parse_source(descriptor: str, files: Mapping[str, str] | None = None) -> StackSource:
    """Parse a source descriptor.

    Args:
        descriptor: ``stack::location`` or a bare location.
        files: File map of the active repository, if any. When given, plain
            paths are looked up in it instead of on the local filesystem.

    Raises:
        MalformedSourceError: descriptor or location is empty.
        UnresolvedStackError: a repository path is not in ``files``.
    """
    if not descriptor or not descriptor.strip():
        raise MalformedSourceError("empty source descriptor")

    stack_id, sep, location = descriptor.partition(SEPARATOR)
    if not sep:
        stack_id, location = "", descriptor

    if not location:
        raise MalformedSourceError(f"no location in source descriptor [{descriptor}]")

    kind = classify(location, files)
    if kind is SourceKind.REPO_PATH:
        key = repo_key(location)
        if key not in files:
            raise UnresolvedStackError(location)
        location = key

    return StackSource(stack_id=stack_id, location=location, kind=kind)


def parse_s3_uri(uri: str) -> tuple[str, str]:
    """Split ``s3://bucket/key`` into (bucket, key)."""
    bucket, _, key = uri.removeprefix("s3://").partition("/")
    if not bucket or not key:
        raise MalformedSourceError(f"expected s3://bucket/key, got [{uri}]")
    return bucket, key
