"""S3 template download."""

from __future__ import annotations

import logging

from stackwright.source import parse_s3_uri

logger = logging.getLogger(__name__)


def read_object(uri: str, session) -> str:
    """Return the body of ``s3://bucket/key`` decoded as UTF-8."""
    bucket, key = parse_s3_uri(uri)
    s3 = session.client("s3")
    logger.debug("Fetching s3 object: bucket=%s key=%s", bucket, key)
    response = s3.get_object(Bucket=bucket, Key=key)
    return response["Body"].read().decode("utf-8")
