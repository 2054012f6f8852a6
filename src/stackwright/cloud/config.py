"""AWS settings loaded from flags and environment variables."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field


class AwsSettings(BaseModel):
    """Profile and region used to build boto3 sessions."""

    profile: str | None = Field(default=None, description="Named AWS profile")
    region: str | None = Field(default=None, description="AWS region")

    @classmethod
    def from_env(cls, profile: str | None = None, region: str | None = None) -> AwsSettings:
        """Explicit values win over AWS_PROFILE / AWS_REGION / AWS_DEFAULT_REGION."""
        return cls(
            profile=profile or os.environ.get("AWS_PROFILE") or None,
            region=(
                region
                or os.environ.get("AWS_REGION")
                or os.environ.get("AWS_DEFAULT_REGION")
                or None
            ),
        )

    def session(self):
        """Return a boto3 Session for these settings."""
        import boto3

        return boto3.Session(profile_name=self.profile, region_name=self.region)
