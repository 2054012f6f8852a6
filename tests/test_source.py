"""Tests for source descriptor parsing."""

import pytest

from stackwright.errors import MalformedSourceError, UnresolvedStackError
from stackwright.models import SourceKind
from stackwright.source import classify, parse_s3_uri, parse_source


class TestParseSource:
    @pytest.mark.parametrize(
        "descriptor, stack_id, location",
        [
            ("vpc::templates/vpc.yml", "vpc", "templates/vpc.yml"),
            ("db::s3://bucket/db.yml", "db", "s3://bucket/db.yml"),
            ("app::https://example.com/app.yml", "app", "https://example.com/app.yml"),
            ("::templates/x.yml", "", "templates/x.yml"),
        ],
    )
    def test_splits_on_separator(self, descriptor, stack_id, location):
        src = parse_source(descriptor)
        assert src.stack_id == stack_id
        assert src.location == location

    def test_splits_on_first_separator_only(self):
        src = parse_source("vpc::weird::name.yml")
        assert src.stack_id == "vpc"
        assert src.location == "weird::name.yml"

    def test_bare_location_has_no_stack_id(self):
        src = parse_source("templates/vpc.yml")
        assert src.stack_id == ""
        assert src.location == "templates/vpc.yml"

    @pytest.mark.parametrize("descriptor", ["", "   ", "vpc::"])
    def test_empty_descriptor_or_location(self, descriptor):
        with pytest.raises(MalformedSourceError):
            parse_source(descriptor)

    def test_source_is_immutable(self):
        src = parse_source("vpc::a.yml")
        with pytest.raises(Exception):
            src.location = "b.yml"


class TestClassify:
    @pytest.mark.parametrize(
        "location, kind",
        [
            ("http://example.com/t.yml", SourceKind.HTTP),
            ("https://example.com/t.yml", SourceKind.HTTP),
            ("s3://bucket/key.yml", SourceKind.OBJECT_STORE),
            ("templates/t.yml", SourceKind.LOCAL),
            ("/abs/t.yml", SourceKind.LOCAL),
        ],
    )
    def test_without_repository(self, location, kind):
        assert classify(location) is kind

    def test_plain_path_is_repo_path_when_repository_active(self):
        assert classify("templates/t.yml", {}) is SourceKind.REPO_PATH

    def test_urls_ignore_repository(self):
        assert classify("s3://bucket/key", {"s3://bucket/key": ""}) is SourceKind.OBJECT_STORE


class TestRepoPaths:
    files = {"templates/vpc.yml": "Resources: {}", "config.yml": "project: x"}

    def test_found_in_file_map(self):
        src = parse_source("vpc::templates/vpc.yml", self.files)
        assert src.kind is SourceKind.REPO_PATH
        assert src.location == "templates/vpc.yml"

    def test_leading_dot_slash_is_normalised(self):
        src = parse_source("vpc::./templates/vpc.yml", self.files)
        assert src.location == "templates/vpc.yml"

    def test_missing_path(self):
        with pytest.raises(UnresolvedStackError) as exc_info:
            parse_source("vpc::templates/nope.yml", self.files)
        assert "templates/nope.yml" in str(exc_info.value)


class TestParseS3Uri:
    def test_bucket_and_key(self):
        assert parse_s3_uri("s3://bucket/path/to/t.yml") == ("bucket", "path/to/t.yml")

    @pytest.mark.parametrize("uri", ["s3://bucket", "s3://bucket/", "s3:///key"])
    def test_incomplete(self, uri):
        with pytest.raises(MalformedSourceError):
            parse_s3_uri(uri)
