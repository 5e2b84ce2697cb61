"""
Tests for request building.

Validates the method/path table for every operation, name encoding, base
headers and listing parameter validation.
"""
from __future__ import annotations

import pytest

from manta_buckets.errors import InvalidArgument
from manta_buckets.paths import (
    DEFAULT_ACCEPT,
    JSON_STREAM,
    Operation,
    bucket_object_metadata_path,
    bucket_object_path,
    bucket_path,
    build_request,
)


class TestRouteTable:
    """Every operation maps to one method and path."""

    @pytest.mark.parametrize("operation,args,method,path", [
        (Operation.IS_BUCKETS_SUPPORTED, (), "HEAD", "/alice/buckets"),
        (Operation.LIST_BUCKETS, (), "GET", "/alice/buckets"),
        (Operation.CREATE_BUCKET, ("b1",), "PUT", "/alice/buckets/b1"),
        (Operation.HEAD_BUCKET, ("b1",), "HEAD", "/alice/buckets/b1"),
        (Operation.DELETE_BUCKET, ("b1",), "DELETE", "/alice/buckets/b1"),
        (Operation.LIST_BUCKET_OBJECTS, ("b1",), "GET", "/alice/buckets/b1/objects"),
        (Operation.CREATE_BUCKET_OBJECT, ("b1", "o1"), "PUT", "/alice/buckets/b1/objects/o1"),
        (Operation.HEAD_BUCKET_OBJECT, ("b1", "o1"), "HEAD", "/alice/buckets/b1/objects/o1"),
        (Operation.GET_BUCKET_OBJECT, ("b1", "o1"), "GET", "/alice/buckets/b1/objects/o1"),
        (Operation.PUT_BUCKET_OBJECT_METADATA, ("b1", "o1"), "PUT", "/alice/buckets/b1/objects/o1/metadata"),
        (Operation.DELETE_BUCKET_OBJECT, ("b1", "o1"), "DELETE", "/alice/buckets/b1/objects/o1"),
    ])
    def test_method_and_path(self, operation, args, method, path):
        spec = build_request(operation, "alice", *args)
        assert spec.operation is operation
        assert spec.method == method
        assert spec.path == path

    def test_builder_is_deterministic(self):
        """Identical inputs produce identical requests."""
        first = build_request(Operation.GET_BUCKET_OBJECT, "alice", "b1", "o1", headers={"X-A": "1"})
        second = build_request(Operation.GET_BUCKET_OBJECT, "alice", "b1", "o1", headers={"X-A": "1"})
        assert first == second


class TestNameEncoding:
    """Names are percent-encoded like encodeURIComponent."""

    def test_reserved_characters_escaped(self):
        assert bucket_object_path("alice", "b1", "dir/file name.txt") == (
            "/alice/buckets/b1/objects/dir%2Ffile%20name.txt"
        )

    def test_unreserved_marks_kept(self):
        assert bucket_path("alice", "a-b_c.d~e!f*g'h(i)") == "/alice/buckets/a-b_c.d~e!f*g'h(i)"

    def test_unicode_is_utf8_encoded(self):
        assert bucket_object_path("alice", "b1", "café") == "/alice/buckets/b1/objects/caf%C3%A9"

    def test_query_characters_escaped(self):
        assert bucket_object_path("alice", "b1", "a?b#c&d") == "/alice/buckets/b1/objects/a%3Fb%23c%26d"

    def test_metadata_path(self):
        assert bucket_object_metadata_path("alice", "b 1", "o1") == "/alice/buckets/b%201/objects/o1/metadata"


class TestHeaders:
    """Base headers and caller overrides."""

    def test_listing_accepts_json_stream(self):
        assert build_request(Operation.LIST_BUCKETS, "alice").headers == {"accept": JSON_STREAM}
        assert build_request(Operation.LIST_BUCKET_OBJECTS, "alice", "b1").headers["accept"] == JSON_STREAM

    def test_other_operations_accept_json(self):
        assert build_request(Operation.HEAD_BUCKET, "alice", "b1").headers == {"accept": DEFAULT_ACCEPT}

    def test_caller_headers_merged_last_and_lowercased(self):
        spec = build_request(
            Operation.CREATE_BUCKET_OBJECT, "alice", "b1", "o1",
            headers={"Accept": "text/plain", "M-Foo": "bar"},
        )
        assert spec.headers == {"accept": "text/plain", "m-foo": "bar"}


class TestValidation:
    """Invalid identifiers and parameters fail before any request exists."""

    @pytest.mark.parametrize("operation,args", [
        (Operation.CREATE_BUCKET, ("",)),
        (Operation.LIST_BUCKET_OBJECTS, ("",)),
        (Operation.HEAD_BUCKET_OBJECT, ("b1", "")),
        (Operation.GET_BUCKET_OBJECT, ("", "o1")),
    ])
    def test_empty_names_rejected(self, operation, args):
        with pytest.raises(InvalidArgument, match="must not be empty"):
            build_request(operation, "alice", *args)

    def test_missing_name_rejected(self):
        with pytest.raises(InvalidArgument, match="must be a string"):
            build_request(Operation.HEAD_BUCKET, "alice")

    def test_non_string_name_rejected(self):
        with pytest.raises(InvalidArgument, match="must be a string"):
            build_request(Operation.HEAD_BUCKET_OBJECT, "alice", "b1", 42)

    def test_empty_login_rejected(self):
        with pytest.raises(InvalidArgument):
            build_request(Operation.LIST_BUCKETS, "")

    def test_listing_params(self):
        spec = build_request(Operation.LIST_BUCKET_OBJECTS, "alice", "b1", prefix="logs/", limit=10, marker="logs/a")
        assert spec.params == {"prefix": "logs/", "limit": "10", "marker": "logs/a"}

    def test_no_listing_params_by_default(self):
        assert build_request(Operation.LIST_BUCKETS, "alice").params == {}

    @pytest.mark.parametrize("limit", [0, -1, True, "10", 1.5])
    def test_bad_limit_rejected(self, limit):
        with pytest.raises(InvalidArgument, match="limit"):
            build_request(Operation.LIST_BUCKETS, "alice", limit=limit)

    def test_listing_params_on_other_operation_rejected(self):
        with pytest.raises(InvalidArgument, match="listing parameters"):
            build_request(Operation.HEAD_BUCKET, "alice", "b1", prefix="x")
