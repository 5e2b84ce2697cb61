"""Tests for the error taxonomy and status classification."""
from __future__ import annotations

import pytest

from manta_buckets import errors
from manta_buckets.errors import (
    ClientClosedError,
    DecodeError,
    HTTPStatusError,
    InvalidArgument,
    MantaBucketsError,
    NotFoundError,
    PayloadStreamError,
    TransportError,
    error_for_status,
)


class TestTaxonomy:

    @pytest.mark.parametrize("cls", [
        InvalidArgument, TransportError, HTTPStatusError, NotFoundError,
        DecodeError, PayloadStreamError, ClientClosedError,
    ])
    def test_kind_matches_class_name(self, cls):
        assert cls.kind == cls.__name__
        assert issubclass(cls, MantaBucketsError)

    def test_invalid_argument_is_value_error(self):
        assert issubclass(InvalidArgument, ValueError)

    def test_not_found_is_status_error(self):
        assert issubclass(NotFoundError, HTTPStatusError)


class TestErrorForStatus:

    def test_404_is_not_found(self):
        error = error_for_status(404, method="HEAD", path="/alice/buckets/b1")
        assert type(error) is NotFoundError
        assert error.status_code == 404
        assert str(error) == "HEAD /alice/buckets/b1 failed with status 404"

    @pytest.mark.parametrize("status", [400, 403, 409, 500, 503])
    def test_other_statuses(self, status):
        error = error_for_status(status, method="PUT", path="/alice/buckets/b1")
        assert type(error) is HTTPStatusError
        assert error.status_code == status

    def test_service_error_document_parsed(self):
        body = b'{"code":"BucketNotEmpty","message":"bucket b1 is not empty"}'
        error = error_for_status(409, method="DELETE", path="/alice/buckets/b1", body=body, headers={"x-a": "1"})
        assert error.code == "BucketNotEmpty"
        assert error.service_message == "bucket b1 is not empty"
        assert error.body == body
        assert error.headers == {"x-a": "1"}
        assert "BucketNotEmpty: bucket b1 is not empty" in str(error)

    @pytest.mark.parametrize("body", [b"", b"<html>oops</html>", b"[1]", b"\xff"])
    def test_non_json_bodies_kept_raw(self, body):
        error = error_for_status(502, method="GET", path="/alice/buckets", body=body)
        assert error.code is None
        assert error.service_message is None
        assert error.body == body

    def test_every_error_exported(self):
        for name in errors.__all__:
            assert hasattr(errors, name)
