"""
Request building for the buckets API.

Maps every public client operation onto its HTTP method, resource path and
base headers. Names are percent-encoded the same way JavaScript's
``encodeURIComponent`` encodes them, so paths match what other Manta clients
send for the same bucket and object names.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional
from urllib.parse import quote

from .errors import InvalidArgument

__all__ = [
    "Operation",
    "RequestSpec",
    "build_request",
    "bucket_path",
    "bucket_object_path",
    "bucket_object_metadata_path",
    "JSON_STREAM",
]

JSON_STREAM = "application/x-json-stream"
DEFAULT_ACCEPT = "application/json, */*"

# encodeURIComponent leaves these unescaped in addition to [A-Za-z0-9_.-]
_COMPONENT_SAFE = "!~*'()"


class Operation(str, Enum):
    """Every operation the buckets client exposes."""
    IS_BUCKETS_SUPPORTED = "is_buckets_supported"
    LIST_BUCKETS = "list_buckets"
    CREATE_BUCKET = "create_bucket"
    HEAD_BUCKET = "head_bucket"
    DELETE_BUCKET = "delete_bucket"
    LIST_BUCKET_OBJECTS = "list_bucket_objects"
    CREATE_BUCKET_OBJECT = "create_bucket_object"
    HEAD_BUCKET_OBJECT = "head_bucket_object"
    GET_BUCKET_OBJECT = "get_bucket_object"
    PUT_BUCKET_OBJECT_METADATA = "put_bucket_object_metadata"
    DELETE_BUCKET_OBJECT = "delete_bucket_object"


# operation -> (method, resource kind)
_ROUTES: Dict[Operation, tuple[str, str]] = {
    Operation.IS_BUCKETS_SUPPORTED: ("HEAD", "buckets"),
    Operation.LIST_BUCKETS: ("GET", "buckets"),
    Operation.CREATE_BUCKET: ("PUT", "bucket"),
    Operation.HEAD_BUCKET: ("HEAD", "bucket"),
    Operation.DELETE_BUCKET: ("DELETE", "bucket"),
    Operation.LIST_BUCKET_OBJECTS: ("GET", "objects"),
    Operation.CREATE_BUCKET_OBJECT: ("PUT", "object"),
    Operation.HEAD_BUCKET_OBJECT: ("HEAD", "object"),
    Operation.GET_BUCKET_OBJECT: ("GET", "object"),
    Operation.PUT_BUCKET_OBJECT_METADATA: ("PUT", "metadata"),
    Operation.DELETE_BUCKET_OBJECT: ("DELETE", "object"),
}

LISTING_OPERATIONS = frozenset({Operation.LIST_BUCKETS, Operation.LIST_BUCKET_OBJECTS})


@dataclass(frozen=True)
class RequestSpec:
    """
    A fully built request, ready to hand to a transport.

    Invariants:
    - path: starts with ``/{login}/buckets`` and is already percent-encoded
    - headers: lower-cased header names
    """
    operation: Operation
    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)


def _check_name(value: object, what: str) -> str:
    if not isinstance(value, str):
        raise InvalidArgument(f"{what} must be a string, got {type(value).__name__}")
    if not value:
        raise InvalidArgument(f"{what} must not be empty")
    return value


def _encode(value: str) -> str:
    return quote(value, safe=_COMPONENT_SAFE)


def buckets_root(login: str) -> str:
    """Path of the account's buckets collection."""
    return f"/{_encode(_check_name(login, 'login'))}/buckets"


def bucket_path(login: str, bucket: str) -> str:
    """Path of a single bucket."""
    return f"{buckets_root(login)}/{_encode(_check_name(bucket, 'bucket name'))}"


def bucket_objects_path(login: str, bucket: str) -> str:
    """Path of a bucket's object collection."""
    return f"{bucket_path(login, bucket)}/objects"


def bucket_object_path(login: str, bucket: str, obj: str) -> str:
    """Path of a single object within a bucket."""
    return f"{bucket_objects_path(login, bucket)}/{_encode(_check_name(obj, 'object name'))}"


def bucket_object_metadata_path(login: str, bucket: str, obj: str) -> str:
    """Path used for metadata-only updates of an object."""
    return f"{bucket_object_path(login, bucket, obj)}/metadata"


def _listing_params(
    prefix: Optional[str], limit: Optional[int], marker: Optional[str]
) -> Dict[str, str]:
    params: Dict[str, str] = {}
    if prefix is not None:
        params["prefix"] = _check_name(prefix, "prefix")
    if limit is not None:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise InvalidArgument(f"limit must be a positive integer, got {limit!r}")
        params["limit"] = str(limit)
    if marker is not None:
        params["marker"] = _check_name(marker, "marker")
    return params


def build_request(
    operation: Operation,
    login: str,
    bucket: Optional[str] = None,
    obj: Optional[str] = None,
    *,
    headers: Optional[Mapping[str, str]] = None,
    prefix: Optional[str] = None,
    limit: Optional[int] = None,
    marker: Optional[str] = None,
) -> RequestSpec:
    """
    Build the method, path, headers and query params for an operation.

    Args:
        operation: Operation being performed
        login: Account login owning the buckets
        bucket: Bucket name (required for bucket and object operations)
        obj: Object name (required for object operations)
        headers: Caller header overrides, merged last
        prefix: Listing name prefix (listing operations only)
        limit: Maximum records per listing response (listing operations only)
        marker: Listing start marker (listing operations only)

    Returns:
        RequestSpec for the transport

    Raises:
        InvalidArgument: If an identifier is empty/not a string or a listing
            parameter is invalid or given to a non-listing operation
    """
    method, resource = _ROUTES[operation]

    if resource == "buckets":
        path = buckets_root(login)
    elif resource == "bucket":
        path = bucket_path(login, bucket)
    elif resource == "objects":
        path = bucket_objects_path(login, bucket)
    elif resource == "object":
        path = bucket_object_path(login, bucket, obj)
    else:
        path = bucket_object_metadata_path(login, bucket, obj)

    params: Dict[str, str] = {}
    if operation in LISTING_OPERATIONS:
        params = _listing_params(prefix, limit, marker)
        base_headers = {"accept": JSON_STREAM}
    else:
        if prefix is not None or limit is not None or marker is not None:
            raise InvalidArgument(f"{operation.value} does not accept listing parameters")
        base_headers = {"accept": DEFAULT_ACCEPT}

    for key, value in (headers or {}).items():
        base_headers[key.lower()] = value

    return RequestSpec(
        operation=operation,
        method=method,
        path=path,
        headers=base_headers,
        params=params,
    )
