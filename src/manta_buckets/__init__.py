"""
Async client for the Manta buckets API.

Create, inspect and delete buckets, stream bucket and object listings, and
upload, download, head and delete objects with user metadata.
"""
from .client import MantaBucketsClient
from .errors import (
    ClientClosedError,
    DecodeError,
    HTTPStatusError,
    InvalidArgument,
    MantaBucketsError,
    NotFoundError,
    PayloadStreamError,
    TransportError,
)
from .listing import ListingStream
from .models import BucketEntry, BucketObjectEntry
from .paths import Operation
from .settings import Settings, create_settings_from_env
from .transfer import BucketsResponse, ObjectDownload, PayloadStream

__version__ = "0.1.0"

__all__ = [
    "MantaBucketsClient",
    "Settings",
    "create_settings_from_env",
    "Operation",
    "ListingStream",
    "BucketEntry",
    "BucketObjectEntry",
    "BucketsResponse",
    "ObjectDownload",
    "PayloadStream",
    "MantaBucketsError",
    "InvalidArgument",
    "TransportError",
    "HTTPStatusError",
    "NotFoundError",
    "DecodeError",
    "PayloadStreamError",
    "ClientClosedError",
]
