"""Transport layer for the buckets client."""
from .base import Transport, TransportResponse
from .http_transport import HttpTransport

__all__ = ["Transport", "TransportResponse", "HttpTransport"]
