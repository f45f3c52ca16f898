"""Outbound transfer helpers: progress-tracking request bodies and a socket uploader."""

from .progress import (
    UNKNOWN_LENGTH,
    BytesBody,
    CountingSink,
    FileBody,
    IterableBody,
    PercentProgress,
    ProgressTrackingBody,
)
from .client import SocketSink, put_body

__all__ = [
    "UNKNOWN_LENGTH",
    "BytesBody",
    "CountingSink",
    "FileBody",
    "IterableBody",
    "PercentProgress",
    "ProgressTrackingBody",
    "SocketSink",
    "put_body",
]
