"""Upload progress tracking for streaming request bodies.

A request body is anything that can describe itself (content type, length)
and write its bytes into a sink. ``ProgressTrackingBody`` wraps one body,
counts every byte on its way to the real sink, and reports
``(bytes_written, content_length)`` to a listener after each write. The bytes
themselves are passed through untouched.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Iterable, Optional, Protocol

UNKNOWN_LENGTH = -1
CHUNK_SIZE = 8192

ProgressListener = Callable[[int, int], None]


class Sink(Protocol):
    def write(self, data: bytes) -> object: ...

    def flush(self) -> None: ...


class RequestBody(Protocol):
    def content_type(self) -> Optional[str]: ...

    def content_length(self) -> int: ...

    def write_to(self, sink: Sink) -> None: ...


class BytesBody:
    """Body backed by an in-memory buffer."""

    def __init__(self, data: bytes, content_type: Optional[str] = None, chunk_size: int = CHUNK_SIZE):
        self._data = bytes(data)
        self._content_type = content_type
        self._chunk_size = chunk_size

    def content_type(self) -> Optional[str]:
        return self._content_type

    def content_length(self) -> int:
        return len(self._data)

    def write_to(self, sink: Sink) -> None:
        view = memoryview(self._data)
        for start in range(0, len(view), self._chunk_size):
            sink.write(bytes(view[start:start + self._chunk_size]))


class FileBody:
    """Body streamed from a file on disk in fixed-size chunks."""

    def __init__(self, path: str | Path, content_type: Optional[str] = None, chunk_size: int = CHUNK_SIZE):
        self.path = Path(path)
        self._content_type = content_type
        self._chunk_size = chunk_size

    def content_type(self) -> Optional[str]:
        return self._content_type

    def content_length(self) -> int:
        return os.path.getsize(self.path)

    def write_to(self, sink: Sink) -> None:
        with open(self.path, "rb") as f:
            while True:
                chunk = f.read(self._chunk_size)
                if not chunk:
                    break
                sink.write(chunk)


class IterableBody:
    """Body produced by an iterable of chunks; length is unknown unless given."""

    def __init__(self, chunks: Iterable[bytes], content_type: Optional[str] = None, length: int = UNKNOWN_LENGTH):
        self._chunks = chunks
        self._content_type = content_type
        self._length = length

    def content_type(self) -> Optional[str]:
        return self._content_type

    def content_length(self) -> int:
        return self._length

    def write_to(self, sink: Sink) -> None:
        for chunk in self._chunks:
            sink.write(chunk)


class CountingSink:
    """Forwards writes to ``delegate`` and counts the bytes that went through."""

    __slots__ = ("delegate", "bytes_written", "_on_write")

    def __init__(self, delegate: Sink, on_write: Optional[Callable[[int], None]] = None):
        self.delegate = delegate
        self.bytes_written = 0
        self._on_write = on_write

    def write(self, data: bytes) -> int:
        # forward first: a failed write must not be counted
        self.delegate.write(data)
        self.bytes_written += len(data)
        if self._on_write is not None:
            self._on_write(self.bytes_written)
        return len(data)

    def flush(self) -> None:
        self.delegate.flush()


class ProgressTrackingBody:
    """
    Request body decorator that reports upload progress.

    Each :meth:`write_to` call is one write session with its own counter, so
    a retried upload reports from zero again. The listener is called on the
    writing thread after every write with ``(bytes_written, content_length())``;
    the length is asked again on every call because some bodies only learn it
    while writing. Without a listener bytes are still counted.
    """

    def __init__(self, body: RequestBody, listener: Optional[ProgressListener] = None):
        self._body = body
        self._listener = listener
        self._bytes_written = 0

    @property
    def bytes_written(self) -> int:
        """Bytes written during the latest write session."""
        return self._bytes_written

    def content_type(self) -> Optional[str]:
        return self._body.content_type()

    def content_length(self) -> int:
        return self._body.content_length()

    def _on_write(self, total: int) -> None:
        self._bytes_written = total
        if self._listener is not None:
            self._listener(total, self.content_length())

    def write_to(self, sink: Sink) -> None:
        self._bytes_written = 0
        counting = CountingSink(sink, self._on_write)
        self._body.write_to(counting)
        counting.flush()


class PercentProgress:
    """
    Listener adapter that turns byte counts into whole percentages.

    ``callback(percent)`` fires only when the percentage grows and is either a
    multiple of ``step`` or 100. Updates with an unknown or zero total are
    ignored.
    """

    def __init__(self, callback: Callable[[int], None], step: int = 5):
        if step <= 0:
            raise ValueError("step must be positive")
        self._callback = callback
        self._step = step
        self.last_percent = -1

    def __call__(self, bytes_written: int, content_length: int) -> None:
        if content_length <= 0:
            return
        percent = min(100, bytes_written * 100 // content_length)
        if percent > self.last_percent and (percent % self._step == 0 or percent == 100):
            self.last_percent = percent
            self._callback(percent)
