"""Progress reporting primitives shared by concurrent uploads."""
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Union
import threading

ProgressCallback = Callable[[int], None]


@dataclass
class FileProgress:
    """Progress information for a single file."""
    filename: str
    file_path: Path
    bytes_uploaded: int = 0
    total_bytes: int = 0
    status: str = "pending"  # pending, uploading, completed

    @property
    def percent(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return min(100.0, self.bytes_uploaded * 100.0 / self.total_bytes)


class ProgressSink:
    """
    Callback receiving the number of bytes delivered by each read.

    The wrapped callable runs under a lock, so one sink may be shared by
    several uploads running in worker threads.
    """

    def __init__(self, callback: ProgressCallback):
        self._callback = callback
        self._lock = threading.Lock()

    @classmethod
    def wrap(cls, callback: Union["ProgressSink", ProgressCallback, None]) -> Optional["ProgressSink"]:
        """Coerce a plain callable into a sink; sinks and None pass through."""
        if callback is None or isinstance(callback, ProgressSink):
            return callback
        return cls(callback)

    def __call__(self, increment: int) -> None:
        with self._lock:
            self._callback(increment)


class CountingSink(ProgressSink):
    """Sink that accumulates the bytes it receives, optionally forwarding them."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        super().__init__(self._count)
        self._forward = callback
        self.total = 0
        self.calls = 0

    def _count(self, increment: int) -> None:
        self.total += increment
        self.calls += 1
        if self._forward is not None:
            self._forward(increment)


class ProgressReader:
    """
    File-like wrapper that reports every non-empty read.

    Reads are delegated to ``inner``. The byte count returned is added to
    ``progress`` and passed to the sink. Nothing is read ahead, so bytes flow
    only as fast as the consumer pulls them.
    """

    def __init__(self, inner: BinaryIO, sink: Optional[ProgressSink] = None):
        self._inner = inner
        self._sink = sink
        self._progress = 0
        self._lock = threading.Lock()

    @property
    def progress(self) -> int:
        return self._progress

    def read(self, size: int = -1) -> bytes:
        data = self._inner.read(size)
        count = len(data)
        if count:
            with self._lock:
                self._progress += count
            if self._sink is not None:
                self._sink(count)
        return data

    def fileno(self) -> int:
        return self._inner.fileno()

    def seek(self, offset: int, whence: int = 0) -> int:
        return self._inner.seek(offset, whence)

    def tell(self) -> int:
        return self._inner.tell()

    def close(self) -> None:
        self._inner.close()

    @property
    def closed(self) -> bool:
        return self._inner.closed
