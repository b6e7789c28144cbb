"""
Request Builder - turns a request shape into a configured httpx request.

Four shapes are supported:

- ``PlainRequest``: no body
- ``JsonRequest``: pre-serialized JSON body
- ``MultipartRequest``: multipart/form-data with text parts and streamed
  file parts, each file optionally reporting to its own progress sink
- ``FileRequest``: a single file streamed as the raw body (object storage PUT)

Files are opened only when the request is materialized with
``to_request()``, and closed when its ``with`` block exits.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterator, Mapping, Optional, Tuple, Union

import httpx

from ..utils.progress import ProgressReader, ProgressSink

logger = logging.getLogger(__name__)

FILE_CONTENT_TYPE = "application/octet-stream"
DEFAULT_CHUNK_SIZE = 64 * 1024

PathLike = Union[str, Path]


def open_progress_reader(
    path: PathLike,
    sink: Optional[ProgressSink],
    stack: ExitStack,
) -> ProgressReader:
    """Open ``path`` for binary reading and register it for closing on ``stack``."""
    handle = stack.enter_context(open(path, "rb"))
    return ProgressReader(handle, sink)


async def stream_reader(reader: ProgressReader, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield chunks from ``reader`` as the transport asks for them."""
    while True:
        chunk = await asyncio.to_thread(reader.read, chunk_size)
        if not chunk:
            break
        yield chunk


class RequestType:
    """Base request shape. Subclasses contribute body arguments for ``build_request``."""

    def _body_kwargs(self, stack: ExitStack) -> Tuple[Dict[str, Any], Dict[str, str]]:
        return {}, {}

    @contextmanager
    def to_request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: Union[str, httpx.URL],
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Iterator[httpx.Request]:
        """Materialize the request; file handles stay open for the ``with`` block."""
        with ExitStack() as stack:
            body_kwargs, body_headers = self._body_kwargs(stack)
            merged_headers = dict(headers or {})
            merged_headers.update(body_headers)
            yield client.build_request(
                method,
                url,
                params=params,
                headers=merged_headers or None,
                **body_kwargs,
            )


@dataclass
class PlainRequest(RequestType):
    """Request without a body."""


@dataclass
class JsonRequest(RequestType):
    """Request carrying an already serialized JSON document."""
    body: str

    def _body_kwargs(self, stack: ExitStack):
        return {"content": self.body.encode("utf-8")}, {"Content-Type": "application/json"}


@dataclass
class MultipartRequest(RequestType):
    """
    multipart/form-data request.

    ``bodies`` maps field names to text values, ``files`` maps field names to
    local paths and ``callbacks`` maps file field names to progress sinks.
    A file field sharing a name with a text field replaces it.
    """
    bodies: Optional[Dict[str, str]] = None
    files: Optional[Dict[str, PathLike]] = None
    callbacks: Optional[Dict[str, ProgressSink]] = None

    def _body_kwargs(self, stack: ExitStack):
        parts: Dict[str, Tuple[Optional[str], Any, Optional[str]]] = {}

        for name, value in (self.bodies or {}).items():
            # text part: no filename, no content type
            parts[name] = (None, value.encode("utf-8"), None)

        callbacks = self.callbacks or {}
        for name, path in (self.files or {}).items():
            sink = ProgressSink.wrap(callbacks.get(name))
            reader = open_progress_reader(path, sink, stack)
            parts[name] = (Path(path).name, reader, FILE_CONTENT_TYPE)
            logger.debug("Attached file part %s=%s", name, path)

        if not parts:
            return {}, {}
        return {"files": list(parts.items())}, {}


@dataclass
class FileRequest(RequestType):
    """A local file streamed as the raw request body."""
    path: PathLike
    callback: Optional[ProgressSink] = None
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def _body_kwargs(self, stack: ExitStack):
        reader = open_progress_reader(self.path, ProgressSink.wrap(self.callback), stack)
        return {"content": stream_reader(reader, self.chunk_size)}, {}
