"""Checksum Calculator - streaming MD5 digest of a local file."""
import asyncio
import hashlib
from pathlib import Path
from typing import BinaryIO, Union

from ..models import Checksum

CHECKSUM_TYPE = "MD5"
DEFAULT_CHUNK_SIZE = 1_000_000


def md5_stream(source: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Feed ``source`` through MD5 in bounded chunks and return the hex digest."""
    hasher = hashlib.md5()
    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            break
        hasher.update(chunk)
    return hasher.hexdigest()


async def md5_file(path: Union[str, Path], chunk_size: int = DEFAULT_CHUNK_SIZE) -> Checksum:
    """Calculate the MD5 checksum of a file without blocking the event loop."""
    def _hash_file() -> str:
        with open(path, "rb") as f:
            return md5_stream(f, chunk_size)

    digest = await asyncio.to_thread(_hash_file)
    return Checksum(value=digest, type=CHECKSUM_TYPE)
