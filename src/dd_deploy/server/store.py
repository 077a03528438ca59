"""On-disk descriptor storage for the receiver.

Layout: ``<root>/<service>/deploy.yml``, one file per service, replaced
wholesale on each store.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Dict, Iterable, Iterator, Optional

import structlog

from dd_deploy.core.exceptions import NotFoundError, ValidationError
from dd_deploy.core.validation import validate_service_name
from dd_deploy.utils.hashing import fingerprint_file

logger = structlog.get_logger()

DESCRIPTOR_NAME = "deploy.yml"


def _write_stream_to_file(stream_iter: Iterable[bytes], dest_path: Path, max_size_bytes: Optional[int] = None) -> int:
    """Write chunks to a sibling temp file, then swap it into ``dest_path``.

    Readers see either the old file or the new one, never a partial write.
    Returns number of bytes written.
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{dest_path.name}.", suffix=".tmp", dir=dest_path.parent)
    tmp_file = Path(tmp_name)
    bytes_written = 0
    try:
        with os.fdopen(fd, "wb") as f:
            for chunk in stream_iter:
                if not chunk:
                    continue
                bytes_written += len(chunk)
                if max_size_bytes is not None and bytes_written > max_size_bytes:
                    raise ValidationError("Upload exceeds maximum allowed size", code="too_large")
                f.write(chunk)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_file, dest_path)
    except BaseException:
        try:
            tmp_file.unlink()
        except FileNotFoundError:
            pass
        raise
    return bytes_written


def iter_chunks(stream: BinaryIO, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        yield chunk


class ServiceLocks:
    """One asyncio.Lock per service name, held only while requests use it.

    An entry is dropped once its last holder or waiter releases it, so
    lookups for unknown services leave nothing behind.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, service: str) -> AsyncIterator[None]:
        lock = self._locks.get(service)
        if lock is None:
            lock = self._locks[service] = asyncio.Lock()
        self._users[service] = self._users.get(service, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[service] -= 1
            if self._users[service] == 0:
                del self._users[service]
                del self._locks[service]

    def __len__(self) -> int:
        return len(self._locks)


class DescriptorStore:
    """Blocking filesystem operations on stored descriptors.

    Callers on the event loop run these in an executor while holding the
    service's lock from :class:`ServiceLocks`.
    """

    def __init__(self, root: Path, max_size_bytes: Optional[int] = None):
        self.root = Path(root)
        self.max_size_bytes = max_size_bytes

    def path_for(self, service: str) -> Path:
        validate_service_name(service)
        return self.root / service / DESCRIPTOR_NAME

    def exists(self, service: str) -> bool:
        return self.path_for(service).is_file()

    def require(self, service: str) -> Path:
        path = self.path_for(service)
        if not path.is_file():
            raise NotFoundError("Deployment file not found")
        return path

    def store(self, service: str, stream: BinaryIO) -> Path:
        """Replace the descriptor for ``service`` with the bytes of ``stream``."""
        path = self.path_for(service)
        path.parent.mkdir(parents=True, exist_ok=True)
        size = _write_stream_to_file(iter_chunks(stream), path, self.max_size_bytes)
        logger.info("Deployment file saved", service=service, path=str(path), bytes=size)
        return path

    def digest(self, service: str) -> str:
        path = self.path_for(service)
        try:
            return fingerprint_file(path)
        except FileNotFoundError as e:
            raise NotFoundError("File not found") from e
