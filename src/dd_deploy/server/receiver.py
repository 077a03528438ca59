"""Receiver operations behind the HTTP handlers.

Every operation on a given service runs under that service's lock, so a
deploy never reads a descriptor that another request is replacing and two
uploads for the same service apply in arrival order.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Optional

import structlog

from dd_deploy.core.exceptions import ValidationError
from dd_deploy.core.validation import validate_service_name
from dd_deploy.server.docker import DockerRunner
from dd_deploy.server.store import DescriptorStore, ServiceLocks, iter_chunks

logger = structlog.get_logger()


def _spool_to_temp(stream: BinaryIO, max_size_bytes: Optional[int]) -> Path:
    """Copy an uploaded image into a fresh temp tarball and return its path."""
    fd, name = tempfile.mkstemp(prefix="image-", suffix=".tar")
    path = Path(name)
    written = 0
    try:
        with os.fdopen(fd, "wb") as f:
            for chunk in iter_chunks(stream):
                written += len(chunk)
                if max_size_bytes is not None and written > max_size_bytes:
                    raise ValidationError("Upload exceeds maximum allowed size", code="too_large")
                f.write(chunk)
    except BaseException:
        path.unlink(missing_ok=True)
        raise
    return path


class Receiver:
    """Loads images, stores descriptors and applies them, per service."""

    def __init__(
        self,
        store: DescriptorStore,
        docker: DockerRunner,
        max_upload_size_bytes: Optional[int] = None,
    ):
        self.store = store
        self.docker = docker
        self.max_upload_size_bytes = max_upload_size_bytes
        self.locks = ServiceLocks()

    async def load_image(self, service: str, stream: BinaryIO) -> str:
        validate_service_name(service)
        loop = asyncio.get_running_loop()
        async with self.locks.hold(service):
            tmp = await loop.run_in_executor(None, _spool_to_temp, stream, self.max_upload_size_bytes)
            try:
                return await self.docker.load(tmp)
            finally:
                tmp.unlink(missing_ok=True)

    async def store_descriptor(self, service: str, stream: BinaryIO) -> Path:
        validate_service_name(service)
        loop = asyncio.get_running_loop()
        async with self.locks.hold(service):
            return await loop.run_in_executor(None, self.store.store, service, stream)

    async def digest(self, service: str) -> str:
        validate_service_name(service)
        loop = asyncio.get_running_loop()
        async with self.locks.hold(service):
            return await loop.run_in_executor(None, self.store.digest, service)

    async def deploy(self, service: str) -> str:
        validate_service_name(service)
        async with self.locks.hold(service):
            path = self.store.require(service)
            logger.info("Applying deployment file", service=service, path=str(path))
            return await self.docker.stack_deploy(path, service)
