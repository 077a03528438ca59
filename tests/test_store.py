"""Tests for descriptor storage and per-service serialization."""

import asyncio
import io
from pathlib import Path
from unittest.mock import patch

import pytest

from dd_deploy.core.exceptions import NotFoundError, ValidationError
from dd_deploy.server.receiver import Receiver
from dd_deploy.server.store import DescriptorStore, ServiceLocks


def test_path_for_rejects_escape(tmp_path: Path):
    store = DescriptorStore(tmp_path)
    assert store.path_for("svc-a") == tmp_path / "svc-a" / "deploy.yml"
    with pytest.raises(ValidationError):
        store.path_for("../etc")


def test_store_and_digest(tmp_path: Path):
    store = DescriptorStore(tmp_path)
    assert not store.exists("svc-a")
    with pytest.raises(NotFoundError):
        store.digest("svc-a")
    with pytest.raises(NotFoundError):
        store.require("svc-a")

    store.store("svc-a", io.BytesIO(b"services: {}\n"))
    assert store.exists("svc-a")
    assert store.require("svc-a").read_bytes() == b"services: {}\n"
    assert len(store.digest("svc-a")) == 64


def test_failed_write_keeps_previous_descriptor(tmp_path: Path):
    store = DescriptorStore(tmp_path)
    store.store("svc-a", io.BytesIO(b"old"))

    with patch("dd_deploy.server.store.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            store.store("svc-a", io.BytesIO(b"new"))

    assert store.require("svc-a").read_bytes() == b"old"
    assert sorted(p.name for p in (tmp_path / "svc-a").iterdir()) == ["deploy.yml"]


@pytest.mark.asyncio
async def test_service_locks_released_after_use():
    locks = ServiceLocks()
    async with locks.hold("a"):
        async with locks.hold("b"):
            assert len(locks) == 2
        assert len(locks) == 1
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_service_lock_kept_while_waiters_remain():
    locks = ServiceLocks()
    order = []

    async def use(tag):
        async with locks.hold("a"):
            order.append(f"{tag}-in")
            await asyncio.sleep(0.01)
            assert len(locks) == 1
            order.append(f"{tag}-out")

    await asyncio.gather(use("first"), use("second"))
    assert order == ["first-in", "first-out", "second-in", "second-out"]
    assert len(locks) == 0


class _SlowDocker:
    def __init__(self):
        self.events = []

    async def load(self, tarball: Path) -> str:
        self.events.append("load-start")
        await asyncio.sleep(0.05)
        self.events.append("load-end")
        return ""

    async def stack_deploy(self, descriptor: Path, service: str) -> str:
        self.events.append(f"deploy:{descriptor.read_bytes().decode()}")
        return ""


@pytest.mark.asyncio
async def test_operations_on_same_service_are_serialized(tmp_path: Path):
    docker = _SlowDocker()
    receiver = Receiver(DescriptorStore(tmp_path), docker)
    await receiver.store_descriptor("svc-a", io.BytesIO(b"v1"))

    await asyncio.gather(
        receiver.load_image("svc-a", io.BytesIO(b"tar")),
        receiver.deploy("svc-a"),
    )
    assert docker.events == ["load-start", "load-end", "deploy:v1"]


@pytest.mark.asyncio
async def test_different_services_run_concurrently(tmp_path: Path):
    docker = _SlowDocker()
    receiver = Receiver(DescriptorStore(tmp_path), docker)

    await asyncio.gather(
        receiver.load_image("svc-a", io.BytesIO(b"tar")),
        receiver.load_image("svc-b", io.BytesIO(b"tar")),
    )
    assert docker.events[:2] == ["load-start", "load-start"]


@pytest.mark.asyncio
async def test_deploy_sees_latest_upload(tmp_path: Path):
    docker = _SlowDocker()
    receiver = Receiver(DescriptorStore(tmp_path), docker)

    await receiver.store_descriptor("svc-a", io.BytesIO(b"v1"))
    await asyncio.gather(
        receiver.store_descriptor("svc-a", io.BytesIO(b"v2")),
        receiver.deploy("svc-a"),
    )
    assert docker.events == ["deploy:v2"]
