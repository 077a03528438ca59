"""
Pytest configuration and fixtures for dd-deploy tests.
"""

from pathlib import Path
from typing import List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from dd_deploy.client.builder import ImageBuilder
from dd_deploy.core.config import ServerSettings
from dd_deploy.core.exceptions import DeployError, LoadError
from dd_deploy.main import create_app
from dd_deploy.server.receiver import Receiver
from dd_deploy.server.store import DescriptorStore


class FakeDocker:
    """Stands in for DockerRunner; records what it was asked to do."""

    def __init__(self):
        self.loaded: List[bytes] = []
        self.loaded_paths: List[Path] = []
        self.deployed: List[Tuple[str, bytes]] = []
        self.load_error: Optional[str] = None
        self.deploy_error: Optional[str] = None

    async def load(self, tarball: Path) -> str:
        self.loaded_paths.append(tarball)
        self.loaded.append(tarball.read_bytes())
        if self.load_error:
            raise LoadError(self.load_error)
        return "Loaded image: myapp:1\n"

    async def stack_deploy(self, descriptor: Path, service: str) -> str:
        self.deployed.append((service, descriptor.read_bytes()))
        if self.deploy_error:
            raise DeployError(self.deploy_error)
        return f"Updating service {service}_web\n"


class FakeBuilder(ImageBuilder):
    """ImageBuilder that never shells out."""

    def __init__(self, payload: bytes = b"image-tarball"):
        super().__init__()
        self.payload = payload
        self.built: List[str] = []
        self.saved_paths: List[Path] = []

    def build(self, image: str) -> None:
        self.built.append(image)

    def save(self, image: str, dest: Path) -> None:
        self.saved_paths.append(dest)
        dest.write_bytes(self.payload + image.encode())


@pytest.fixture
def settings(tmp_path: Path) -> ServerSettings:
    return ServerSettings(
        deployments_dir=str(tmp_path / "deployments"),
        log_level="WARNING",
        metrics_enabled=False,
    )


@pytest.fixture
def fake_docker() -> FakeDocker:
    return FakeDocker()


@pytest.fixture
def receiver(settings: ServerSettings, fake_docker: FakeDocker) -> Receiver:
    store = DescriptorStore(Path(settings.deployments_dir), max_size_bytes=settings.max_upload_size_bytes)
    return Receiver(store, fake_docker, max_upload_size_bytes=settings.max_upload_size_bytes)


@pytest.fixture
def app(settings: ServerSettings, receiver: Receiver):
    return create_app(settings, receiver=receiver)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def descriptor(tmp_path: Path) -> Path:
    path = tmp_path / "deploy.yml"
    path.write_text(
        "services:\n"
        "  web:\n"
        "    image: myapp:1\n"
        "    ports:\n"
        "      - \"80:8000\"\n"
    )
    return path


@pytest.fixture
def fake_builder() -> FakeBuilder:
    return FakeBuilder()
