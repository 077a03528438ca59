"""Build and package container images with the local docker toolchain."""

import os
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import structlog

from dd_deploy.core.exceptions import BuildError, OperationTimeoutError, SaveError

logger = structlog.get_logger()


class ImageBuilder:
    """Runs ``docker build`` / ``docker save`` for the client pipeline."""

    def __init__(
        self,
        docker_bin: str = "docker",
        context: str = ".",
        dockerfile: Optional[str] = None,
        timeout: float = 1800.0,
    ):
        """Initialize image builder.

        Args:
            docker_bin: docker executable name or path
            context: build context directory
            dockerfile: optional Dockerfile path passed with -f
            timeout: per-command timeout in seconds
        """
        self.docker_bin = docker_bin
        self.context = context
        self.dockerfile = dockerfile
        self.timeout = timeout

    def build_command(self, image: str) -> List[str]:
        cmd = [self.docker_bin, "build", "-t", image]
        if self.dockerfile:
            cmd += ["-f", self.dockerfile]
        cmd.append(self.context)
        return cmd

    def build(self, image: str) -> None:
        """Build ``image`` from the configured context.

        Output is not captured: it goes straight to the caller's console.
        """
        cmd = self.build_command(image)
        logger.info("Building Docker image", image=image, command=" ".join(cmd))
        try:
            result = subprocess.run(cmd, timeout=self.timeout)
        except FileNotFoundError as e:
            raise BuildError(f"docker executable not found: {self.docker_bin}") from e
        except subprocess.TimeoutExpired as e:
            raise OperationTimeoutError(
                f"docker build timed out after {self.timeout:g}s"
            ) from e

        if result.returncode != 0:
            raise BuildError(f"Docker build failed: exit status {result.returncode}")

    def save(self, image: str, dest: Path) -> None:
        """Write ``image`` as a tarball to ``dest``."""
        cmd = [self.docker_bin, "save", "-o", str(dest), image]
        logger.info("Saving image", image=image, path=str(dest))
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise SaveError(f"docker executable not found: {self.docker_bin}") from e
        except subprocess.TimeoutExpired as e:
            raise OperationTimeoutError(
                f"docker save timed out after {self.timeout:g}s"
            ) from e

        if result.returncode != 0:
            raise SaveError(result.stdout or f"docker save exited with status {result.returncode}")

    @contextmanager
    def saved_image(self, image: str) -> Iterator[Path]:
        """Save ``image`` to a temp tarball and remove it on exit, whatever happens."""
        fd, name = tempfile.mkstemp(prefix="dd-image-", suffix=".tar")
        os.close(fd)
        path = Path(name)
        try:
            self.save(image, path)
            yield path
        finally:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            logger.debug("Removed transient image artifact", path=str(path))
