"""Async wrappers around the docker commands the receiver runs."""

import asyncio
import subprocess
from pathlib import Path
from typing import List, Tuple

import structlog

from dd_deploy.core.exceptions import DeployError, LoadError, OperationTimeoutError

logger = structlog.get_logger()


class DockerRunner:
    """Runs ``docker load`` and ``docker stack deploy`` with combined output."""

    def __init__(self, docker_bin: str = "docker", timeout: float = 600.0):
        self.docker_bin = docker_bin
        self.timeout = timeout

    async def _run(self, cmd: List[str]) -> Tuple[int, str]:
        """Run ``cmd`` and return (returncode, combined stdout+stderr)."""
        logger.info("Running command", command=" ".join(cmd))
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Command timed out, killing", command=cmd[:3], timeout=self.timeout)
            proc.kill()
            await proc.wait()
            raise OperationTimeoutError(f"{' '.join(cmd[:3])} timed out after {self.timeout:g}s")
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise
        return proc.returncode, stdout.decode("utf-8", errors="replace")

    async def load(self, tarball: Path) -> str:
        try:
            code, output = await self._run([self.docker_bin, "load", "-i", str(tarball)])
        except FileNotFoundError as e:
            raise LoadError(f"docker executable not found: {self.docker_bin}") from e
        if code != 0:
            raise LoadError(output or f"docker load exited with status {code}")
        logger.info("Image loaded", output=output.strip())
        return output

    async def stack_deploy(self, descriptor: Path, service: str) -> str:
        try:
            code, output = await self._run(
                [self.docker_bin, "stack", "deploy", "-c", str(descriptor), service]
            )
        except FileNotFoundError as e:
            raise DeployError(f"docker executable not found: {self.docker_bin}") from e
        if code != 0:
            raise DeployError(output or f"docker stack deploy exited with status {code}")
        logger.info("Deployment output", output=output.strip())
        return output
