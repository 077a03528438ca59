"""HTTP client for the dd-server receiver endpoints."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import httpx
import structlog

from dd_deploy.core.exceptions import (
    DeployError,
    NotFoundError,
    OperationTimeoutError,
    TransferError,
)
from dd_deploy.core.validation import validate_service_name

logger = structlog.get_logger()


class TransferClient:
    """Talks to a receiver at ``base_url``.

    Every call is a single synchronous round trip; nothing is retried.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 600.0,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize transfer client.

        Args:
            base_url: receiver base URL, e.g. http://deploy-host:8080
            timeout: per-request timeout in seconds
            client: pre-built httpx client (tests inject transports this way)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client or httpx.Client(base_url=self.base_url, timeout=httpx.Timeout(timeout))

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "TransferClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _request(self, method: str, path: str, service: str, **kwargs) -> httpx.Response:
        validate_service_name(service)
        try:
            return self._client.request(method, path, params={"service": service}, **kwargs)
        except httpx.TimeoutException as e:
            raise OperationTimeoutError(f"{method} {path} timed out after {self.timeout:g}s") from e
        except httpx.HTTPError as e:
            raise TransferError(f"{method} {path} failed: {e}") from e

    @staticmethod
    def _raise_for_status(resp: httpx.Response, what: str) -> None:
        if resp.is_success:
            return
        body = resp.text.strip()
        raise TransferError(
            f"{what} failed: {resp.status_code} {resp.reason_phrase}" + (f": {body}" if body else ""),
            status_code=resp.status_code,
        )

    def _post_file(self, service: str, endpoint: str, path: Path, field: str, filename: str, content_type: str) -> str:
        try:
            with open(path, "rb") as f:
                resp = self._request(
                    "POST",
                    endpoint,
                    service,
                    files={field: (filename, f, content_type)},
                )
        except OSError as e:
            raise TransferError(f"Could not read {path}: {e}") from e
        self._raise_for_status(resp, "upload")
        return resp.text

    def upload_artifact(self, service: str, path: Path) -> str:
        """POST an image tarball to /image; the receiver loads it immediately."""
        path = Path(path)
        logger.info("Uploading image to server", service=service, path=str(path))
        return self._post_file(service, "/image", path, "image", path.name, "application/x-tar")

    def upload_descriptor(self, service: str, path: Path) -> str:
        """POST a deploy.yml to /deploy-file; it replaces the stored one."""
        logger.info("Uploading updated deploy.yml", service=service)
        return self._post_file(service, "/deploy-file", Path(path), "file", "deploy.yml", "application/x-yaml")

    def fetch_remote_digest(self, service: str) -> str:
        """GET the stored descriptor's digest.

        Raises:
            NotFoundError: no descriptor is stored for ``service`` yet
        """
        resp = self._request("GET", "/hash", service)
        if resp.status_code == 404:
            raise NotFoundError(f"No deployment file stored for service {service!r}")
        self._raise_for_status(resp, "hash lookup")
        return resp.text.strip()

    def trigger_deploy(self, service: str) -> str:
        """POST /deploy with no body; the receiver applies the stored descriptor."""
        logger.info("Triggering deployment", service=service)
        resp = self._request("POST", "/deploy", service)
        if resp.status_code == 404:
            raise NotFoundError(f"No deployment file stored for service {service!r}")
        if not resp.is_success:
            raise DeployError(f"deploy failed: {resp.status_code} {resp.reason_phrase}: {resp.text.strip()}")
        return resp.text
