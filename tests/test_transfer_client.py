"""Tests for TransferClient against a mocked transport."""

from pathlib import Path

import httpx
import pytest

from dd_deploy.client.transfer import TransferClient
from dd_deploy.core.exceptions import (
    DeployError,
    NotFoundError,
    OperationTimeoutError,
    TransferError,
    ValidationError,
)


def _client(handler) -> TransferClient:
    http = httpx.Client(base_url="http://deploy-host:8080", transport=httpx.MockTransport(handler))
    return TransferClient("http://deploy-host:8080", timeout=5, client=http)


def test_upload_artifact_posts_multipart(tmp_path: Path):
    artifact = tmp_path / "dd-image-1.tar"
    artifact.write_bytes(b"tarball-bytes")
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["service"] = request.url.params["service"]
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.read()
        return httpx.Response(200, text="Image uploaded successfully")

    with _client(handler) as client:
        assert client.upload_artifact("svc-a", artifact) == "Image uploaded successfully"

    assert seen["method"] == "POST"
    assert seen["path"] == "/image"
    assert seen["service"] == "svc-a"
    assert seen["content_type"].startswith("multipart/form-data")
    assert b'name="image"' in seen["body"]
    assert b"tarball-bytes" in seen["body"]


def test_upload_descriptor_uses_file_field(descriptor: Path):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = request.read()
        return httpx.Response(200, text="Deployment file uploaded")

    with _client(handler) as client:
        client.upload_descriptor("svc-a", descriptor)

    assert seen["path"] == "/deploy-file"
    assert b'name="file"; filename="deploy.yml"' in seen["body"]
    assert b"image: myapp:1" in seen["body"]


def test_fetch_remote_digest_strips_body():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET" and request.url.path == "/hash"
        return httpx.Response(200, text="ab" * 32 + "\n")

    with _client(handler) as client:
        assert client.fetch_remote_digest("svc-a") == "ab" * 32


def test_fetch_remote_digest_not_found():
    with _client(lambda r: httpx.Response(404, text="File not found")) as client:
        with pytest.raises(NotFoundError):
            client.fetch_remote_digest("never-deployed")


def test_trigger_deploy_not_found_and_failure():
    with _client(lambda r: httpx.Response(404, text="Deployment file not found")) as client:
        with pytest.raises(NotFoundError):
            client.trigger_deploy("svc-a")

    with _client(lambda r: httpx.Response(500, text="service web: image not found")) as client:
        with pytest.raises(DeployError, match="image not found"):
            client.trigger_deploy("svc-a")


def test_trigger_deploy_sends_no_body():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST" and request.url.path == "/deploy"
        assert request.read() == b""
        return httpx.Response(200, text="Deployment successful")

    with _client(handler) as client:
        assert client.trigger_deploy("svc-a") == "Deployment successful"


def test_non_2xx_upload_is_transfer_error(tmp_path: Path):
    artifact = tmp_path / "a.tar"
    artifact.write_bytes(b"x")
    with _client(lambda r: httpx.Response(500, text="open /var/lib/docker: no space left")) as client:
        with pytest.raises(TransferError) as exc_info:
            client.upload_artifact("svc-a", artifact)
    assert exc_info.value.status_code == 500
    assert "no space left" in str(exc_info.value)


def test_transport_error_is_transfer_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with _client(handler) as client:
        with pytest.raises(TransferError, match="connection refused"):
            client.fetch_remote_digest("svc-a")


def test_timeout_is_distinct_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with _client(handler) as client:
        with pytest.raises(OperationTimeoutError):
            client.trigger_deploy("svc-a")


def test_unsafe_service_rejected_before_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200)

    with _client(handler) as client:
        with pytest.raises(ValidationError):
            client.fetch_remote_digest("../etc")
    assert calls == []


def test_missing_upload_file_is_transfer_error(tmp_path: Path):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200)

    with _client(handler) as client:
        with pytest.raises(TransferError, match="Could not read"):
            client.upload_artifact("svc-a", tmp_path / "gone.tar")
        with pytest.raises(TransferError, match="Could not read"):
            client.upload_descriptor("svc-a", tmp_path / "deploy.yml")
    assert calls == []
