"""Receiver endpoints: /image, /deploy-file, /hash, /deploy."""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, File, Query, Request, UploadFile
from fastapi.responses import PlainTextResponse

from dd_deploy.core.exceptions import ValidationError
from dd_deploy.core.validation import validate_service_name
from dd_deploy.server.receiver import Receiver
from dd_deploy.utils.logging import bind_service_context

router = APIRouter()
logger = structlog.get_logger()


def get_receiver(req: Request) -> Receiver:
    receiver = getattr(req.app.state, "receiver", None)
    if receiver is None:
        raise RuntimeError("Receiver not initialized")
    return receiver


def _service(service: Optional[str]) -> str:
    service = validate_service_name(service)
    bind_service_context(service=service)
    return service


def _require_upload(upload: Optional[UploadFile], field: str) -> UploadFile:
    if upload is None:
        raise ValidationError(f"Missing multipart field {field!r}", code="missing_field")
    return upload


@router.post("/image", response_class=PlainTextResponse)
async def upload_image(
    req: Request,
    service: Optional[str] = Query(None),
    image: Optional[UploadFile] = File(None),
) -> str:
    service = _service(service)
    upload = _require_upload(image, "image")
    try:
        output = await get_receiver(req).load_image(service, upload.file)
    finally:
        await upload.close()
    output = output.strip()
    return "Image uploaded successfully" + (f"\n{output}" if output else "")


@router.post("/deploy-file", response_class=PlainTextResponse)
async def upload_deploy_file(
    req: Request,
    service: Optional[str] = Query(None),
    file: Optional[UploadFile] = File(None),
) -> str:
    service = _service(service)
    upload = _require_upload(file, "file")
    try:
        await get_receiver(req).store_descriptor(service, upload.file)
    finally:
        await upload.close()
    return "Deployment file uploaded"


@router.get("/hash", response_class=PlainTextResponse)
async def descriptor_hash(req: Request, service: Optional[str] = Query(None)) -> str:
    service = _service(service)
    return await get_receiver(req).digest(service)


@router.post("/deploy", response_class=PlainTextResponse)
async def deploy(req: Request, service: Optional[str] = Query(None)) -> str:
    service = _service(service)
    output = (await get_receiver(req).deploy(service)).strip()
    return "Deployment successful" + (f"\n{output}" if output else "")
