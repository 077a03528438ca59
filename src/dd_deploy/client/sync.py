"""Client-side deployment pipeline.

build -> save -> upload image -> compare descriptor digests ->
upload descriptor if changed -> trigger deploy.

The image is always re-sent; only the descriptor is skipped when the receiver
already holds identical bytes.
"""

from pathlib import Path
from typing import Optional, Union

import structlog

from dd_deploy.client.builder import ImageBuilder
from dd_deploy.client.manifest import read_image_reference
from dd_deploy.client.transfer import TransferClient
from dd_deploy.core.exceptions import DDError, ParseError
from dd_deploy.core.models import SyncResult
from dd_deploy.core.validation import validate_service_name
from dd_deploy.utils.hashing import fingerprint_file
from dd_deploy.utils.logging import bind_service_context

logger = structlog.get_logger()


class SyncDriver:
    """Runs one synchronization of a descriptor + image to the receiver."""

    def __init__(self, builder: ImageBuilder, transfer: TransferClient):
        self.builder = builder
        self.transfer = transfer

    def _remote_digest(self, service: str) -> Optional[str]:
        try:
            return self.transfer.fetch_remote_digest(service)
        except DDError as e:
            logger.warning("Could not get remote hash", service=service, error=str(e))
            return None

    def run(self, descriptor_path: Union[str, Path], service: str) -> SyncResult:
        descriptor_path = Path(descriptor_path)
        validate_service_name(service)
        bind_service_context(service=service)

        image = read_image_reference(descriptor_path)
        bind_service_context(image=image)

        self.builder.build(image)

        with self.builder.saved_image(image) as artifact:
            self.transfer.upload_artifact(service, artifact)

        try:
            local_digest = fingerprint_file(descriptor_path)
        except OSError as e:
            raise ParseError(f"Could not hash {descriptor_path}: {e}") from e

        remote_digest = self._remote_digest(service)

        uploaded = False
        if local_digest != remote_digest:
            self.transfer.upload_descriptor(service, descriptor_path)
            uploaded = True
        else:
            logger.info("No changes in deploy.yml", digest=local_digest)

        output = self.transfer.trigger_deploy(service)

        logger.info("Deployment complete", descriptor_uploaded=uploaded)
        return SyncResult(
            service=service,
            image=image,
            local_digest=local_digest,
            remote_digest=remote_digest,
            descriptor_uploaded=uploaded,
            deploy_output=output,
        )
