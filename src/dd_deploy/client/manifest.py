"""Read the image reference out of a deploy.yml."""

from pathlib import Path
from typing import Union

import structlog
import yaml
from pydantic import ValidationError as PydanticValidationError

from dd_deploy.core.exceptions import NotFoundError, ParseError
from dd_deploy.core.models import DeployManifest

logger = structlog.get_logger()


def parse_manifest(data: bytes) -> DeployManifest:
    """Parse descriptor bytes into a DeployManifest."""
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid YAML in deployment descriptor: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ParseError("Deployment descriptor must be a YAML mapping")

    # A bare "services:" key (or entry) parses as None
    services = raw.get("services")
    if services is None:
        raw = {**raw, "services": {}}
    elif isinstance(services, dict):
        raw = {**raw, "services": {k: ({} if v is None else v) for k, v in services.items()}}

    try:
        return DeployManifest.model_validate(raw)
    except PydanticValidationError as e:
        raise ParseError(f"Invalid deployment descriptor: {e}") from e


def parse_image_reference(data: bytes) -> str:
    """Return the image reference of the first service entry that has one.

    Entries are visited in lexicographic order of their names so that the
    choice does not depend on YAML key order.

    Raises:
        ParseError: descriptor is not well-formed
        NotFoundError: no entry carries an image
    """
    manifest = parse_manifest(data)

    candidates = [
        (name, entry.image)
        for name, entry in sorted(manifest.services.items())
        if entry.image
    ]
    if not candidates:
        raise NotFoundError("no image found in deploy.yml")

    name, image = candidates[0]
    if len(candidates) > 1:
        logger.warning(
            "Multiple services define an image; using the first by name",
            chosen=name,
            services=[n for n, _ in candidates],
        )
    return image


def read_image_reference(path: Union[str, Path]) -> str:
    path = Path(path)
    try:
        data = path.read_bytes()
    except FileNotFoundError as e:
        raise NotFoundError(f"Deployment descriptor not found: {path}") from e
    except OSError as e:
        raise ParseError(f"Could not read deployment descriptor {path}: {e}") from e
    return parse_image_reference(data)
