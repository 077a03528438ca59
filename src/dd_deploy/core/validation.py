"""Service name validation.

A service name is used verbatim as a directory component on the receiver
(``<deployments_dir>/<service>/deploy.yml``), so anything that could leave
that directory is rejected outright rather than rewritten.
"""

from typing import Optional

from dd_deploy.core.exceptions import ValidationError

_FORBIDDEN_CHARS = ("/", "\\", "\x00")


def validate_service_name(service: Optional[str]) -> str:
    """Return ``service`` unchanged if it is a safe single path segment.

    Raises:
        ValidationError: if the name is missing, empty, or could escape the
            deployments directory.
    """
    if service is None or not service.strip():
        raise ValidationError("Missing service parameter", code="missing_service")

    for ch in _FORBIDDEN_CHARS:
        if ch in service:
            raise ValidationError(
                f"Invalid service name {service!r}: path separators are not allowed",
                code="invalid_service",
            )

    if service in (".", "..") or ".." in service:
        raise ValidationError(
            f"Invalid service name {service!r}: parent directory references are not allowed",
            code="invalid_service",
        )

    if service != service.strip():
        raise ValidationError(
            f"Invalid service name {service!r}: surrounding whitespace is not allowed",
            code="invalid_service",
        )

    # Passed to docker as a positional argument
    if service.startswith("-"):
        raise ValidationError(
            f"Invalid service name {service!r}: must not start with '-'",
            code="invalid_service",
        )

    return service
