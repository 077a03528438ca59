"""Core data models for dd-deploy."""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ServiceEntry(BaseModel):
    """One entry under ``services:`` in a deploy.yml."""

    model_config = ConfigDict(extra="allow")

    image: Optional[str] = Field(None, description="Image reference, e.g. myapp:1")


class DeployManifest(BaseModel):
    """Deployment descriptor (deploy.yml).

    Only ``services.<name>.image`` is interpreted; everything else is passed
    through untouched to the orchestrator.
    """

    model_config = ConfigDict(extra="allow")

    services: Dict[str, ServiceEntry] = Field(default_factory=dict)


class SyncResult(BaseModel):
    """Outcome of one client synchronization run."""

    service: str
    image: str
    local_digest: str
    remote_digest: Optional[str] = None
    descriptor_uploaded: bool = False
    deploy_output: Optional[str] = None
