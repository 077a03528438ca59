"""dd-deploy - build, ship and deploy containerized services to a remote host."""

__version__ = "0.1.0"

from dd_deploy.core.config import ClientSettings, ServerSettings
from dd_deploy.core.models import DeployManifest, SyncResult

__all__ = ["ClientSettings", "ServerSettings", "DeployManifest", "SyncResult", "__version__"]
