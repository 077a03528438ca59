"""Client half: read descriptor, build, transfer, trigger."""

from .builder import ImageBuilder
from .sync import SyncDriver
from .transfer import TransferClient

__all__ = ["ImageBuilder", "SyncDriver", "TransferClient"]
