"""Receiver half: descriptor storage and docker actions."""

from .docker import DockerRunner
from .receiver import Receiver
from .store import DescriptorStore, ServiceLocks

__all__ = ["DockerRunner", "Receiver", "DescriptorStore", "ServiceLocks"]
