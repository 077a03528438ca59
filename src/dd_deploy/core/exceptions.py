"""Custom exceptions for dd-deploy."""

from typing import Optional


class DDError(Exception):
    """Base exception for all deployment errors."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class ValidationError(DDError):
    """Missing or unsafe request input (e.g. a service name)."""
    pass


class ParseError(DDError):
    """Deployment descriptor could not be parsed."""
    pass


class NotFoundError(DDError):
    """Descriptor, image reference, or stored service state missing."""
    pass


class BuildError(DDError):
    """`docker build` failed."""
    pass


class SaveError(DDError):
    """`docker save` failed."""
    pass


class LoadError(DDError):
    """`docker load` failed on the receiving host."""
    pass


class TransferError(DDError):
    """Network or HTTP-level failure talking to the receiver."""

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, code)
        self.status_code = status_code


class DeployError(DDError):
    """The apply-manifest action failed."""
    pass


class OperationTimeoutError(DDError):
    """A subprocess or HTTP call exceeded its time budget."""
    pass
