"""
Error taxonomy for the provisioning pipeline.

Every component raises a subclass of ProvisioningError. The request layer maps
``kind`` to a distinct HTTP status; nothing in the core retries or swallows.
"""

from __future__ import annotations


class ProvisioningError(Exception):
    """Base class for all provisioning failures."""

    kind = "provisioning_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigError(ProvisioningError):
    """Invalid configuration value."""

    kind = "config_error"


class ValidationError(ProvisioningError):
    """Missing or malformed username/password."""

    kind = "validation_error"


class CredentialToolError(ProvisioningError):
    """The hashing tool could not start or exited non-zero."""

    kind = "credential_tool_error"

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class StoreIOError(ProvisioningError):
    """The credential store file could not be read or written."""

    kind = "io_error"


class SyncError(ProvisioningError):
    """The remote API call failed or returned a failure status."""

    kind = "sync_error"

    def __init__(self, message: str, *, status: int | None = None, reason: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.reason = reason


class OperationFailed(ProvisioningError):
    """The transport returned no response object at all."""

    kind = "operation_failed"


class ProvisioningTimeout(ProvisioningError):
    """An external process or remote call exceeded its time bound."""

    kind = "timeout"
