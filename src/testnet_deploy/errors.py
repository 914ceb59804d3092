#!/usr/bin/env python3
"""
Error types for the testnet deployment tool.

Configuration and dispatch errors are raised before any child process is
spawned. Sync errors propagate to the caller of ClusterSync, which decides
whether the failure is fatal.
"""

from typing import Optional


class DeployError(Exception):
    """Base class for every fatal deployment error."""
    exit_code = 1


class MissingRequiredConfig(DeployError):
    """A required configuration value (deploy method, entrypoint) is empty."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"{name} not specified")


class UnknownDeployMethod(DeployError):
    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Unknown deployment method: {method}")


class UnsupportedClientKind(DeployError):
    def __init__(self, client: str):
        self.client = client
        super().__init__(f"Unknown client name: {client}")


class InvalidConfigValue(DeployError):
    def __init__(self, name: str, value: object, reason: str):
        self.name = name
        self.value = value
        super().__init__(f"Invalid {name} '{value}': {reason}")


class SyncError(DeployError):
    """
    A file synchronization from the entrypoint failed.

    After a SyncError the local destination is in an unknown state and the
    sync must be re-run before the files are used.
    """

    def __init__(self, message: str, source: str, destination: str, return_code: Optional[int] = None):
        self.source = source
        self.destination = destination
        self.return_code = return_code
        super().__init__(message)


class SourceUnavailable(SyncError):
    """The remote source could not be fetched within the retry budget."""


class LocalWriteFailure(SyncError):
    """The local destination could not be written."""


class KeypairGenerationError(DeployError):
    """The keygen program failed to write a keypair."""


class ProvisioningError(DeployError):
    """The performance libraries could not be fetched or loaded."""
