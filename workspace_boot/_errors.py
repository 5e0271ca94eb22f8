"""Exception hierarchy for the workspace provisioning pipelines.

Callers can catch :class:`ProvisioningError` to handle any failure raised by
the step runner, the command layer or the pipeline step definitions.

Examples
--------
>>> isinstance(CommandError("apt-get install failed"), ProvisioningError)
True
"""

from __future__ import annotations


class ProvisioningError(Exception):
    """Base error for provisioning steps and helpers."""


class ConfigurationError(ProvisioningError):
    """Raised when resolved pipeline configuration is inconsistent."""


class CommandError(ProvisioningError):
    """Raised when an external command exits non-zero or cannot be found.

    Examples
    --------
    >>> str(CommandError("Command 'jq' failed with exit status 1"))
    "Command 'jq' failed with exit status 1"
    """


class StepFailedError(ProvisioningError):
    """Raised when a step action or postcondition does not hold."""


class PollTimeoutError(ProvisioningError):
    """Raised when a bounded poll exhausts its attempts and exhaustion is fatal."""


class VaultStartupError(ProvisioningError):
    """Raised when the Vault dev server exits early or never becomes ready."""


__all__ = [
    "CommandError",
    "ConfigurationError",
    "PollTimeoutError",
    "ProvisioningError",
    "StepFailedError",
    "VaultStartupError",
]
