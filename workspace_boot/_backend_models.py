"""Data models for the Terraform remote-state backend pipeline.

:class:`BackendConfig` is built once per run and shared by the bucket and
lock-table creation steps and the final rendering, so the printed backend
block always names the resources that were created.

Examples
--------
>>> config = BackendConfig(
...     bucket_name="terraform-backend-zero-1700000000",
...     lock_table_name="terraform-locks-zero-1700000000",
...     region="us-east-1",
... )
>>> 'dynamodb_table = "terraform-locks-zero-1700000000"' in render_backend_config(config)
True
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from pathlib import Path

from workspace_boot._errors import ConfigurationError

DEFAULT_REGION = "us-east-1"
DEFAULT_STATE_KEY = "terraform.tfstate"
BUCKET_PREFIX = "terraform-backend-zero"
LOCK_TABLE_PREFIX = "terraform-locks-zero"
BACKEND_ESSENTIAL_PACKAGES: tuple[str, ...] = (
    "unzip",
    "curl",
    "gnupg",
    "software-properties-common",
)
HASHICORP_KEY_URL = "https://apt.releases.hashicorp.com/gpg"
HASHICORP_REPO_URL = "https://apt.releases.hashicorp.com"
HASHICORP_KEYRING = Path("/usr/share/keyrings/hashicorp-archive-keyring.gpg")
HASHICORP_SOURCE_LIST = Path("/etc/apt/sources.list.d/hashicorp.list")
VAULT_LOG_FILE = Path("/tmp/vault-dev.log")
VAULT_DEV_ADDR = "http://127.0.0.1:8200"
TOKEN_WARNING = (
    "⚠️ This token file is for demonstration purposes only. "
    "Do NOT use this method in production."
)


@dataclass(frozen=True, slots=True)
class BackendConfig:
    """Terraform S3 backend settings.

    Attributes
    ----------
    bucket_name
        S3 bucket holding the state file.
    lock_table_name
        DynamoDB table used for state locking.
    region
        AWS region for both resources.
    state_key
        Object key of the state file within the bucket.
    encrypt
        Whether Terraform encrypts the state object.
    """

    bucket_name: str
    lock_table_name: str
    region: str
    state_key: str = DEFAULT_STATE_KEY
    encrypt: bool = True

    @classmethod
    def generate(
        cls,
        region: str = DEFAULT_REGION,
        *,
        timestamp: int | None = None,
        state_key: str = DEFAULT_STATE_KEY,
        encrypt: bool = True,
    ) -> BackendConfig:
        """Name the bucket and table after one shared Unix timestamp.

        Examples
        --------
        >>> BackendConfig.generate(timestamp=42).bucket_name
        'terraform-backend-zero-42'
        """

        stamp = int(time.time()) if timestamp is None else timestamp
        return cls(
            bucket_name=f"{BUCKET_PREFIX}-{stamp}",
            lock_table_name=f"{LOCK_TABLE_PREFIX}-{stamp}",
            region=region,
            state_key=state_key,
            encrypt=encrypt,
        )


@dataclass(frozen=True, slots=True)
class BackendProvisioningConfig:
    """Resolved inputs for the backend provisioning pipeline."""

    backend: BackendConfig
    token_file: Path
    vault_log_file: Path = VAULT_LOG_FILE
    vault_addr: str = VAULT_DEV_ADDR
    essential_packages: tuple[str, ...] = BACKEND_ESSENTIAL_PACKAGES
    poll_attempts: int = 30
    poll_interval: float = 2.0
    lock_table_wait_fatal: bool = True
    vault_ready_attempts: int = 10
    keyring_path: Path = HASHICORP_KEYRING
    source_list_path: Path = HASHICORP_SOURCE_LIST

    def __post_init__(self) -> None:
        if self.poll_attempts < 1:
            msg = f"poll_attempts must be at least 1, got {self.poll_attempts}"
            raise ConfigurationError(msg)
        if not math.isfinite(self.poll_interval) or self.poll_interval < 0:
            msg = (
                "poll_interval must be a finite, non-negative number, "
                f"got {self.poll_interval}"
            )
            raise ConfigurationError(msg)
        if self.vault_ready_attempts < 1:
            msg = (
                "vault_ready_attempts must be at least 1, "
                f"got {self.vault_ready_attempts}"
            )
            raise ConfigurationError(msg)


def _hcl_bool(value: bool) -> str:
    return "true" if value else "false"


def render_backend_config(config: BackendConfig) -> str:
    """Render *config* as a Terraform ``backend "s3"`` block."""

    return "\n".join(
        [
            "terraform {",
            '  backend "s3" {',
            f'    bucket         = "{config.bucket_name}"',
            f'    key            = "{config.state_key}"',
            f'    region         = "{config.region}"',
            f'    dynamodb_table = "{config.lock_table_name}"',
            f"    encrypt        = {_hcl_bool(config.encrypt)}",
            "  }",
            "}",
        ]
    )


def render_token_file(token: str) -> str:
    """Return the token file content: warning line, then the token.

    Examples
    --------
    >>> render_token_file("hvs.abc").splitlines()[1]
    'hvs.abc'
    """

    return f"{TOKEN_WARNING}\n{token}\n"


__all__ = [
    "BACKEND_ESSENTIAL_PACKAGES",
    "BackendConfig",
    "BackendProvisioningConfig",
    "DEFAULT_REGION",
    "DEFAULT_STATE_KEY",
    "TOKEN_WARNING",
    "render_backend_config",
    "render_token_file",
]
