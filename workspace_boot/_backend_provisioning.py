"""Step definitions for the Terraform remote-state backend pipeline.

The pipeline installs Terraform and Vault, creates a versioned S3 bucket and a
DynamoDB lock table, waits for the table to become ``ACTIVE``, starts a
supervised Vault dev server, stores its root token and prints the backend
block for Terraform.

Examples
--------
>>> from pathlib import Path
>>> config = BackendProvisioningConfig(
...     backend=BackendConfig.generate(timestamp=1),
...     token_file=Path("/tmp/token"),
... )
>>> [step.name for step in build_backend_steps(config, BackendRunState())][0]
'Install missing dependencies'
"""

from __future__ import annotations

import logging
from collections import abc as cabc
from dataclasses import dataclass, field

from workspace_boot._backend_models import (
    HASHICORP_KEY_URL,
    HASHICORP_REPO_URL,
    BackendConfig,
    BackendProvisioningConfig,
    render_backend_config,
    render_token_file,
)
from workspace_boot._commands import (
    CommandContext,
    command_available,
    command_succeeds,
    run_command,
    sudo,
)
from workspace_boot._errors import PollTimeoutError, StepFailedError
from workspace_boot._files import write_private_file
from workspace_boot._polling import PollOutcome, poll_until
from workspace_boot._steps import PipelineReport, Step, run_steps
from workspace_boot._tools import TOOL_PROBES, require_version
from workspace_boot._vault_dev import VaultDevServer, vault_status_ok

logger = logging.getLogger(__name__)

SEPARATOR = "---------------------------------------------"


@dataclass(slots=True)
class BackendRunState:
    """Values produced by earlier steps and consumed by later ones."""

    server: VaultDevServer | None = None
    root_token: str | None = field(default=None, repr=False)
    lock_table_outcome: PollOutcome | None = None


@dataclass(slots=True)
class BackendRun:
    """Report and state of a finished backend provisioning run."""

    report: PipelineReport
    state: BackendRunState


def missing_packages(packages: cabc.Iterable[str]) -> list[str]:
    """Return the subset of *packages* that ``dpkg`` does not report installed."""

    return [package for package in packages if not command_succeeds("dpkg", "-s", package)]


def install_missing_packages(packages: tuple[str, ...]) -> str:
    """Refresh the package index and install only the missing *packages*."""

    sudo("apt-get", "update", "-y")
    to_install = missing_packages(packages)
    if not to_install:
        return "All essential packages already installed - skipping"
    logger.info("Installing: %s", " ".join(to_install))
    return sudo("apt-get", "install", "-y", *to_install)


def add_hashicorp_repository(config: BackendProvisioningConfig) -> str:
    """Install the HashiCorp signing key and apt source, then refresh the index."""

    armored_key = run_command("curl", "-fsSL", HASHICORP_KEY_URL)
    sudo(
        "gpg",
        "--batch",
        "--yes",
        "--dearmor",
        "-o",
        str(config.keyring_path),
        context=CommandContext(stdin=armored_key),
    )
    codename = run_command("lsb_release", "-cs").strip()
    source = (
        f"deb [signed-by={config.keyring_path}] {HASHICORP_REPO_URL} {codename} main\n"
    )
    sudo("tee", str(config.source_list_path), context=CommandContext(stdin=source))
    return sudo("apt-get", "update", "-y")


def install_terraform_and_vault() -> str:
    return sudo("apt-get", "install", "-y", "terraform", "vault")


def _probe_terraform_and_vault() -> str:
    return "\n".join(
        [
            require_version(TOOL_PROBES["terraform"]),
            require_version(TOOL_PROBES["vault"]),
        ]
    )


def create_bucket(backend: BackendConfig) -> str:
    """Create the state bucket; ``us-east-1`` must omit the location constraint."""

    args = [
        "s3api",
        "create-bucket",
        "--bucket",
        backend.bucket_name,
        "--region",
        backend.region,
    ]
    if backend.region != "us-east-1":
        args.extend(
            [
                "--create-bucket-configuration",
                f"LocationConstraint={backend.region}",
            ]
        )
    return run_command("aws", *args)


def enable_bucket_versioning(backend: BackendConfig) -> str:
    return run_command(
        "aws",
        "s3api",
        "put-bucket-versioning",
        "--bucket",
        backend.bucket_name,
        "--versioning-configuration",
        "Status=Enabled",
        "--region",
        backend.region,
    )


def create_lock_table(backend: BackendConfig) -> str:
    """Create the DynamoDB table Terraform uses for state locking."""

    return run_command(
        "aws",
        "dynamodb",
        "create-table",
        "--table-name",
        backend.lock_table_name,
        "--attribute-definitions",
        "AttributeName=LockID,AttributeType=S",
        "--key-schema",
        "AttributeName=LockID,KeyType=HASH",
        "--billing-mode",
        "PAY_PER_REQUEST",
        "--region",
        backend.region,
    )


def describe_table_status(backend: BackendConfig) -> str:
    return run_command(
        "aws",
        "dynamodb",
        "describe-table",
        "--table-name",
        backend.lock_table_name,
        "--region",
        backend.region,
        "--query",
        "Table.TableStatus",
        "--output",
        "text",
    ).strip()


def wait_for_lock_table(
    config: BackendProvisioningConfig,
    state: BackendRunState,
) -> str:
    """Poll the lock table until ``ACTIVE`` within the configured budget.

    Exhaustion raises :class:`PollTimeoutError` when
    ``lock_table_wait_fatal`` is set and only logs a warning otherwise.
    """

    outcome = poll_until(
        lambda: describe_table_status(config.backend),
        "ACTIVE",
        max_attempts=config.poll_attempts,
        interval=config.poll_interval,
    )
    state.lock_table_outcome = outcome
    if outcome.reached:
        return f"Table status is ACTIVE after {outcome.attempts} attempt(s)"
    msg = (
        f"Table {config.backend.lock_table_name} still {outcome.last_status} "
        f"after {outcome.attempts} attempts"
    )
    if config.lock_table_wait_fatal:
        raise PollTimeoutError(msg)
    logger.warning("%s; continuing", msg)
    return msg


def dev_server_reusable(config: BackendProvisioningConfig) -> bool:
    """Return ``True`` when a healthy server and its saved token already exist."""

    return config.token_file.is_file() and vault_status_ok(config.vault_addr)


def start_vault_dev_server(
    config: BackendProvisioningConfig,
    state: BackendRunState,
    server_factory: cabc.Callable[[BackendProvisioningConfig], VaultDevServer],
) -> str:
    """Launch the dev server and wait for readiness, keeping the handle in *state*.

    A server already answering at ``vault_addr`` without a saved token cannot
    be reused, and a second dev server cannot bind the same address.
    """

    if vault_status_ok(config.vault_addr):
        msg = (
            f"A Vault server is already listening at {config.vault_addr} but "
            f"{config.token_file} is missing; stop the old `vault server -dev` "
            "process (or rerun the previous provisioning with --stop-vault)"
        )
        raise StepFailedError(msg)
    server = server_factory(config)
    state.server = server
    server.start()
    state.root_token = server.wait_ready()
    return f"Vault dev server ready at {server.addr} (pid {server.pid})"


def store_root_token(config: BackendProvisioningConfig, state: BackendRunState) -> str:
    if not state.root_token:
        msg = "No Vault root token captured"
        raise StepFailedError(msg)
    write_private_file(config.token_file, render_token_file(state.root_token))
    return f"Vault root token stored in: {config.token_file}"


def render_final_output(backend: BackendConfig) -> str:
    """Return the closing summary with the backend block for Terraform."""

    return "\n".join(
        [
            "",
            "✅ Terraform installed",
            "✅ Vault installed and started in dev mode",
            f"✅ S3 bucket created: {backend.bucket_name}",
            f"✅ DynamoDB table created: {backend.lock_table_name}",
            "",
            SEPARATOR,
            "➡️ Use the following backend config in Terraform:",
            SEPARATOR,
            render_backend_config(backend),
            SEPARATOR,
        ]
    )


def print_backend_config(backend: BackendConfig) -> str:
    output = render_final_output(backend)
    print(output)
    return output


def default_server_factory(config: BackendProvisioningConfig) -> VaultDevServer:
    return VaultDevServer(
        config.vault_log_file,
        addr=config.vault_addr,
        ready_attempts=config.vault_ready_attempts,
    )


def build_backend_steps(
    config: BackendProvisioningConfig,
    state: BackendRunState,
    *,
    server_factory: cabc.Callable[
        [BackendProvisioningConfig], VaultDevServer
    ] = default_server_factory,
) -> list[Step]:
    """Return the ordered backend provisioning steps sharing *state*."""

    backend = config.backend
    return [
        Step(
            "Install missing dependencies",
            lambda: install_missing_packages(config.essential_packages),
        ),
        Step(
            "Add HashiCorp apt repository",
            lambda: add_hashicorp_repository(config),
            precondition=config.source_list_path.is_file,
            skip_message=f"{config.source_list_path} already present",
        ),
        Step(
            "Install Terraform and Vault",
            install_terraform_and_vault,
            precondition=lambda: command_available("terraform") and command_available("vault"),
            skip_message="terraform and vault already on PATH",
            postcondition=_probe_terraform_and_vault,
        ),
        Step(f"Create S3 bucket {backend.bucket_name}", lambda: create_bucket(backend)),
        Step("Enable bucket versioning", lambda: enable_bucket_versioning(backend)),
        Step(
            f"Create DynamoDB table {backend.lock_table_name}",
            lambda: create_lock_table(backend),
        ),
        Step(
            "Wait for DynamoDB table to become ACTIVE",
            lambda: wait_for_lock_table(config, state),
        ),
        Step(
            "Start Vault in dev mode",
            lambda: start_vault_dev_server(config, state, server_factory),
            precondition=lambda: dev_server_reusable(config),
            skip_message=f"Vault already running at {config.vault_addr}; reusing it",
        ),
        Step(
            "Store Vault root token",
            lambda: store_root_token(config, state),
            precondition=lambda: state.server is None and config.token_file.is_file(),
            skip_message=f"keeping existing token in {config.token_file}",
        ),
        Step("Render backend config", lambda: print_backend_config(backend)),
    ]


def provision_backend(
    config: BackendProvisioningConfig,
    *,
    keep_vault_running: bool = True,
    server_factory: cabc.Callable[
        [BackendProvisioningConfig], VaultDevServer
    ] = default_server_factory,
) -> BackendRun:
    """Run the backend pipeline.

    The Vault dev server is stopped when any step fails, and also after a
    successful run unless *keep_vault_running* is set.
    """

    state = BackendRunState()
    steps = build_backend_steps(config, state, server_factory=server_factory)
    report: PipelineReport | None = None
    try:
        report = run_steps(steps)
    finally:
        aborted = report is None or not report.succeeded
        if state.server is not None and (aborted or not keep_vault_running):
            state.server.stop()
    return BackendRun(report=report, state=state)


__all__ = [
    "BackendRun",
    "BackendRunState",
    "add_hashicorp_repository",
    "build_backend_steps",
    "create_bucket",
    "create_lock_table",
    "default_server_factory",
    "dev_server_reusable",
    "describe_table_status",
    "enable_bucket_versioning",
    "install_missing_packages",
    "install_terraform_and_vault",
    "missing_packages",
    "print_backend_config",
    "provision_backend",
    "render_final_output",
    "start_vault_dev_server",
    "store_root_token",
    "wait_for_lock_table",
]
