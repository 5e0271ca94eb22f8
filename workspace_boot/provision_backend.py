#!/usr/bin/env -S uv run python
# /// script
# requires-python = ">=3.12"
# dependencies = ["cyclopts>=2.9", "plumbum"]
# ///
"""Provision a Terraform S3 remote-state backend and a Vault dev server.

This script:
- installs the missing prerequisites, Terraform and Vault;
- creates a versioned S3 bucket and a DynamoDB lock table;
- waits for the lock table to become ACTIVE;
- starts Vault in dev mode and stores its root token; and
- prints the ``backend "s3"`` block for Terraform.
"""

from __future__ import annotations

import os
from collections import abc as cabc
from dataclasses import dataclass
from pathlib import Path

from cyclopts import App, Parameter

from workspace_boot._backend_models import (
    DEFAULT_REGION,
    DEFAULT_STATE_KEY,
    VAULT_LOG_FILE,
    BackendConfig,
    BackendProvisioningConfig,
)
from workspace_boot._backend_provisioning import provision_backend
from workspace_boot._cli import configure_logging, finish
from workspace_boot._errors import ConfigurationError
from workspace_boot._input_resolution import (
    InputResolution,
    parse_bool,
    parse_int,
    resolve_input,
    resolve_path,
)

app = App(help="Provision a Terraform remote-state backend and a Vault dev server.")


@dataclass(frozen=True, slots=True)
class RawBackendInputs:
    """Backend provisioning inputs as supplied on the command line."""

    region: str | None = None
    state_key: str | None = None
    timestamp: int | None = None
    token_file: Path | None = None
    vault_log_file: Path | None = None
    poll_attempts: int | None = None
    poll_interval: float | None = None
    lock_table_wait_fatal: bool | str | None = None


def resolve_backend_config(
    raw: RawBackendInputs,
    env: cabc.Mapping[str, str] | None = None,
) -> BackendProvisioningConfig:
    """Merge CLI values, environment variables and defaults."""

    env = os.environ if env is None else env
    region = resolve_input(
        raw.region,
        InputResolution(env_key="AWS_REGION", default=DEFAULT_REGION),
        env=env,
    )
    state_key = resolve_input(
        raw.state_key,
        InputResolution(env_key="BOOT_STATE_KEY", default=DEFAULT_STATE_KEY),
        env=env,
    )
    home = resolve_path(None, "HOME", Path.home(), env=env)
    token_file = resolve_path(
        raw.token_file,
        "BOOT_VAULT_TOKEN_FILE",
        home / "projects" / ".hcl_vault_token",
        env=env,
    )
    vault_log_file = resolve_path(
        raw.vault_log_file, "BOOT_VAULT_LOG_FILE", VAULT_LOG_FILE, env=env
    )
    poll_attempts = parse_int(
        resolve_input(
            None if raw.poll_attempts is None else str(raw.poll_attempts),
            InputResolution(env_key="BOOT_POLL_ATTEMPTS", default="30"),
            env=env,
        ),  # type: ignore[arg-type]
        name="POLL_ATTEMPTS",
    )
    raw_interval = resolve_input(
        None if raw.poll_interval is None else str(raw.poll_interval),
        InputResolution(env_key="BOOT_POLL_INTERVAL", default="2"),
        env=env,
    )
    try:
        poll_interval = float(str(raw_interval))
    except ValueError as exc:
        msg = f"POLL_INTERVAL must be a number, got: {raw_interval!r}"
        raise SystemExit(msg) from exc
    wait_fatal = parse_bool(
        resolve_input(
            None
            if raw.lock_table_wait_fatal is None
            else str(raw.lock_table_wait_fatal),
            InputResolution(env_key="BOOT_LOCK_TABLE_WAIT_FATAL", default="true"),
            env=env,
        ),  # type: ignore[arg-type]
        default=True,
        name="LOCK_TABLE_WAIT_FATAL",
    )
    backend = BackendConfig.generate(
        str(region),
        timestamp=raw.timestamp,
        state_key=str(state_key),
    )
    try:
        return BackendProvisioningConfig(
            backend=backend,
            token_file=token_file,
            vault_log_file=vault_log_file,
            poll_attempts=poll_attempts,
            poll_interval=poll_interval,
            lock_table_wait_fatal=wait_fatal,
        )
    except ConfigurationError as exc:
        raise SystemExit(str(exc)) from exc


@app.default
def main(
    region: str | None = Parameter(),
    state_key: str | None = Parameter(),
    token_file: Path | None = Parameter(),
    vault_log_file: Path | None = Parameter(),
    poll_attempts: int | None = Parameter(),
    poll_interval: float | None = Parameter(),
    lock_table_wait_fatal: bool | str | None = Parameter(),
    stop_vault: bool = False,
    verbose: bool = False,
) -> int:
    """Run the backend provisioning pipeline; exit 1 on the first failed step."""

    env_verbose = parse_bool(os.environ.get("BOOT_VERBOSE"), name="BOOT_VERBOSE")
    configure_logging(verbose=verbose or env_verbose)
    config = resolve_backend_config(
        RawBackendInputs(
            region=region,
            state_key=state_key,
            token_file=token_file,
            vault_log_file=vault_log_file,
            poll_attempts=poll_attempts,
            poll_interval=poll_interval,
            lock_table_wait_fatal=lock_table_wait_fatal,
        )
    )
    result = provision_backend(config, keep_vault_running=not stop_vault)
    return finish(result.report, "Backend provisioning complete.")


def run() -> None:  # pragma: no cover - console script
    raise SystemExit(app())


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    run()
