#!/usr/bin/env -S uv run python
# /// script
# requires-python = ">=3.12"
# dependencies = ["cyclopts>=2.9", "plumbum"]
# ///
"""Bootstrap a fresh zero node with developer tooling.

This script:
- updates the system and sets the timezone;
- installs the required utilities and the AWS CLI v2;
- generates an SSH key once and copies it into the projects directory; and
- records the public IP and prints a summary of installed tools.

Every option falls back to an environment variable and then to the fixed
defaults, so running it without arguments reproduces the standard layout.
"""

from __future__ import annotations

import os
from collections import abc as cabc
from dataclasses import dataclass
from pathlib import Path

from cyclopts import App, Parameter

from workspace_boot._cli import configure_logging, finish
from workspace_boot._host_bootstrap import bootstrap_host
from workspace_boot._host_config import (
    DEFAULT_AWS_CLI_URL,
    DEFAULT_ESSENTIAL_PACKAGES,
    DEFAULT_IP_ECHO_URL,
    DEFAULT_TIMEZONE,
    HostBootstrapConfig,
)
from workspace_boot._input_resolution import (
    InputResolution,
    parse_bool,
    parse_list,
    resolve_input,
    resolve_path,
)

app = App(help="Bootstrap a fresh host with developer tooling and an SSH key.")


@dataclass(frozen=True, slots=True)
class RawHostInputs:
    """Host bootstrap inputs as supplied on the command line."""

    home: Path | None = None
    projects_dir: Path | None = None
    timezone: str | None = None
    essential_packages: str | None = None
    aws_cli_url: str | None = None
    ip_echo_url: str | None = None


def resolve_host_config(
    raw: RawHostInputs,
    env: cabc.Mapping[str, str] | None = None,
) -> HostBootstrapConfig:
    """Merge CLI values, environment variables and defaults."""

    env = os.environ if env is None else env
    home = resolve_path(raw.home, "HOME", Path.home(), env=env)
    projects_dir = resolve_path(
        raw.projects_dir, "BOOT_PROJECTS_DIR", home / "projects", env=env
    )
    timezone = resolve_input(
        raw.timezone,
        InputResolution(env_key="BOOT_TIMEZONE", default=DEFAULT_TIMEZONE),
        env=env,
    )
    essentials = parse_list(
        resolve_input(
            raw.essential_packages,
            InputResolution(env_key="BOOT_ESSENTIAL_PACKAGES"),
            env=env,
        )  # type: ignore[arg-type]
    )
    aws_cli_url = resolve_input(
        raw.aws_cli_url,
        InputResolution(env_key="BOOT_AWS_CLI_URL", default=DEFAULT_AWS_CLI_URL),
        env=env,
    )
    ip_echo_url = resolve_input(
        raw.ip_echo_url,
        InputResolution(env_key="BOOT_IP_ECHO_URL", default=DEFAULT_IP_ECHO_URL),
        env=env,
    )
    return HostBootstrapConfig.for_home(
        home,
        projects_dir=projects_dir,
        timezone=str(timezone),
        essential_packages=essentials or DEFAULT_ESSENTIAL_PACKAGES,
        aws_cli_url=str(aws_cli_url),
        ip_echo_url=str(ip_echo_url),
    )


@app.default
def main(
    home: Path | None = Parameter(),
    projects_dir: Path | None = Parameter(),
    timezone: str | None = Parameter(),
    essential_packages: str | None = Parameter(),
    aws_cli_url: str | None = Parameter(),
    ip_echo_url: str | None = Parameter(),
    verbose: bool = False,
) -> int:
    """Run the host bootstrap pipeline; exit 1 on the first failed step."""

    env_verbose = parse_bool(os.environ.get("BOOT_VERBOSE"), name="BOOT_VERBOSE")
    configure_logging(verbose=verbose or env_verbose)
    config = resolve_host_config(
        RawHostInputs(
            home=home,
            projects_dir=projects_dir,
            timezone=timezone,
            essential_packages=essential_packages,
            aws_cli_url=aws_cli_url,
            ip_echo_url=ip_echo_url,
        )
    )
    report = bootstrap_host(config)
    return finish(report, "Host bootstrap complete.")


def run() -> None:  # pragma: no cover - console script
    raise SystemExit(app())


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    run()
