"""Step definitions for the host bootstrap pipeline.

The pipeline updates the system, sets the timezone, installs the developer
utilities and the AWS CLI, creates an SSH key once, copies it into the
projects directory, records the public IP and prints a summary.

Examples
--------
>>> from pathlib import Path
>>> config = HostBootstrapConfig.for_home(Path("/home/ubuntu"))
>>> [step.name for step in build_host_steps(config)][:2]
['System update & upgrade', 'Set timezone to America/New_York']
"""

from __future__ import annotations

import ipaddress
import logging
from pathlib import Path

from workspace_boot._commands import (
    CommandContext,
    command_available,
    run_command,
    sudo,
)
from workspace_boot._errors import CommandError, StepFailedError
from workspace_boot._files import copy_private_file
from workspace_boot._host_config import HostBootstrapConfig, PackageInstall
from workspace_boot._steps import PipelineReport, Step, run_steps
from workspace_boot._tools import TOOL_PROBES, require_version, version_line

logger = logging.getLogger(__name__)

SUMMARY_TOOLS = (
    "python3",
    "pip3",
    "git",
    "curl",
    "unzip",
    "tree",
    "jq",
    "aws",
    "htop",
    "tmux",
)


def update_system() -> str:
    """Refresh the package index and upgrade installed packages."""

    output = sudo("apt-get", "update", "-y")
    return output + sudo("apt-get", "upgrade", "-y")


def current_timezone() -> str | None:
    """Return the configured system timezone, or ``None`` if unknown."""

    try:
        output = run_command("timedatectl", "show", "--property=Timezone", "--value")
    except CommandError:
        return None
    return output.strip() or None


def set_timezone(timezone: str) -> str:
    sudo("timedatectl", "set-timezone", timezone)
    return run_command("timedatectl")


def apt_install(packages: tuple[str, ...]) -> str:
    """Install *packages* with ``apt-get``; re-installing is a no-op."""

    if not packages:
        return ""
    return sudo("apt-get", "install", "-y", *packages)


def _probe_all(names: tuple[str, ...]) -> str:
    return "\n".join(require_version(TOOL_PROBES[name]) for name in names)


def _package_step(install: PackageInstall) -> Step:
    return Step(
        name=f"Install {install.label}",
        action=lambda: apt_install(install.packages),
        postcondition=lambda: _probe_all(install.probes),
    )


def install_aws_cli(config: HostBootstrapConfig) -> str:
    """Download and run the AWS CLI v2 installer.

    ``--update`` is passed when ``aws`` is already present so reruns succeed.
    """

    config.download_dir.mkdir(parents=True, exist_ok=True)
    context = CommandContext(cwd=config.download_dir)
    archive = config.download_dir / "awscliv2.zip"
    run_command("curl", "-sSL", config.aws_cli_url, "-o", str(archive), context=context)
    run_command("unzip", "-o", "-q", str(archive), context=context)
    installer = ["./aws/install"]
    if command_available("aws"):
        installer.append("--update")
    return sudo(*installer, context=context)


def generate_ssh_key(config: HostBootstrapConfig) -> str:
    """Create an RSA keypair at the configured path with an empty passphrase."""

    config.ssh_key_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    return run_command(
        "ssh-keygen",
        "-t",
        "rsa",
        "-b",
        str(config.ssh_key_bits),
        "-f",
        str(config.ssh_key_path),
        "-N",
        "",
        "-C",
        config.ssh_key_comment,
    )


def copy_ssh_key(config: HostBootstrapConfig) -> str:
    """Copy the private key into the projects directory with mode ``0600``."""

    if not config.ssh_key_path.is_file():
        msg = f"SSH key {config.ssh_key_path} does not exist"
        raise StepFailedError(msg)
    config.projects_dir.mkdir(parents=True, exist_ok=True)
    copy_private_file(config.ssh_key_path, config.ssh_key_copy)
    return f"SSH key copied to {config.ssh_key_copy}"


def parse_ip_address(raw: str) -> str:
    """Validate *raw* as an IPv4 or IPv6 address and return it normalised.

    Examples
    --------
    >>> parse_ip_address(" 203.0.113.7\\n")
    '203.0.113.7'
    >>> parse_ip_address("<html>")
    Traceback (most recent call last):
    ...
    workspace_boot._errors.StepFailedError: IP echo service returned '<html>', not an IP address
    """

    candidate = raw.strip()
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError as exc:
        msg = f"IP echo service returned {candidate!r}, not an IP address"
        raise StepFailedError(msg) from exc


def fetch_public_ip(echo_url: str) -> str:
    return parse_ip_address(run_command("curl", "-s", echo_url))


def record_public_ip(config: HostBootstrapConfig) -> str:
    """Fetch the public IP and overwrite the record with a single line."""

    address = fetch_public_ip(config.ip_echo_url)
    config.public_ip_file.parent.mkdir(parents=True, exist_ok=True)
    config.public_ip_file.write_text(f"{address}\n", encoding="utf-8")
    return f"Public IP saved to {config.public_ip_file}: {address}"


def _timezone_line() -> str:
    try:
        output = run_command("timedatectl")
    except CommandError:
        return "unknown"
    for line in output.splitlines():
        if "Time zone" in line:
            return line.strip()
    return "unknown"


def render_summary(config: HostBootstrapConfig) -> str:
    """Return the installed-tools summary block."""

    def _read_ip(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return "unknown"

    lines = [
        "",
        "========= Installed Tools Summary =========",
        f"Timezone: {_timezone_line()}",
    ]
    for name in SUMMARY_TOOLS:
        probe = TOOL_PROBES[name]
        lines.append(f"{probe.label + ':':<10}{version_line(probe) or 'not installed'}")
    lines.extend(
        [
            f"SSH key:  {config.ssh_key_path} / {config.ssh_public_key_path}",
            f"Copy to:  {config.ssh_key_copy}",
            f"Public IP: {_read_ip(config.public_ip_file)}  (saved to {config.public_ip_file})",
            "===========================================",
        ]
    )
    return "\n".join(lines)


def print_summary(config: HostBootstrapConfig) -> str:
    summary = render_summary(config)
    print(summary)
    return summary


def build_host_steps(config: HostBootstrapConfig) -> list[Step]:
    """Return the ordered host bootstrap steps for *config*."""

    essentials = " ".join(config.essential_packages)
    return [
        Step("System update & upgrade", update_system),
        Step(
            f"Set timezone to {config.timezone}",
            lambda: set_timezone(config.timezone),
            precondition=lambda: current_timezone() == config.timezone,
            skip_message=f"timezone already {config.timezone}",
        ),
        Step(
            f"Install required utilities ({essentials})",
            lambda: apt_install(config.essential_packages),
        ),
        *[_package_step(install) for install in config.package_installs],
        Step(
            "Install AWS CLI",
            lambda: install_aws_cli(config),
            postcondition=lambda: require_version(TOOL_PROBES["aws"]),
        ),
        Step(
            "Generate SSH key",
            lambda: generate_ssh_key(config),
            precondition=config.ssh_key_path.is_file,
            skip_message=f"SSH key already exists at {config.ssh_key_path}",
        ),
        Step("Copy SSH key to projects folder", lambda: copy_ssh_key(config)),
        Step(
            f"Save public IP to {config.public_ip_file}",
            lambda: record_public_ip(config),
        ),
        Step("Summary", lambda: print_summary(config)),
    ]


def bootstrap_host(config: HostBootstrapConfig) -> PipelineReport:
    """Run the host bootstrap pipeline and return its report."""

    logger.info("Bootstrapping host (projects dir: %s)", config.projects_dir)
    return run_steps(build_host_steps(config))


__all__ = [
    "apt_install",
    "bootstrap_host",
    "build_host_steps",
    "copy_ssh_key",
    "current_timezone",
    "fetch_public_ip",
    "generate_ssh_key",
    "install_aws_cli",
    "parse_ip_address",
    "print_summary",
    "record_public_ip",
    "render_summary",
    "set_timezone",
    "update_system",
]
