"""Configuration for the host bootstrap pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_ESSENTIAL_PACKAGES: tuple[str, ...] = (
    "unzip",
    "curl",
    "gnupg",
    "software-properties-common",
)
DEFAULT_AWS_CLI_URL = "https://awscli.amazonaws.com/awscli-exe-linux-x86_64.zip"
DEFAULT_IP_ECHO_URL = "ifconfig.me"
SSH_KEY_NAME = "zero-node-key"
SSH_KEY_COPY_NAME = ".ssh_terr_0_node"
PUBLIC_IP_FILE_NAME = "publicip"


@dataclass(frozen=True, slots=True)
class PackageInstall:
    """An apt install step and the binaries that prove it worked.

    Examples
    --------
    >>> PackageInstall("Python 3 and pip", ("python3", "python3-pip"), ("python3", "pip3")).probes
    ('python3', 'pip3')
    """

    label: str
    packages: tuple[str, ...]
    probes: tuple[str, ...]


DEFAULT_PACKAGE_INSTALLS: tuple[PackageInstall, ...] = (
    PackageInstall("unzip", ("unzip",), ("unzip",)),
    PackageInstall("tree", ("tree",), ("tree",)),
    PackageInstall("curl", ("curl",), ("curl",)),
    PackageInstall("net-tools (netstat)", ("net-tools",), ("netstat",)),
    PackageInstall("Python 3 and pip", ("python3", "python3-pip"), ("python3", "pip3")),
    PackageInstall("Git", ("git",), ("git",)),
    PackageInstall("jq", ("jq",), ("jq",)),
    PackageInstall("htop", ("htop",), ("htop",)),
    PackageInstall("tmux", ("tmux",), ("tmux",)),
)


@dataclass(frozen=True, slots=True)
class HostBootstrapConfig:
    """Resolved inputs for :func:`workspace_boot._host_bootstrap.bootstrap_host`."""

    projects_dir: Path
    ssh_key_path: Path
    ssh_key_copy: Path
    public_ip_file: Path
    download_dir: Path
    timezone: str = DEFAULT_TIMEZONE
    essential_packages: tuple[str, ...] = DEFAULT_ESSENTIAL_PACKAGES
    package_installs: tuple[PackageInstall, ...] = DEFAULT_PACKAGE_INSTALLS
    aws_cli_url: str = DEFAULT_AWS_CLI_URL
    ip_echo_url: str = DEFAULT_IP_ECHO_URL
    ssh_key_comment: str = SSH_KEY_NAME
    ssh_key_bits: int = 4096

    @property
    def ssh_public_key_path(self) -> Path:
        return self.ssh_key_path.with_name(f"{self.ssh_key_path.name}.pub")

    @classmethod
    def for_home(cls, home: Path, **overrides: object) -> HostBootstrapConfig:
        """Build the default layout rooted at *home*.

        Examples
        --------
        >>> HostBootstrapConfig.for_home(Path("/home/ubuntu")).public_ip_file
        PosixPath('/home/ubuntu/projects/publicip')
        """

        projects_dir = Path(str(overrides.pop("projects_dir", home / "projects")))
        values: dict[str, object] = {
            "projects_dir": projects_dir,
            "ssh_key_path": home / ".ssh" / SSH_KEY_NAME,
            "ssh_key_copy": projects_dir / SSH_KEY_COPY_NAME,
            "public_ip_file": projects_dir / PUBLIC_IP_FILE_NAME,
            "download_dir": home / ".cache" / "workspace-boot",
        }
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]


__all__ = [
    "DEFAULT_AWS_CLI_URL",
    "DEFAULT_ESSENTIAL_PACKAGES",
    "DEFAULT_IP_ECHO_URL",
    "DEFAULT_PACKAGE_INSTALLS",
    "DEFAULT_TIMEZONE",
    "HostBootstrapConfig",
    "PackageInstall",
]
