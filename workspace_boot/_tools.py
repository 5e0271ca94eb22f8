"""Version probes for the command-line tools installed by the pipelines."""

from __future__ import annotations

from dataclasses import dataclass

from workspace_boot._commands import run_command
from workspace_boot._errors import CommandError, StepFailedError


@dataclass(frozen=True, slots=True)
class ToolProbe:
    """A binary whose presence is confirmed by a version command."""

    name: str
    label: str
    version_args: tuple[str, ...] = ("--version",)
    allow_silent: bool = False


TOOL_PROBES: dict[str, ToolProbe] = {
    probe.name: probe
    for probe in (
        ToolProbe("unzip", "Unzip", ("-v",)),
        ToolProbe("tree", "Tree"),
        ToolProbe("curl", "Curl"),
        ToolProbe("netstat", "netstat", ("-V",), allow_silent=True),
        ToolProbe("python3", "Python 3"),
        ToolProbe("pip3", "pip3"),
        ToolProbe("aws", "AWS CLI"),
        ToolProbe("git", "Git"),
        ToolProbe("jq", "JQ"),
        ToolProbe("htop", "htop"),
        ToolProbe("tmux", "tmux", ("-V",)),
        ToolProbe("terraform", "Terraform", ("-version",)),
        ToolProbe("vault", "Vault", ("-version",)),
    )
}


def version_line(probe: ToolProbe) -> str | None:
    """Return the first line reported by the tool's version command.

    ``None`` means the command is missing or exited non-zero.
    """

    try:
        output = run_command(probe.name, *probe.version_args)
    except CommandError:
        return None
    for line in output.splitlines():
        if line.strip():
            return line.strip()
    return ""


def require_version(probe: ToolProbe) -> str:
    """Return the version line for *probe* or raise when the tool is unusable.

    Tools flagged ``allow_silent`` (``netstat``) pass with a placeholder when
    their version command prints nothing or fails after installation.
    """

    line = version_line(probe)
    if line:
        return line
    if probe.allow_silent:
        return f"{probe.name} ready (no version output)"
    msg = f"{probe.label} version probe failed after installation"
    raise StepFailedError(msg)


__all__ = [
    "TOOL_PROBES",
    "ToolProbe",
    "require_version",
    "version_line",
]
