"""Tests for the host bootstrap pipeline."""

from __future__ import annotations

import ipaddress
import stat
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from workspace_boot._errors import StepFailedError
from workspace_boot._host_bootstrap import (
    bootstrap_host,
    build_host_steps,
    parse_ip_address,
    render_summary,
)
from workspace_boot._host_config import HostBootstrapConfig
from workspace_boot._steps import StepStatus
from workspace_boot._tools import TOOL_PROBES

if TYPE_CHECKING:
    from conftest import FakeCommands, FakeResult

PUBLIC_IP = "203.0.113.7"


def _make_config(tmp_path: Path, **overrides: object) -> HostBootstrapConfig:
    return HostBootstrapConfig.for_home(tmp_path / "home", **overrides)


def _prime_host(fake: FakeCommands, *, timezone: str = "Etc/UTC", ip: str = PUBLIC_IP) -> list[int]:
    """Register healthy responses for every command the pipeline issues.

    Returns a list that records one entry per ``ssh-keygen`` invocation.
    """

    for probe in TOOL_PROBES.values():
        fake.on(probe.name, *probe.version_args, stdout=f"{probe.name} 1.2.3\n")
    fake.on("timedatectl", "show", stdout=f"{timezone}\n")
    fake.on(
        "timedatectl",
        stdout="               Local time: Fri 2026-10-16 09:00:00 EDT\n"
        "                Time zone: America/New_York (EDT, -0400)\n",
    )
    fake.on("curl", "-s", stdout=f"{ip}\n")

    generated: list[int] = []

    def keygen(argv: tuple[str, ...]) -> FakeResult:
        generated.append(1)
        key_path = Path(argv[argv.index("-f") + 1])
        key_path.write_text(f"PRIVATE-KEY-{len(generated)}\n", encoding="utf-8")
        key_path.with_name(key_path.name + ".pub").write_text(
            f"ssh-rsa AAAA{len(generated)} zero-node-key\n", encoding="utf-8"
        )
        return fake.respond(stdout="Your identification has been saved\n")

    fake.on("ssh-keygen", handler=keygen)
    return generated


def test_bootstrap_host_runs_every_step(
    fake_commands: FakeCommands, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    config = _make_config(tmp_path)
    _prime_host(fake_commands)

    report = bootstrap_host(config)

    assert report.exit_code == 0
    assert [r.status for r in report.results] == [StepStatus.DONE] * len(report.results)
    assert fake_commands.invoked("sudo", "timedatectl", "set-timezone", "America/New_York")
    assert fake_commands.invoked(
        "sudo", "apt-get", "install", "-y", "unzip", "curl", "gnupg", "software-properties-common"
    )
    assert fake_commands.invoked("sudo", "apt-get", "install", "-y", "python3", "python3-pip")
    assert "Installed Tools Summary" in capsys.readouterr().out


def test_public_ip_file_contains_single_address_line(
    fake_commands: FakeCommands, tmp_path: Path
) -> None:
    config = _make_config(tmp_path)
    _prime_host(fake_commands, ip="2001:db8::1")

    bootstrap_host(config)

    lines = config.public_ip_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1, "Public IP file should contain exactly one line"
    ipaddress.ip_address(lines[0])
    assert len(fake_commands.invoked("curl", "-s")) == 1, "IP fetch should run once"


def test_rerun_does_not_rotate_ssh_key(fake_commands: FakeCommands, tmp_path: Path) -> None:
    config = _make_config(tmp_path)
    generated = _prime_host(fake_commands)

    first = bootstrap_host(config)
    public_key = config.ssh_public_key_path.read_text(encoding="utf-8")
    second = bootstrap_host(config)

    assert first.status_of("Generate SSH key") is StepStatus.DONE
    assert second.status_of("Generate SSH key") is StepStatus.SKIPPED
    assert second.exit_code == 0
    assert len(generated) == 1, "ssh-keygen must not run when the key exists"
    assert config.ssh_public_key_path.read_text(encoding="utf-8") == public_key


def test_ssh_key_copy_is_private(fake_commands: FakeCommands, tmp_path: Path) -> None:
    config = _make_config(tmp_path)
    _prime_host(fake_commands)

    bootstrap_host(config)

    mode = stat.S_IMODE(config.ssh_key_copy.stat().st_mode)
    assert mode == 0o600
    assert config.ssh_key_copy.read_text(encoding="utf-8") == config.ssh_key_path.read_text(
        encoding="utf-8"
    )


def test_timezone_step_skipped_when_already_set(
    fake_commands: FakeCommands, tmp_path: Path
) -> None:
    config = _make_config(tmp_path)
    _prime_host(fake_commands, timezone="America/New_York")

    report = bootstrap_host(config)

    assert report.status_of("Set timezone to America/New_York") is StepStatus.SKIPPED
    assert not fake_commands.invoked("sudo", "timedatectl", "set-timezone")


def test_failed_install_stops_pipeline(fake_commands: FakeCommands, tmp_path: Path) -> None:
    config = _make_config(tmp_path)
    generated = _prime_host(fake_commands)
    fake_commands.on(
        "sudo", "apt-get", "install", "-y", "tree", stderr="E: broken\n", exit_code=100
    )

    report = bootstrap_host(config)

    assert report.exit_code == 1
    assert report.failed_step is not None
    assert report.failed_step.step_name == "Install tree"
    assert generated == [], "Later steps must not execute"
    assert not config.public_ip_file.exists()


def test_invalid_ip_response_fails_step(
    fake_commands: FakeCommands, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    config = _make_config(tmp_path)
    _prime_host(fake_commands, ip="<html>rate limited</html>")

    report = bootstrap_host(config)

    assert report.failed_step is not None
    assert report.failed_step.step_name.startswith("Save public IP")
    assert report.status_of("Summary") is None
    assert not config.public_ip_file.exists()
    assert "Installed Tools Summary" not in capsys.readouterr().out


def test_aws_cli_update_flag_when_already_installed(
    fake_commands: FakeCommands, tmp_path: Path
) -> None:
    config = _make_config(tmp_path)
    _prime_host(fake_commands)
    fake_commands.on_path.add("aws")

    bootstrap_host(config)

    install_calls = fake_commands.invoked("sudo", "./aws/install")
    assert install_calls[0].argv == ("sudo", "./aws/install", "--update")
    assert install_calls[0].cwd == str(config.download_dir)


def test_missing_version_output_fails_install(
    fake_commands: FakeCommands, tmp_path: Path
) -> None:
    config = _make_config(tmp_path)
    _prime_host(fake_commands)
    fake_commands.on("jq", "--version", exit_code=127)

    report = bootstrap_host(config)

    assert report.failed_step is not None
    assert report.failed_step.step_name == "Install jq"


def test_netstat_without_version_output_is_accepted(
    fake_commands: FakeCommands, tmp_path: Path
) -> None:
    config = _make_config(tmp_path)
    _prime_host(fake_commands)
    fake_commands.on("netstat", "-V", exit_code=4)

    report = bootstrap_host(config)

    assert report.status_of("Install net-tools (netstat)") is StepStatus.DONE


def test_step_order_keeps_key_before_copy(tmp_path: Path) -> None:
    names = [step.name for step in build_host_steps(_make_config(tmp_path))]

    assert names.index("Generate SSH key") < names.index("Copy SSH key to projects folder")
    assert names[-1] == "Summary"
    assert sum(name.startswith("Save public IP") for name in names) == 1


def test_render_summary_reports_missing_tools(
    fake_commands: FakeCommands, tmp_path: Path
) -> None:
    config = _make_config(tmp_path)
    fake_commands.on("tmux", "-V", exit_code=127)

    summary = render_summary(config)

    assert "tmux:     not installed" in summary
    assert f"Public IP: unknown  (saved to {config.public_ip_file})" in summary


def test_parse_ip_address_rejects_garbage() -> None:
    with pytest.raises(StepFailedError, match="not an IP address"):
        parse_ip_address("")
