from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from plumbum import CommandNotFound, ProcessExecutionError


def pytest_configure() -> None:
    project_root = Path(__file__).resolve().parents[2]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


@dataclass
class FakeResult:
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0


@dataclass
class FakeCall:
    argv: tuple[str, ...]
    stdin: str | None = None
    cwd: str | None = None


Handler = Callable[[tuple[str, ...]], FakeResult]


@dataclass
class FakeCommands:
    """Stand-in for ``plumbum.local`` that records and answers invocations.

    Responses are matched on the longest registered argv prefix; later
    registrations win ties. Unmatched commands succeed with empty output.
    """

    calls: list[FakeCall] = field(default_factory=list)
    missing: set[str] = field(default_factory=set)
    on_path: set[str] = field(default_factory=set)
    _routes: list[tuple[tuple[str, ...], Handler]] = field(default_factory=list)

    def on(
        self,
        *prefix: str,
        stdout: str = "",
        stderr: str = "",
        exit_code: int = 0,
        handler: Handler | None = None,
    ) -> None:
        if handler is None:
            result = FakeResult(stdout, stderr, exit_code)

            def handler(_argv: tuple[str, ...]) -> FakeResult:
                return result

        self._routes.append((tuple(prefix), handler))

    def dispatch(self, argv: tuple[str, ...]) -> FakeResult:
        best: tuple[int, Handler] | None = None
        for prefix, handler in self._routes:
            if argv[: len(prefix)] == prefix and (best is None or len(prefix) >= best[0]):
                best = (len(prefix), handler)
        return FakeResult() if best is None else best[1](argv)

    def respond(self, stdout: str = "", stderr: str = "", exit_code: int = 0) -> FakeResult:
        return FakeResult(stdout, stderr, exit_code)

    def invoked(self, *prefix: str) -> list[FakeCall]:
        return [call for call in self.calls if call.argv[: len(prefix)] == prefix]

    def available(self, name: str) -> bool:
        return name in self.on_path

    def __getitem__(self, name: str) -> _FakeBound:
        if name in self.missing:
            raise CommandNotFound(name, [])
        return _FakeBound(self, (name,))


@dataclass
class _FakeBound:
    owner: FakeCommands
    argv: tuple[str, ...]
    stdin: str | None = None

    def __getitem__(self, args: list[str] | tuple[str, ...] | str) -> _FakeBound:
        extra = (args,) if isinstance(args, str) else tuple(args)
        return _FakeBound(self.owner, self.argv + extra, self.stdin)

    def __lshift__(self, data: str) -> _FakeBound:
        return _FakeBound(self.owner, self.argv, data)

    def run(self, **kwargs: object) -> tuple[int, str, str]:
        cwd = kwargs.get("cwd")
        self.owner.calls.append(
            FakeCall(self.argv, self.stdin, None if cwd is None else str(cwd))
        )
        result = self.owner.dispatch(self.argv)
        if result.exit_code:
            raise ProcessExecutionError(
                list(self.argv), result.exit_code, result.stdout, result.stderr
            )
        return 0, result.stdout, result.stderr


@pytest.fixture
def fake_commands(monkeypatch: pytest.MonkeyPatch) -> FakeCommands:
    """Route every command issued through ``run_command`` to a recorder."""

    fake = FakeCommands()
    monkeypatch.setattr("workspace_boot._commands.local", fake)
    monkeypatch.setattr("workspace_boot._host_bootstrap.command_available", fake.available)
    monkeypatch.setattr(
        "workspace_boot._backend_provisioning.command_available", fake.available
    )
    return fake
