"""Command helpers shared by the provisioning pipelines."""

from __future__ import annotations

import logging
import os
import shutil
from collections import abc as cabc
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

from plumbum import CommandNotFound, ProcessExecutionError, ProcessTimedOut, local

from workspace_boot._errors import CommandError

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT_SECONDS = 1800


@dataclass(slots=True)
class CommandContext:
    """Execution options for :func:`run_command`."""

    env: cabc.Mapping[str, str] | None = None
    stdin: str | None = None
    timeout: int | None = COMMAND_TIMEOUT_SECONDS
    cwd: Path | None = None


def _merged_env(env: cabc.Mapping[str, str] | None) -> dict[str, str] | None:
    if env is None:
        return None
    return {**os.environ, **env}


def _describe(command: str, args: cabc.Sequence[str]) -> str:
    return " ".join([command, *args])


def run_command(
    command: str,
    *args: str,
    context: CommandContext | None = None,
) -> str:
    """Execute an external command and return its standard output.

    Raises
    ------
    CommandError
        The command is missing from ``PATH``, exits non-zero or times out.

    Examples
    --------
    >>> run_command("printf", "hello")
    'hello'
    """

    ctx = context or CommandContext()
    description = _describe(command, args)
    logger.debug("running: %s", description)
    try:
        bound = local[command][list(args)]
    except CommandNotFound as exc:
        msg = f"Command {command!r} not found on PATH"
        raise CommandError(msg) from exc

    run_kwargs: dict[str, Any] = {"timeout": ctx.timeout}
    env = _merged_env(ctx.env)
    if env is not None:
        run_kwargs["env"] = env
    if ctx.cwd is not None:
        run_kwargs["cwd"] = str(ctx.cwd)
    try:
        if ctx.stdin is None:
            _, stdout, _ = bound.run(**run_kwargs)
        else:
            _, stdout, _ = (bound << ctx.stdin).run(**run_kwargs)
    except ProcessTimedOut as exc:
        msg = f"Command {description!r} timed out after {ctx.timeout}s"
        raise CommandError(msg) from exc
    except ProcessExecutionError as exc:
        detail = (exc.stderr or exc.stdout or "").strip()
        msg = f"Command {description!r} failed with exit status {exc.retcode}"
        if detail:
            msg = f"{msg}: {detail}"
        raise CommandError(msg) from exc
    return stdout


def command_succeeds(command: str, *args: str) -> bool:
    """Return ``True`` when *command* exits zero.

    Examples
    --------
    >>> command_succeeds("true")
    True
    >>> command_succeeds("false")
    False
    """

    try:
        run_command(command, *args)
    except CommandError:
        return False
    return True


def command_available(name: str) -> bool:
    """Return ``True`` when an executable called *name* is on ``PATH``."""

    return shutil.which(name) is not None


def sudo(*args: str, context: CommandContext | None = None) -> str:
    """Run *args* through ``sudo``.

    Examples
    --------
    >>> sudo("true")
    ''
    """

    return run_command("sudo", *args, context=context)


def spawn_background(
    command: str,
    *args: str,
    log_handle: IO[Any],
    env: cabc.Mapping[str, str] | None = None,
) -> Any:
    """Start *command* without waiting, sending stdout and stderr to *log_handle*.

    Returns the ``Popen`` object so the caller owns the process lifecycle.
    """

    logger.debug("spawning: %s", _describe(command, args))
    try:
        bound = local[command][list(args)]
    except CommandNotFound as exc:
        msg = f"Command {command!r} not found on PATH"
        raise CommandError(msg) from exc
    popen_kwargs: dict[str, Any] = {"stdout": log_handle, "stderr": log_handle}
    merged = _merged_env(env)
    if merged is not None:
        popen_kwargs["env"] = merged
    return bound.popen(**popen_kwargs)


__all__ = [
    "COMMAND_TIMEOUT_SECONDS",
    "CommandContext",
    "command_available",
    "command_succeeds",
    "run_command",
    "spawn_background",
    "sudo",
]
