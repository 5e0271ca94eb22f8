"""Supervised handle for a Vault server running in dev mode."""

from __future__ import annotations

import logging
import re
import subprocess
import time
from collections import abc as cabc
from pathlib import Path
from typing import IO, Any

from workspace_boot._commands import command_succeeds, spawn_background
from workspace_boot._errors import VaultStartupError
from workspace_boot._polling import Sleeper, wait_with_backoff

logger = logging.getLogger(__name__)

ROOT_TOKEN_PATTERN = re.compile(r"Root Token:\s*(\S+)")
STOP_TIMEOUT_SECONDS = 10


def parse_root_token(log_text: str) -> str | None:
    """Return the last root token announced in a dev-server log.

    Examples
    --------
    >>> parse_root_token("Unseal Key: abc\\nRoot Token: hvs.XYZ\\n")
    'hvs.XYZ'
    >>> parse_root_token("starting...") is None
    True
    """

    matches = ROOT_TOKEN_PATTERN.findall(log_text)
    return matches[-1] if matches else None


def vault_status_ok(addr: str) -> bool:
    """Return ``True`` when ``vault status`` reports an unsealed server at *addr*."""

    return command_succeeds("vault", "status", f"-address={addr}")


class VaultDevServer:
    """Own a ``vault server -dev`` child process.

    The server writes to ``log_file``; :meth:`wait_ready` polls with backoff
    until the root token appears in the log and the health check passes, and
    fails fast if the child exits. :meth:`stop` terminates the child.

    Examples
    --------
    >>> from pathlib import Path
    >>> with VaultDevServer(Path("/tmp/vault-dev.log")) as server:
    ...     token = server.wait_ready()
    """

    def __init__(
        self,
        log_file: Path,
        *,
        addr: str = "http://127.0.0.1:8200",
        ready_attempts: int = 10,
        sleep: Sleeper = time.sleep,
        spawn: cabc.Callable[..., Any] = spawn_background,
        health_check: cabc.Callable[[str], bool] = vault_status_ok,
    ) -> None:
        self.log_file = log_file
        self.addr = addr
        self._ready_attempts = ready_attempts
        self._sleep = sleep
        self._spawn = spawn
        self._health_check = health_check
        self._process: Any | None = None
        self._log_handle: IO[Any] | None = None

    @property
    def pid(self) -> int | None:
        return None if self._process is None else self._process.pid

    def start(self) -> None:
        if self._process is not None:
            msg = "Vault dev server already started"
            raise VaultStartupError(msg)
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        self._log_handle = self.log_file.open("w", encoding="utf-8")
        try:
            self._process = self._spawn(
                "vault",
                "server",
                "-dev",
                log_handle=self._log_handle,
            )
        except Exception:
            self._close_log()
            raise
        logger.info("Vault dev server started (pid %s, log %s)", self.pid, self.log_file)

    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def read_root_token(self) -> str | None:
        try:
            return parse_root_token(self.log_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None

    def _ready(self) -> bool:
        if not self.is_running():
            code = None if self._process is None else self._process.poll()
            msg = f"Vault dev server exited early (status {code}); see {self.log_file}"
            raise VaultStartupError(msg)
        if self.read_root_token() is None:
            return False
        return self._health_check(self.addr)

    def wait_ready(self) -> str:
        """Block until the server is ready and return its root token."""

        if self._process is None:
            msg = "Vault dev server has not been started"
            raise VaultStartupError(msg)
        if not wait_with_backoff(
            self._ready,
            max_attempts=self._ready_attempts,
            sleep=self._sleep,
        ):
            msg = f"Vault dev server not ready after {self._ready_attempts} checks"
            raise VaultStartupError(msg)
        token = self.read_root_token()
        if token is None:  # pragma: no cover - guarded by _ready
            msg = "Root token missing from Vault log"
            raise VaultStartupError(msg)
        return token

    def stop(self) -> None:
        """Terminate the server if it is running; safe to call repeatedly."""

        process = self._process
        if process is not None and process.poll() is None:
            logger.info("Stopping Vault dev server (pid %s)", process.pid)
            process.terminate()
            try:
                process.wait(timeout=STOP_TIMEOUT_SECONDS)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
        self._process = None
        self._close_log()

    def _close_log(self) -> None:
        if self._log_handle is not None:
            self._log_handle.close()
            self._log_handle = None

    def __enter__(self) -> VaultDevServer:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


__all__ = ["VaultDevServer", "parse_root_token", "vault_status_ok"]
