"""File writing helpers for provisioning artefacts."""

from __future__ import annotations

import os
from contextlib import suppress
from pathlib import Path


def write_private_file(path: Path, payload: str | bytes) -> None:
    """Write *payload* to ``path`` atomically with mode ``0600``.

    The temporary file is created with restrictive permissions so the content
    is never readable by other users, and replaces any existing file.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    data = payload.encode("utf-8") if isinstance(payload, str) else payload

    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
    except Exception:
        with suppress(FileNotFoundError):
            os.unlink(tmp_path)
        raise

    tmp_path.replace(path)
    os.chmod(path, 0o600)


def copy_private_file(source: Path, destination: Path) -> None:
    """Copy *source* to *destination*, restricting the copy to mode ``0600``."""

    write_private_file(destination, source.read_bytes())


__all__ = ["copy_private_file", "write_private_file"]
