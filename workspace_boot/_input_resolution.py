"""Shared helpers for resolving CLI and environment inputs."""

from __future__ import annotations

import os
from collections import abc as cabc
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class InputResolution:
    """Configuration for resolving an input from multiple sources."""

    env_key: str
    default: str | Path | None = None
    required: bool = False
    as_path: bool = False


def resolve_input(
    param_value: str | Path | None,
    resolution: InputResolution,
    env: cabc.Mapping[str, str] | None = None,
) -> str | Path | None:
    """Resolve input from parameter, environment variable, or default.

    Examples
    --------
    >>> resolve_input(None, InputResolution(env_key="REGION", default="us-east-1"), env={})
    'us-east-1'
    >>> resolve_input("eu-west-1", InputResolution(env_key="REGION"), env={"REGION": "x"})
    'eu-west-1'
    """

    if param_value is not None:
        return param_value

    env_value = (env if env is not None else os.environ).get(resolution.env_key)
    if env_value is not None:
        return Path(env_value).expanduser() if resolution.as_path else env_value

    if resolution.required:
        msg = f"{resolution.env_key} is required"
        raise SystemExit(msg)

    return resolution.default


def resolve_path(
    param_value: Path | None,
    env_key: str,
    default: Path,
    env: cabc.Mapping[str, str] | None = None,
) -> Path:
    """Resolve a path input, expanding ``~`` in whichever source supplied it."""

    value = resolve_input(
        param_value,
        InputResolution(env_key=env_key, default=default, as_path=True),
        env=env,
    )
    return Path(str(value)).expanduser()


TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def parse_bool(
    value: str | bool | None,
    *,
    default: bool = False,
    name: str = "value",
) -> bool:
    """Parse a boolean string value, exiting on unrecognised spellings.

    Examples
    --------
    >>> parse_bool("yes")
    True
    >>> parse_bool(None, default=True)
    True
    >>> parse_bool("", default=True)
    True
    """

    if isinstance(value, bool):
        return value
    if value is None:
        return default
    normalised = value.strip().lower()
    if not normalised:
        return default
    if normalised in TRUE_VALUES:
        return True
    if normalised in FALSE_VALUES:
        return False
    msg = f"{name} must be one of true/false, yes/no, on/off or 1/0, got: {value!r}"
    raise SystemExit(msg)


def parse_int(value: str | int | None, *, name: str, minimum: int = 1) -> int:
    """Parse an integer input, exiting with a message when invalid.

    Examples
    --------
    >>> parse_int("30", name="POLL_ATTEMPTS")
    30
    """

    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        msg = f"{name} must be an integer, got: {value!r}"
        raise SystemExit(msg) from exc
    if parsed < minimum:
        msg = f"{name} must be at least {minimum}, got: {parsed}"
        raise SystemExit(msg)
    return parsed


def parse_list(value: str | cabc.Sequence[str] | None) -> tuple[str, ...] | None:
    """Split a comma- or space-separated list input.

    Examples
    --------
    >>> parse_list("unzip, curl gnupg")
    ('unzip', 'curl', 'gnupg')
    >>> parse_list(None) is None
    True
    """

    if value is None:
        return None
    if isinstance(value, str):
        items = value.replace(",", " ").split()
    else:
        items = [item.strip() for item in value if item.strip()]
    return tuple(items)


__all__ = [
    "InputResolution",
    "parse_bool",
    "parse_int",
    "parse_list",
    "resolve_input",
    "resolve_path",
]
