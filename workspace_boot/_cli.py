"""Shared helpers for the pipeline entry points."""

from __future__ import annotations

import logging
import sys

from workspace_boot._steps import PipelineReport

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def configure_logging(*, verbose: bool = False) -> None:
    """Send step status lines to stderr; ``--verbose`` adds command traces."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def finish(report: PipelineReport, success_message: str) -> int:
    """Print the outcome of *report* and return the process exit code."""

    failed = report.failed_step
    if failed is not None:
        print(f"error: {failed.step_name} failed: {failed.error}", file=sys.stderr)
        return report.exit_code
    print(success_message)
    return report.exit_code


__all__ = ["configure_logging", "finish"]
