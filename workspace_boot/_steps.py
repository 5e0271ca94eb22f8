"""Fail-fast runner for ordered provisioning steps.

Each :class:`Step` couples an action with an optional precondition (the
desired state already holds, so the action is skipped) and an optional
postcondition (a predicate or a version probe confirming the action worked).
:func:`run_steps` executes the steps in order and stops at the first failure.

Examples
--------
>>> report = run_steps([Step("Say hello", lambda: "hello")])
>>> report.exit_code
0
>>> report.results[0].status is StepStatus.DONE
True
"""

from __future__ import annotations

import enum
import logging
from collections import abc as cabc
from dataclasses import dataclass, field

from workspace_boot._errors import ProvisioningError

logger = logging.getLogger(__name__)

StepAction = cabc.Callable[[], str | None]
Precondition = cabc.Callable[[], bool]
Postcondition = cabc.Callable[[], bool | str]


class StepStatus(enum.Enum):
    """Outcome of a single step."""

    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class Step:
    """A named unit of provisioning work.

    Attributes
    ----------
    name
        Label used in status lines.
    action
        Side-effecting callable; may return captured output.
    precondition
        Returns ``True`` when the action is unnecessary.
    postcondition
        Returns ``False`` when the action did not take effect, or a string
        (typically a version line) that is appended to the captured output.
    skip_message
        Extra text logged when the precondition holds.
    """

    name: str
    action: StepAction
    precondition: Precondition | None = None
    postcondition: Postcondition | None = None
    skip_message: str | None = None


@dataclass(frozen=True, slots=True)
class StepResult:
    """Recorded outcome of one step."""

    step_name: str
    status: StepStatus
    captured_output: str = ""
    error: str | None = None


@dataclass(slots=True)
class PipelineReport:
    """Results of a pipeline run in execution order."""

    results: list[StepResult] = field(default_factory=list)

    @property
    def failed_step(self) -> StepResult | None:
        for result in self.results:
            if result.status is StepStatus.FAILED:
                return result
        return None

    @property
    def succeeded(self) -> bool:
        return self.failed_step is None

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def status_of(self, step_name: str) -> StepStatus | None:
        """Return the recorded status for *step_name*, or ``None`` if it never ran."""

        for result in self.results:
            if result.step_name == step_name:
                return result.status
        return None


def _join_output(*parts: str | None) -> str:
    return "\n".join(part.strip() for part in parts if part and part.strip())


def run_step(step: Step) -> StepResult:
    """Execute one step and log a one-line status.

    Examples
    --------
    >>> run_step(Step("noop", lambda: None, precondition=lambda: True)).status.value
    'skipped'
    """

    if step.precondition is not None and step.precondition():
        suffix = f": {step.skip_message}" if step.skip_message else ""
        logger.info("%s - skipped%s", step.name, suffix)
        return StepResult(step.name, StepStatus.SKIPPED, step.skip_message or "")

    logger.info("%s ...", step.name)
    try:
        output = step.action()
        probe: bool | str = True
        if step.postcondition is not None:
            probe = step.postcondition()
    except (ProvisioningError, OSError) as exc:
        logger.error("%s - failed: %s", step.name, exc)
        return StepResult(step.name, StepStatus.FAILED, error=str(exc))

    if probe is False:
        message = "postcondition did not hold"
        logger.error("%s - failed: %s", step.name, message)
        return StepResult(
            step.name,
            StepStatus.FAILED,
            _join_output(output),
            error=message,
        )

    version = probe if isinstance(probe, str) else None
    if version:
        logger.info("%s", version)
    logger.info("%s - done", step.name)
    return StepResult(step.name, StepStatus.DONE, _join_output(output, version))


def run_steps(
    steps: cabc.Iterable[Step],
    *,
    on_result: cabc.Callable[[StepResult], None] | None = None,
) -> PipelineReport:
    """Run *steps* in order, stopping after the first failure.

    Steps after a failure never execute and are absent from the report.
    """

    report = PipelineReport()
    for step in steps:
        result = run_step(step)
        report.results.append(result)
        if on_result is not None:
            on_result(result)
        if result.status is StepStatus.FAILED:
            break
    return report


__all__ = [
    "PipelineReport",
    "Postcondition",
    "Precondition",
    "Step",
    "StepAction",
    "StepResult",
    "StepStatus",
    "run_step",
    "run_steps",
]
