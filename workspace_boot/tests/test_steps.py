"""Unit tests for the fail-fast step runner."""

from __future__ import annotations

import logging

import pytest

from workspace_boot._errors import CommandError, StepFailedError
from workspace_boot._steps import Step, StepStatus, run_step, run_steps


def test_run_steps_executes_in_order() -> None:
    order: list[str] = []
    steps = [
        Step("first", lambda: order.append("first") or "one"),
        Step("second", lambda: order.append("second") or "two"),
    ]

    report = run_steps(steps)

    assert order == ["first", "second"], "Steps should run in declaration order"
    assert report.exit_code == 0
    assert [r.captured_output for r in report.results] == ["one", "two"]


def test_precondition_skips_action_and_reports_success() -> None:
    calls: list[str] = []
    steps = [
        Step(
            "Generate SSH key",
            lambda: calls.append("keygen") or None,
            precondition=lambda: True,
            skip_message="key exists",
        ),
        Step("after", lambda: calls.append("after") or None),
    ]

    report = run_steps(steps)

    assert calls == ["after"], "Skipped action must not execute"
    assert report.status_of("Generate SSH key") is StepStatus.SKIPPED
    assert report.results[0].captured_output == "key exists"
    assert report.succeeded is True


def test_first_failure_stops_pipeline() -> None:
    calls: list[str] = []

    def failing() -> str:
        calls.append("failing")
        raise CommandError("apt-get install failed")

    steps = [
        Step("ok", lambda: calls.append("ok") or None),
        Step("broken", failing),
        Step("never", lambda: calls.append("never") or None),
    ]

    report = run_steps(steps)

    assert calls == ["ok", "failing"], "No step may run after a failure"
    assert report.exit_code == 1
    assert report.failed_step is not None
    assert report.failed_step.step_name == "broken"
    assert report.failed_step.error == "apt-get install failed"
    assert report.status_of("never") is None


def test_false_postcondition_fails_step() -> None:
    result = run_step(Step("install", lambda: "installed", postcondition=lambda: False))

    assert result.status is StepStatus.FAILED
    assert result.error == "postcondition did not hold"
    assert result.captured_output == "installed"


def test_version_probe_is_appended_to_output() -> None:
    result = run_step(
        Step("install tmux", lambda: "apt output", postcondition=lambda: "tmux 3.4")
    )

    assert result.status is StepStatus.DONE
    assert result.captured_output == "apt output\ntmux 3.4"


def test_postcondition_error_fails_step() -> None:
    def probe() -> str:
        raise StepFailedError("tmux version probe failed after installation")

    result = run_step(Step("install tmux", lambda: None, postcondition=probe))

    assert result.status is StepStatus.FAILED
    assert "version probe failed" in (result.error or "")


def test_os_error_is_reported_as_failure(tmp_path) -> None:
    missing = tmp_path / "absent" / "file"

    result = run_step(Step("read", lambda: missing.read_text(encoding="utf-8")))

    assert result.status is StepStatus.FAILED


def test_unexpected_exceptions_propagate() -> None:
    def broken() -> str:
        raise KeyError("bug")

    with pytest.raises(KeyError):
        run_step(Step("buggy", broken))


def test_status_lines_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="workspace_boot._steps")

    run_steps(
        [
            Step("skip me", lambda: None, precondition=lambda: True),
            Step("do me", lambda: None),
        ]
    )

    messages = [record.getMessage() for record in caplog.records]
    assert "skip me - skipped" in messages
    assert "do me - done" in messages


def test_on_result_callback_sees_each_result() -> None:
    seen: list[StepStatus] = []

    run_steps(
        [Step("a", lambda: None), Step("b", lambda: None, precondition=lambda: True)],
        on_result=lambda result: seen.append(result.status),
    )

    assert seen == [StepStatus.DONE, StepStatus.SKIPPED]
