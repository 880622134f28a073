"""Unit tests for the lifecycle driver and its guaranteed cleanup."""

from __future__ import annotations

import pytest

from lifecycle_verifier.runtime.base import ContainerHandle
from lifecycle_verifier.runtime.errors import ContainerRuntimeError, RunCancelled
from lifecycle_verifier.runtime.health import HealthProber
from lifecycle_verifier.verifier.config import VerifierConfig
from lifecycle_verifier.verifier.driver import LifecycleDriver
from lifecycle_verifier.verifier.models import LifecycleOutcome
from tests.fakes import (
    FakeClock,
    FakeContainerRuntime,
    FakeHttpClient,
    build_failure,
    refused,
    start_failure,
)


def make_config(**overrides) -> VerifierConfig:
    values = dict(
        image_tag="frontend-only-app",
        container_name="frontend-app",
        host_port=3006,
        container_port=3000,
        max_attempts=10,
        probe_interval=3,
        build_context=".",
    )
    values.update(overrides)
    return VerifierConfig(**values)


def make_driver(runtime: FakeContainerRuntime, responses):
    clock = FakeClock()
    http = FakeHttpClient(responses)
    prober = HealthProber(http, clock=clock)
    return LifecycleDriver(runtime, runtime, prober, clock=clock), http, clock


def test_successful_run_cleans_up_once() -> None:
    runtime = FakeContainerRuntime()
    driver, http, _ = make_driver(runtime, [200])

    run = driver.run(make_config())

    assert run.outcome == LifecycleOutcome.SUCCESS
    assert run.exit_code == 0
    assert len(run.probe_results) == 1
    assert http.calls == ["http://localhost:3006/"]
    assert runtime.counts["stop"] == 1
    assert runtime.counts["remove"] == 1
    assert runtime.counts["logs"] == 0
    assert run.cleanup_performed
    assert run.diagnostics is None
    assert run.issues == []


def test_stages_run_in_order() -> None:
    runtime = FakeContainerRuntime()
    driver, _, _ = make_driver(runtime, [404])

    driver.run(make_config(max_attempts=2))

    assert [call[0] for call in runtime.calls] == ["build", "start", "logs", "stop", "remove"]
    assert runtime.calls[1] == ("start", "frontend-only-app", "frontend-app", 3006, 3000)


def test_service_ready_on_fourth_attempt() -> None:
    runtime = FakeContainerRuntime()
    driver, _, _ = make_driver(runtime, [503, 503, 503, 200])

    run = driver.run(make_config(max_attempts=10, probe_interval=3))

    assert run.outcome == LifecycleOutcome.SUCCESS
    assert len(run.probe_results) == 4
    assert run.duration == pytest.approx(9)


def test_unhealthy_run_captures_logs_and_cleans_up_once() -> None:
    runtime = FakeContainerRuntime(logs="Error: Cannot find module 'express'\n")
    driver, _, _ = make_driver(runtime, [404])

    run = driver.run(make_config(max_attempts=3))

    assert run.outcome == LifecycleOutcome.UNHEALTHY
    assert run.exit_code != 0
    assert len(run.probe_results) == 3
    assert run.diagnostics == "Error: Cannot find module 'express'\n"
    assert runtime.counts["logs"] == 1
    assert runtime.counts["stop"] == 1
    assert runtime.counts["remove"] == 1
    assert [issue.code for issue in run.error_issues()] == ["HEALTH_CHECK_FAILED"]
    assert "status 404" in run.error_issues()[0].message


def test_run_failure_skips_probing_and_cleanup() -> None:
    runtime = FakeContainerRuntime(start_error=start_failure())
    driver, http, _ = make_driver(runtime, [200])

    run = driver.run(make_config())

    assert run.outcome == LifecycleOutcome.RUN_FAILED
    assert run.exit_code == 3
    assert run.handle is None
    assert http.calls == []
    assert runtime.counts["stop"] == 0
    assert runtime.counts["remove"] == 0
    assert not run.cleanup_performed
    assert run.issues[0].code == "CONTAINER_START_FAILED"


def test_build_failure_stops_before_launch() -> None:
    runtime = FakeContainerRuntime(build_error=build_failure())
    driver, http, _ = make_driver(runtime, [200])

    run = driver.run(make_config())

    assert run.outcome == LifecycleOutcome.BUILD_FAILED
    assert run.exit_code == 2
    assert runtime.counts["build"] == 1
    assert runtime.counts["start"] == 0
    assert runtime.counts["stop"] == 0
    assert runtime.counts["remove"] == 0
    assert http.calls == []
    assert run.build_log == "Step 3/5 : COPY . ."
    assert run.issues[0].code == "DOCKER_BUILD_FAILED"


def test_unreachable_service_uses_the_full_budget() -> None:
    runtime = FakeContainerRuntime()
    driver, http, _ = make_driver(runtime, [refused()])

    run = driver.run(make_config(max_attempts=4, probe_interval=1))

    assert run.outcome == LifecycleOutcome.UNHEALTHY
    assert len(http.calls) == 4
    assert all(result.status_code is None for result in run.probe_results)
    assert runtime.counts["remove"] == 1


def test_log_capture_failure_does_not_mask_unhealthy() -> None:
    runtime = FakeContainerRuntime(
        logs_error=ContainerRuntimeError("docker logs failed", code="DIAGNOSTICS_UNAVAILABLE", subject="frontend-app")
    )
    driver, _, _ = make_driver(runtime, [503])

    run = driver.run(make_config(max_attempts=2))

    assert run.outcome == LifecycleOutcome.UNHEALTHY
    assert run.diagnostics is None
    warnings = [issue for issue in run.issues if issue.severity == "warning"]
    assert [issue.code for issue in warnings] == ["DIAGNOSTICS_UNAVAILABLE"]
    assert runtime.counts["stop"] == 1
    assert runtime.counts["remove"] == 1


def test_failed_stop_still_removes_container() -> None:
    runtime = FakeContainerRuntime(
        stop_error=ContainerRuntimeError("docker stop failed", code="CONTAINER_STOP_FAILED", subject="frontend-app")
    )
    driver, _, _ = make_driver(runtime, [200])

    run = driver.run(make_config())

    assert run.outcome == LifecycleOutcome.SUCCESS
    assert runtime.counts["remove"] == 1
    assert [issue.code for issue in run.issues] == ["CONTAINER_STOP_FAILED"]
    assert not run.issues[0].is_error()


def test_unexpected_error_mid_run_still_cleans_up() -> None:
    runtime = FakeContainerRuntime()
    driver, _, _ = make_driver(runtime, [RuntimeError("boom")])

    with pytest.raises(RuntimeError, match="boom"):
        driver.run(make_config())

    assert runtime.counts["stop"] == 1
    assert runtime.counts["remove"] == 1


def test_run_deadline_cancels_and_cleans_up() -> None:
    runtime = FakeContainerRuntime()
    driver, http, _ = make_driver(runtime, [503])

    with pytest.raises(RunCancelled):
        driver.run(make_config(max_attempts=10, probe_interval=3, run_timeout=4))

    assert len(http.calls) == 2
    assert runtime.counts["stop"] == 1
    assert runtime.counts["remove"] == 1
    assert runtime.counts["logs"] == 0


def test_startup_delay_precedes_first_probe() -> None:
    runtime = FakeContainerRuntime()
    driver, _, clock = make_driver(runtime, [503, 200])

    run = driver.run(make_config(startup_delay=5, probe_interval=3))

    assert run.outcome == LifecycleOutcome.SUCCESS
    assert clock.sleeps == [5, 3]
    assert run.probe_results[0].timestamp.second == 5


def test_custom_probe_host_and_path() -> None:
    runtime = FakeContainerRuntime()
    driver, http, _ = make_driver(runtime, [200])

    run = driver.run(make_config(probe_host="127.0.0.1", health_path="healthz"))

    assert http.calls == ["http://127.0.0.1:3006/healthz"]
    assert run.health_url == "http://127.0.0.1:3006/healthz"


def test_container_scope_releases_on_exception() -> None:
    runtime = FakeContainerRuntime()
    driver, _, _ = make_driver(runtime, [200])
    handle = ContainerHandle(name="frontend-app")

    with pytest.raises(ValueError):
        with driver.container_scope(handle) as lease:
            assert not lease.released
            raise ValueError("interrupted")

    assert lease.released
    assert runtime.counts["stop"] == 1
    assert runtime.counts["remove"] == 1


def test_cleanup_collects_both_failures_without_raising() -> None:
    runtime = FakeContainerRuntime(
        stop_error=ContainerRuntimeError("no such container", code="CONTAINER_STOP_FAILED"),
        remove_error=ContainerRuntimeError("no such container", code="CONTAINER_REMOVE_FAILED"),
    )
    driver, _, _ = make_driver(runtime, [200])

    issues = driver.cleanup(ContainerHandle(name="frontend-app"))

    assert [issue.code for issue in issues] == ["CONTAINER_STOP_FAILED", "CONTAINER_REMOVE_FAILED"]
    assert all(issue.severity == "warning" for issue in issues)


def test_issues_record_the_stage_that_raised_them() -> None:
    build_run = make_driver(FakeContainerRuntime(build_error=build_failure()), [200])[0].run(make_config())
    launch_run = make_driver(FakeContainerRuntime(start_error=start_failure()), [200])[0].run(make_config())
    runtime = FakeContainerRuntime(
        logs_error=ContainerRuntimeError("docker logs failed", subject="frontend-app"),
        remove_error=ContainerRuntimeError("docker rm failed", code="CONTAINER_REMOVE_FAILED"),
    )
    unhealthy_run = make_driver(runtime, [503])[0].run(make_config(max_attempts=2))

    assert [issue.stage for issue in build_run.issues] == ["build"]
    assert [issue.stage for issue in launch_run.issues] == ["launch"]
    assert [issue.stage for issue in unhealthy_run.issues] == ["probe", "diagnostics", "cleanup"]
    assert unhealthy_run.issues[0].describe().startswith("[probe] HEALTH_CHECK_FAILED: ")
    assert unhealthy_run.issues[2].to_dict()["stage"] == "cleanup"
