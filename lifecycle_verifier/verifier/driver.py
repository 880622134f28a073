"""Build -> launch -> verify -> cleanup orchestration for a single container."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from lifecycle_verifier.common.clock import Clock, SystemClock
from lifecycle_verifier.runtime.base import ContainerHandle, ContainerRuntime, ImageBuilder
from lifecycle_verifier.runtime.errors import ContainerRuntimeError, RunCancelled
from lifecycle_verifier.runtime.health import HealthProber, ProbeOutcome
from lifecycle_verifier.runtime.issues import RuntimeIssue

from .config import VerifierConfig
from .models import BuildResult, ContainerLease, LaunchResult, LifecycleOutcome, LifecycleRun

DIAGNOSTICS_TAIL_LINES = 50


class LifecycleDriver:
    """Run the lifecycle stages in order and release the container on every exit path."""

    def __init__(
        self,
        image_builder: ImageBuilder,
        container_runtime: ContainerRuntime,
        prober: HealthProber,
        *,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.image_builder = image_builder
        self.container_runtime = container_runtime
        self.prober = prober
        self.clock = clock or SystemClock()
        self.logger = logger or logging.getLogger(__name__)

    def build(self, image_tag: str, build_context: str, dockerfile: Optional[str] = None) -> BuildResult:
        """Build the image once; build failures are deterministic and never retried."""
        try:
            log = self.image_builder.build_image(image_tag, build_context, dockerfile)
        except ContainerRuntimeError as exc:
            return BuildResult(image_tag=image_tag, log=exc.output, issues=[exc.to_issue(stage="build")])
        return BuildResult(image_tag=image_tag, log=log)

    def launch(self, image_tag: str, container_name: str, host_port: int, container_port: int) -> LaunchResult:
        """Start the container detached. A failed start yields no handle."""
        try:
            handle = self.container_runtime.start_detached(image_tag, container_name, host_port, container_port)
        except ContainerRuntimeError as exc:
            self.logger.error("Failed to start container %s: %s", container_name, exc.message)
            return LaunchResult(handle=None, issues=[exc.to_issue(stage="launch")])

        self.logger.info("Container %s started (%s)", handle.name, handle.short_id or "no id")
        return LaunchResult(handle=handle)

    def verify_healthy(
        self,
        handle: ContainerHandle,
        config: VerifierConfig,
        deadline: Optional[float] = None,
    ) -> ProbeOutcome:
        self.logger.info("Verifying container %s via %s", handle.name, config.health_url)
        return self.prober.poll(
            config.health_url,
            config.max_attempts,
            config.probe_interval,
            deadline=deadline,
        )

    def capture_diagnostics(
        self,
        handle: ContainerHandle,
        issues: Optional[List[RuntimeIssue]] = None,
    ) -> Optional[str]:
        """Fetch container logs, best-effort. Failures are recorded as warnings only."""
        try:
            logs = self.container_runtime.fetch_logs(handle.name)
        except ContainerRuntimeError as exc:
            self.logger.warning("Could not capture logs for %s: %s", handle.name, exc.message)
            if issues is not None:
                issue = exc.to_issue(severity="warning", stage="diagnostics")
                issue.code = "DIAGNOSTICS_UNAVAILABLE"
                issues.append(issue)
            return None

        tail = "\n".join(logs.splitlines()[-DIAGNOSTICS_TAIL_LINES:])
        self.logger.info("Container logs for %s (last %d lines):\n%s", handle.name, DIAGNOSTICS_TAIL_LINES, tail)
        return logs

    def cleanup(self, handle: ContainerHandle) -> List[RuntimeIssue]:
        """Stop, then remove. A failed stop does not skip the remove, and nothing is raised."""
        issues: List[RuntimeIssue] = []
        self.logger.info("Cleaning up container %s", handle.name)

        try:
            self.container_runtime.stop(handle.name)
        except ContainerRuntimeError as exc:
            self.logger.warning("Failed to stop container %s: %s", handle.name, exc.message)
            issues.append(exc.to_issue(severity="warning", stage="cleanup"))

        try:
            self.container_runtime.remove(handle.name)
        except ContainerRuntimeError as exc:
            self.logger.warning("Failed to remove container %s: %s", handle.name, exc.message)
            issues.append(exc.to_issue(severity="warning", stage="cleanup"))
        else:
            self.logger.info("Container %s removed", handle.name)

        return issues

    @contextmanager
    def container_scope(self, handle: ContainerHandle) -> Iterator[ContainerLease]:
        """Hold a launched container; ``cleanup`` runs exactly once when the block exits."""
        lease = ContainerLease(handle=handle)
        try:
            yield lease
        finally:
            lease.cleanup_issues = self.cleanup(handle)
            lease.released = True

    def run(self, config: VerifierConfig) -> LifecycleRun:
        """
        Execute build, launch, health verification, diagnostics and cleanup.

        Returns:
            The finished LifecycleRun with its outcome and probe trail.

        Raises:
            RunCancelled: When ``run_timeout`` elapses; the container is still cleaned up.
        """
        run = LifecycleRun.from_config(config)
        run.started_at = self.clock.now()
        start = self.clock.monotonic()
        deadline = start + config.run_timeout if config.run_timeout is not None else None

        self.logger.info("Starting lifecycle run %s for image %s", run.run_id[:8], config.image_tag)
        try:
            self._execute(run, config, deadline)
        finally:
            run.finished_at = self.clock.now()
            run.duration = self.clock.monotonic() - start

        if run.success:
            self.logger.info("Run %s succeeded in %.1fs", run.run_id[:8], run.duration)
        else:
            self.logger.error(
                "Run %s finished with outcome %s: %s",
                run.run_id[:8],
                run.outcome.value if run.outcome else "unknown",
                "; ".join(issue.describe() for issue in run.error_issues()) or "no details",
            )
        return run

    def _execute(self, run: LifecycleRun, config: VerifierConfig, deadline: Optional[float]) -> None:
        build = self.build(config.image_tag, config.build_context, config.dockerfile)
        run.build_log = build.log
        run.issues.extend(build.issues)
        if not build.success:
            run.outcome = LifecycleOutcome.BUILD_FAILED
            return

        launch = self.launch(config.image_tag, config.container_name, config.host_port, config.container_port)
        run.issues.extend(launch.issues)
        if launch.handle is None:
            run.outcome = LifecycleOutcome.RUN_FAILED
            return

        run.handle = launch.handle
        with self.container_scope(launch.handle) as lease:
            self._wait_for_startup(config, deadline)
            probe = self.verify_healthy(launch.handle, config, deadline)
            run.probe_results = list(probe.results)

            if probe.healthy:
                run.outcome = LifecycleOutcome.SUCCESS
            else:
                run.issues.append(self._unhealthy_issue(probe))
                run.diagnostics = self.capture_diagnostics(launch.handle, run.issues)
                run.outcome = LifecycleOutcome.UNHEALTHY

        run.cleanup_performed = lease.released
        run.issues.extend(lease.cleanup_issues)

    def _wait_for_startup(self, config: VerifierConfig, deadline: Optional[float]) -> None:
        if config.startup_delay <= 0:
            return
        if deadline is not None and self.clock.monotonic() + config.startup_delay > deadline:
            raise RunCancelled("Run deadline exceeded during the startup delay")
        self.logger.info("Waiting %.1fs for the application to start...", config.startup_delay)
        self.clock.sleep(config.startup_delay)

    @staticmethod
    def _unhealthy_issue(probe: ProbeOutcome) -> RuntimeIssue:
        last = probe.last_result
        return RuntimeIssue(
            code="HEALTH_CHECK_FAILED",
            message=(
                f"Endpoint {probe.url} not healthy after {probe.attempts} attempts"
                f" (last: {last.describe() if last else 'no attempt'})"
            ),
            subject=probe.url,
            stage="probe",
            details=", ".join(f"#{result.attempt}: {result.describe()}" for result in probe.results),
        )
