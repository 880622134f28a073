"""Docker CLI backend for building images and managing the container under test."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from lifecycle_verifier.common.command_runner import CommandResult, CommandRunner

from .base import ContainerHandle
from .errors import ContainerRuntimeError, ContainerStartError, ImageBuildError


class DockerCliRuntime:
    """Build images and drive containers by shelling out to the docker CLI."""

    def __init__(
        self,
        command_runner: CommandRunner,
        *,
        docker_bin: str = "docker",
        build_timeout: float = 600,
        command_timeout: float = 60,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.command_runner = command_runner
        self.docker_bin = docker_bin
        self.build_timeout = build_timeout
        self.command_timeout = command_timeout
        self.logger = logger or logging.getLogger(__name__)

    def build_image(self, image_tag: str, build_context: str, dockerfile: Optional[str] = None) -> str:
        """
        Build ``image_tag`` from ``build_context`` with ``docker build``.

        Args:
            image_tag: Tag applied to the built image.
            build_context: Directory sent to the docker daemon as build context.
            dockerfile: Optional Dockerfile path; docker's default lookup is used otherwise.

        Returns:
            The combined build output.

        Raises:
            ImageBuildError: When the context is missing, the CLI is unavailable,
                the build times out or exits non-zero.
        """
        context_path = Path(build_context)
        if not context_path.is_dir():
            raise ImageBuildError(
                f"Build context directory not found at {build_context}",
                code="DOCKER_BUILD_CONTEXT_NOT_FOUND",
                subject=build_context,
            )

        build_cmd: List[str] = [self.docker_bin, "build", "-t", image_tag]
        if dockerfile:
            build_cmd.extend(["-f", dockerfile])
        build_cmd.append(str(context_path))

        self.logger.info("Building Docker image %s from %s", image_tag, build_context)
        result = self.command_runner.run(build_cmd, timeout=self.build_timeout)

        if result.timed_out:
            raise ImageBuildError(
                f"Docker build timed out (>{self.build_timeout:g}s)",
                code="DOCKER_BUILD_TIMEOUT",
                subject=image_tag,
                output=result.combined_output,
            )
        self._ensure_tool_available(result, ImageBuildError, image_tag)
        if not result.succeeded():
            error_msg = result.error_text("Unknown docker build error")
            self.logger.error("Docker build failed for %s: %s", image_tag, error_msg)
            raise ImageBuildError(
                f"Docker build failed: {error_msg}",
                subject=image_tag,
                output=result.combined_output,
            )

        self.logger.info("Build completed successfully for %s in %.1fs", image_tag, result.duration)
        return result.combined_output

    def start_detached(
        self,
        image_tag: str,
        container_name: str,
        host_port: int,
        container_port: int,
    ) -> ContainerHandle:
        run_cmd = [
            self.docker_bin,
            "run",
            "-d",
            "-p",
            f"{host_port}:{container_port}",
            "--name",
            container_name,
            image_tag,
        ]
        self.logger.info(
            "Starting container %s from %s (port %s -> %s)", container_name, image_tag, host_port, container_port
        )
        result = self.command_runner.run(run_cmd, timeout=self.command_timeout)

        if result.timed_out:
            raise ContainerStartError(
                "Docker run timed out",
                subject=container_name,
                output=result.combined_output,
            )
        self._ensure_tool_available(result, ContainerStartError, container_name)
        if not result.succeeded():
            raise ContainerStartError(
                f"Docker run failed: {result.error_text('Unknown docker run error')}",
                subject=container_name,
                output=result.combined_output,
            )

        container_id = result.stdout.strip().splitlines()[-1] if result.stdout.strip() else None
        return ContainerHandle(name=container_name, container_id=container_id)

    def stop(self, container_name: str) -> None:
        self._run_checked(["stop", container_name], container_name, "CONTAINER_STOP_FAILED", "stop")

    def remove(self, container_name: str) -> None:
        self._run_checked(["rm", container_name], container_name, "CONTAINER_REMOVE_FAILED", "rm")

    def fetch_logs(self, container_name: str) -> str:
        result = self._run_checked(["logs", container_name], container_name, "DIAGNOSTICS_UNAVAILABLE", "logs")
        # docker logs replays the container's stdout and stderr on the matching streams
        return result.combined_output

    def _run_checked(self, args: List[str], container_name: str, code: str, action: str) -> CommandResult:
        result = self.command_runner.run([self.docker_bin, *args], timeout=self.command_timeout)
        if result.timed_out:
            raise ContainerRuntimeError(
                f"docker {action} timed out for {container_name}",
                code=code,
                subject=container_name,
            )
        self._ensure_tool_available(result, ContainerRuntimeError, container_name)
        if not result.succeeded():
            raise ContainerRuntimeError(
                f"docker {action} failed for {container_name}: {result.error_text()}",
                code=code,
                subject=container_name,
                output=result.combined_output,
            )
        return result

    def _ensure_tool_available(
        self,
        result: CommandResult,
        error_cls: type[ContainerRuntimeError],
        subject: str,
    ) -> None:
        if not result.tool_available:
            raise error_cls(
                f"Docker CLI '{self.docker_bin}' not available - install Docker or adjust docker_bin",
                code="DOCKER_CLI_NOT_FOUND",
                subject=subject,
            )
