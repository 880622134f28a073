"""Docker SDK backend, an alternative to shelling out to the docker CLI."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Optional

import docker
from docker.errors import APIError, BuildError, DockerException, ImageNotFound, NotFound

from .base import ContainerHandle
from .errors import ContainerRuntimeError, ContainerStartError, ImageBuildError

logger = logging.getLogger(__name__)


def _join_build_log(chunks: Iterable[Any]) -> str:
    lines = []
    for chunk in chunks or ():
        if isinstance(chunk, dict):
            text = chunk.get("stream") or chunk.get("error") or chunk.get("status") or ""
        else:
            text = str(chunk)
        if text:
            lines.append(text.rstrip("\n"))
    return "\n".join(lines)


class DockerSdkRuntime:
    """Build images and drive containers through the docker daemon API."""

    def __init__(self, client: Optional[docker.DockerClient] = None) -> None:
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            try:
                self._client = docker.from_env()
            except DockerException as exc:
                raise ContainerRuntimeError(
                    f"Failed to connect to Docker: {exc}",
                    code="DOCKER_DAEMON_UNAVAILABLE",
                ) from exc
        return self._client

    def build_image(self, image_tag: str, build_context: str, dockerfile: Optional[str] = None) -> str:
        # The SDK resolves ``dockerfile`` relative to the build context
        if not Path(build_context).is_dir():
            raise ImageBuildError(
                f"Build context directory not found at {build_context}",
                code="DOCKER_BUILD_CONTEXT_NOT_FOUND",
                subject=build_context,
            )

        logger.info("Building Docker image %s from %s", image_tag, build_context)
        build_kwargs = {"path": str(build_context), "tag": image_tag, "forcerm": True, "pull": False}
        if dockerfile:
            build_kwargs["dockerfile"] = dockerfile
        try:
            _, build_logs = self.client.images.build(**build_kwargs)
        except BuildError as exc:
            logger.error("Docker build failed for %s: %s", image_tag, exc.msg)
            raise ImageBuildError(
                f"Docker build failed: {exc.msg}",
                subject=image_tag,
                output=_join_build_log(exc.build_log),
            ) from exc
        except (APIError, TypeError) as exc:
            raise ImageBuildError(f"Docker build failed: {exc}", subject=image_tag) from exc

        logger.info("Build completed successfully for %s", image_tag)
        return _join_build_log(build_logs)

    def start_detached(
        self,
        image_tag: str,
        container_name: str,
        host_port: int,
        container_port: int,
    ) -> ContainerHandle:
        logger.info(
            "Starting container %s from %s (port %s -> %s)", container_name, image_tag, host_port, container_port
        )
        try:
            container = self.client.containers.run(
                image_tag,
                detach=True,
                name=container_name,
                ports={f"{container_port}/tcp": host_port},
            )
        except ImageNotFound as exc:
            raise ContainerStartError(f"Image {image_tag} not found", subject=container_name) from exc
        except APIError as exc:
            raise ContainerStartError(f"Docker run failed: {exc.explanation or exc}", subject=container_name) from exc

        return ContainerHandle(name=container_name, container_id=container.id)

    def stop(self, container_name: str) -> None:
        try:
            self.client.containers.get(container_name).stop()
        except DockerException as exc:
            raise ContainerRuntimeError(
                f"docker stop failed for {container_name}: {exc}",
                code="CONTAINER_STOP_FAILED",
                subject=container_name,
            ) from exc

    def remove(self, container_name: str) -> None:
        try:
            self.client.containers.get(container_name).remove()
        except DockerException as exc:
            raise ContainerRuntimeError(
                f"docker rm failed for {container_name}: {exc}",
                code="CONTAINER_REMOVE_FAILED",
                subject=container_name,
            ) from exc

    def fetch_logs(self, container_name: str) -> str:
        try:
            raw = self.client.containers.get(container_name).logs()
        except NotFound as exc:
            raise ContainerRuntimeError(
                f"Container {container_name} no longer exists",
                code="DIAGNOSTICS_UNAVAILABLE",
                subject=container_name,
            ) from exc
        except DockerException as exc:
            raise ContainerRuntimeError(
                f"docker logs failed for {container_name}: {exc}",
                code="DIAGNOSTICS_UNAVAILABLE",
                subject=container_name,
            ) from exc
        return raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw)
