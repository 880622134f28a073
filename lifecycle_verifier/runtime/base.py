"""Collaborator interfaces the lifecycle driver depends on."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True, slots=True)
class ContainerHandle:
    """A container that was actually started and therefore must be cleaned up."""

    name: str
    container_id: Optional[str] = None

    @property
    def short_id(self) -> str:
        return (self.container_id or "")[:12]


class ImageBuilder(Protocol):
    """Builds an image from a context directory.

    Returns the build log and raises ``ImageBuildError`` on failure.
    """

    def build_image(self, image_tag: str, build_context: str, dockerfile: Optional[str] = None) -> str:
        ...


class ContainerRuntime(Protocol):
    """Container operations keyed by container name.

    ``start_detached`` raises ``ContainerStartError`` without producing a handle;
    the remaining operations raise ``ContainerRuntimeError``.
    """

    def start_detached(
        self,
        image_tag: str,
        container_name: str,
        host_port: int,
        container_port: int,
    ) -> ContainerHandle:
        ...

    def stop(self, container_name: str) -> None:
        ...

    def remove(self, container_name: str) -> None:
        ...

    def fetch_logs(self, container_name: str) -> str:
        ...


class HttpClient(Protocol):
    """Issues GET requests and reports the status code.

    Raises ``ProbeTransportError`` when no response was received.
    """

    def get_status(self, url: str, timeout: float) -> int:
        ...
