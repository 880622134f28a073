"""Container runtime backends, HTTP health probing and shared issue records."""

from .base import ContainerHandle, ContainerRuntime, HttpClient, ImageBuilder
from .docker import DockerCliRuntime
from .docker_sdk import DockerSdkRuntime
from .errors import (
    ContainerRuntimeError,
    ContainerStartError,
    ImageBuildError,
    LifecycleError,
    ProbeTransportError,
    RunCancelled,
)
from .health import HealthProber, ProbeOutcome, ProbeResult, RequestsHttpClient
from .issues import IssueSeverity, RuntimeIssue

__all__ = [
    "ContainerHandle",
    "ContainerRuntime",
    "HttpClient",
    "ImageBuilder",
    "DockerCliRuntime",
    "DockerSdkRuntime",
    "ContainerRuntimeError",
    "ContainerStartError",
    "ImageBuildError",
    "LifecycleError",
    "ProbeTransportError",
    "RunCancelled",
    "HealthProber",
    "ProbeOutcome",
    "ProbeResult",
    "RequestsHttpClient",
    "IssueSeverity",
    "RuntimeIssue",
]
