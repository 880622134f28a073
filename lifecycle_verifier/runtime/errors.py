"""Exceptions raised by the container and HTTP collaborators."""
from __future__ import annotations

from typing import Optional

from .issues import IssueSeverity, LifecycleStage, RuntimeIssue


class LifecycleError(Exception):
    """Base class for verifier errors."""


class ContainerRuntimeError(LifecycleError):
    """A docker operation (build, run, stop, rm, logs) failed."""

    default_code = "CONTAINER_RUNTIME_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        subject: Optional[str] = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.subject = subject
        self.output = output

    def to_issue(
        self,
        severity: IssueSeverity = "error",
        stage: Optional[LifecycleStage] = None,
    ) -> RuntimeIssue:
        return RuntimeIssue(
            code=self.code,
            message=self.message,
            severity=severity,
            subject=self.subject,
            details=self.output or None,
            stage=stage,
        )


class ImageBuildError(ContainerRuntimeError):
    default_code = "DOCKER_BUILD_FAILED"


class ContainerStartError(ContainerRuntimeError):
    default_code = "CONTAINER_START_FAILED"


class ProbeTransportError(LifecycleError):
    """The health endpoint could not be reached (refused, timeout, DNS)."""


class RunCancelled(LifecycleError):
    """The run was interrupted by its deadline or a termination signal."""
