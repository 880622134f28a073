from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from lifecycle_verifier.runtime.base import ContainerHandle
from lifecycle_verifier.runtime.health import ProbeResult
from lifecycle_verifier.runtime.issues import RuntimeIssue

from .config import VerifierConfig


class LifecycleOutcome(Enum):
    """Terminal outcome of a lifecycle run."""
    SUCCESS = "success"
    UNHEALTHY = "unhealthy"
    BUILD_FAILED = "build_failed"
    RUN_FAILED = "run_failed"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES = {
    LifecycleOutcome.SUCCESS: 0,
    LifecycleOutcome.UNHEALTHY: 1,
    LifecycleOutcome.BUILD_FAILED: 2,
    LifecycleOutcome.RUN_FAILED: 3,
}


@dataclass(slots=True)
class BuildResult:
    """Result of the image build stage."""
    image_tag: str
    log: str = ""
    issues: List[RuntimeIssue] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not any(issue.is_error() for issue in self.issues)


@dataclass(slots=True)
class LaunchResult:
    """Result of starting the container; ``handle`` is None when nothing was started."""
    handle: Optional[ContainerHandle] = None
    issues: List[RuntimeIssue] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.handle is not None


@dataclass(slots=True)
class ContainerLease:
    """Tracks the guaranteed release of a launched container."""
    handle: ContainerHandle
    released: bool = False
    cleanup_issues: List[RuntimeIssue] = field(default_factory=list)


@dataclass
class LifecycleRun:
    """One build/launch/verify/cleanup attempt. Mutated only by the driver."""
    image_tag: str
    container_name: str
    host_port: int
    container_port: int
    max_attempts: int
    probe_interval: float
    build_context: str
    health_url: str
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    outcome: Optional[LifecycleOutcome] = None
    probe_results: List[ProbeResult] = field(default_factory=list)
    issues: List[RuntimeIssue] = field(default_factory=list)
    build_log: Optional[str] = None
    diagnostics: Optional[str] = None
    handle: Optional[ContainerHandle] = None
    cleanup_performed: bool = False
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration: Optional[float] = None

    @classmethod
    def from_config(cls, config: VerifierConfig) -> "LifecycleRun":
        return cls(
            image_tag=config.image_tag,
            container_name=config.container_name,
            host_port=config.host_port,
            container_port=config.container_port,
            max_attempts=config.max_attempts,
            probe_interval=config.probe_interval,
            build_context=config.build_context,
            health_url=config.health_url,
        )

    @property
    def success(self) -> bool:
        return self.outcome == LifecycleOutcome.SUCCESS

    @property
    def exit_code(self) -> int:
        # A run without a recorded outcome never counts as a pass
        return self.outcome.exit_code if self.outcome else 1

    def error_issues(self) -> List[RuntimeIssue]:
        return [issue for issue in self.issues if issue.is_error()]
