from .config import VerifierConfig, load_verifier_config
from .driver import LifecycleDriver
from .models import BuildResult, ContainerLease, LaunchResult, LifecycleOutcome, LifecycleRun
from .reporter import RunReporter

__all__ = [
    "VerifierConfig",
    "load_verifier_config",
    "LifecycleDriver",
    "BuildResult",
    "ContainerLease",
    "LaunchResult",
    "LifecycleOutcome",
    "LifecycleRun",
    "RunReporter",
]
