from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Sequence

import yaml
from dotenv import load_dotenv

from lifecycle_verifier.common.clock import Clock, SystemClock
from lifecycle_verifier.common.command_runner import CommandRunner
from lifecycle_verifier.runtime import (
    DockerCliRuntime,
    DockerSdkRuntime,
    HealthProber,
    RequestsHttpClient,
    RunCancelled,
)
from lifecycle_verifier.verifier import LifecycleDriver, RunReporter, VerifierConfig, load_verifier_config

logger = logging.getLogger(__name__)

EXIT_CANCELLED = 4
EXIT_CONFIG_ERROR = 5

ENV_PREFIX = "VERIFIER_"


def configure_logging(verbose: bool) -> None:
    """Configure root logging based on verbosity level."""
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Reduce noise from HTTP and docker client internals
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("docker").setLevel(logging.WARNING)


def _env(name: str) -> Optional[str]:
    return os.environ.get(f"{ENV_PREFIX}{name}")


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    """
    Parse CLI arguments. Unset options fall back to VERIFIER_* environment variables.

    Values stay strings here; VerifierConfig validates and converts them.
    """
    parser = argparse.ArgumentParser(
        prog="lifecycle-verify",
        description="Build a Docker image, run it, poll it until healthy and always clean up."
    )
    parser.add_argument("--config", default=_env("CONFIG"), help="YAML or JSON file with verifier settings.")
    parser.add_argument("--image-tag", default=_env("IMAGE_TAG"), help="Tag for the built image.")
    parser.add_argument("--container-name", default=_env("CONTAINER_NAME"), help="Name of the container under test.")
    parser.add_argument("--host-port", default=_env("HOST_PORT"), help="Published host port.")
    parser.add_argument("--container-port", default=_env("CONTAINER_PORT"), help="Service port inside the container.")
    parser.add_argument("--max-attempts", default=_env("MAX_ATTEMPTS"), help="Health probe attempts.")
    parser.add_argument(
        "--interval",
        dest="probe_interval",
        default=_env("PROBE_INTERVAL"),
        help="Seconds between health probes.",
    )
    parser.add_argument("--context", dest="build_context", default=_env("BUILD_CONTEXT"), help="Docker build context.")
    parser.add_argument("--dockerfile", default=_env("DOCKERFILE"), help="Dockerfile path.")
    parser.add_argument("--probe-host", default=_env("PROBE_HOST"), help="Host the published port is reachable on.")
    parser.add_argument("--health-path", default=_env("HEALTH_PATH"), help="HTTP path probed for readiness.")
    parser.add_argument(
        "--startup-delay",
        default=_env("STARTUP_DELAY"),
        help="Seconds to wait after launch before probing.",
    )
    parser.add_argument("--request-timeout", default=_env("REQUEST_TIMEOUT"), help="Per-probe timeout.")
    parser.add_argument("--build-timeout", default=_env("BUILD_TIMEOUT"), help="Image build timeout.")
    parser.add_argument("--run-timeout", default=_env("RUN_TIMEOUT"), help="Overall run deadline.")
    parser.add_argument("--runtime", default=_env("RUNTIME"), help="Docker backend: cli or sdk.")
    parser.add_argument("--docker-bin", default=_env("DOCKER_BIN"), help="Docker CLI executable.")
    parser.add_argument("--report-dir", default=_env("REPORT_DIR"), help="Write a JSON run report to this directory.")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args(argv)


def _config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    keys = [name for name in VerifierConfig.model_fields if hasattr(args, name)]
    return {key: getattr(args, key) for key in keys}


def build_driver(config: VerifierConfig, clock: Optional[Clock] = None) -> LifecycleDriver:
    """Wire the configured docker backend, the HTTP prober and the driver."""
    clock = clock or SystemClock()
    if config.runtime == "sdk":
        runtime = DockerSdkRuntime()
    else:
        runtime = DockerCliRuntime(
            CommandRunner(),
            docker_bin=config.docker_bin,
            build_timeout=config.build_timeout,
        )

    prober = HealthProber(RequestsHttpClient(), clock=clock, request_timeout=config.request_timeout)
    return LifecycleDriver(runtime, runtime, prober, clock=clock)


def run_verification(
    config: VerifierConfig,
    driver: LifecycleDriver,
    *,
    report_dir: Optional[str] = None,
    reporter: Optional[RunReporter] = None,
) -> int:
    """Run one lifecycle and translate its outcome into a process exit code."""
    try:
        run = driver.run(config)
    except RunCancelled as exc:
        logger.error("Run cancelled: %s", exc)
        return EXIT_CANCELLED
    except KeyboardInterrupt:
        logger.warning("Run interrupted by user")
        return EXIT_CANCELLED

    if report_dir:
        (reporter or RunReporter()).save_report(run, report_dir)

    logger.info(
        "Outcome: %s after %d probe(s) (exit code %d)",
        run.outcome.value if run.outcome else "unknown",
        len(run.probe_results),
        run.exit_code,
    )
    return run.exit_code


def _raise_cancelled(signum: int, _frame: Any) -> None:
    # cleanup must not be interrupted by a repeated signal
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
    raise RunCancelled(f"Received signal {signal.Signals(signum).name}")


@contextmanager
def cancel_on_sigterm() -> Iterator[None]:
    """Turn the first SIGTERM into RunCancelled and restore the previous handler on exit."""
    previous_handler = signal.signal(signal.SIGTERM, _raise_cancelled)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous_handler)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the lifecycle verifier."""
    load_dotenv()
    try:
        args = parse_args(argv if argv is not None else sys.argv[1:])
    except SystemExit as exc:
        # --help exits 0; usage errors become configuration errors
        if exc.code:
            return EXIT_CONFIG_ERROR
        raise
    configure_logging(args.verbose)

    try:
        config = load_verifier_config(args.config, _config_overrides(args))
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.error("Invalid verifier configuration: %s", exc)
        return EXIT_CONFIG_ERROR

    with cancel_on_sigterm():
        return run_verification(config, build_driver(config), report_dir=args.report_dir)


if __name__ == "__main__":
    sys.exit(main())
