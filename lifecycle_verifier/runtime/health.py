"""Bounded-retry HTTP health polling for a freshly launched container."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

import requests
from requests import RequestException

from lifecycle_verifier.common.clock import Clock, SystemClock

from .base import HttpClient
from .errors import ProbeTransportError, RunCancelled

HEALTHY_STATUS = 200


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Observation made by a single health check attempt."""

    attempt: int
    status_code: Optional[int]
    timestamp: datetime
    error: Optional[str] = None

    @property
    def reachable(self) -> bool:
        return self.status_code is not None

    @property
    def healthy(self) -> bool:
        return self.status_code == HEALTHY_STATUS

    def describe(self) -> str:
        if self.status_code is None:
            return f"unreachable ({self.error})" if self.error else "unreachable"
        return f"status {self.status_code}"


@dataclass(slots=True)
class ProbeOutcome:
    """Ordered probe trail of one poll and whether it ended healthy."""

    url: str
    results: Tuple[ProbeResult, ...] = field(default_factory=tuple)
    healthy: bool = False

    @property
    def attempts(self) -> int:
        return len(self.results)

    @property
    def last_result(self) -> Optional[ProbeResult]:
        return self.results[-1] if self.results else None


class RequestsHttpClient:
    """HttpClient backed by a requests session."""

    def __init__(self, session: Optional[requests.Session] = None, *, allow_redirects: bool = False) -> None:
        self.session = session or requests.Session()
        self.allow_redirects = allow_redirects

    def get_status(self, url: str, timeout: float) -> int:
        try:
            response = self.session.get(url, timeout=timeout, allow_redirects=self.allow_redirects)
        except RequestException as exc:
            raise ProbeTransportError(str(exc)) from exc
        # Only the status line is of interest
        response.close()
        return response.status_code


class HealthProber:
    """Poll an endpoint until it answers 200 or the attempt budget runs out."""

    def __init__(
        self,
        http_client: HttpClient,
        *,
        clock: Optional[Clock] = None,
        request_timeout: float = 5.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.http_client = http_client
        self.clock = clock or SystemClock()
        self.request_timeout = request_timeout
        self.logger = logger or logging.getLogger(__name__)

    def poll(
        self,
        url: str,
        max_attempts: int,
        interval: float,
        *,
        deadline: Optional[float] = None,
    ) -> ProbeOutcome:
        """
        Issue one GET per attempt until the endpoint returns exactly 200.

        Transport failures and non-200 responses both count as failed attempts;
        neither ends the loop early. The clock sleeps ``interval`` between
        attempts but not after the last one.

        Args:
            url: Endpoint to probe.
            max_attempts: Attempt budget, at least 1.
            interval: Seconds to wait between attempts.
            deadline: Optional monotonic time after which no further attempt starts.

        Returns:
            ProbeOutcome with one ProbeResult per attempt performed.

        Raises:
            ValueError: For a non-positive attempt budget or a negative interval.
            RunCancelled: When waiting for the next attempt would pass ``deadline``.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if interval < 0:
            raise ValueError("interval must be >= 0")

        results = []
        self.logger.info("Probing %s (up to %d attempts, %.1fs apart)", url, max_attempts, interval)

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                self._wait(interval, deadline)
            elif deadline is not None and self.clock.monotonic() > deadline:
                raise RunCancelled("Run deadline exceeded before the first health probe")

            result = self._probe_once(url, attempt)
            results.append(result)

            if result.healthy:
                self.logger.info("Endpoint %s is healthy on attempt %d/%d", url, attempt, max_attempts)
                return ProbeOutcome(url=url, results=tuple(results), healthy=True)

            self.logger.warning("Attempt %d/%d: %s", attempt, max_attempts, result.describe())

        self.logger.error("Endpoint %s not healthy after %d attempts", url, max_attempts)
        return ProbeOutcome(url=url, results=tuple(results), healthy=False)

    def _probe_once(self, url: str, attempt: int) -> ProbeResult:
        try:
            status_code = self.http_client.get_status(url, self.request_timeout)
        except ProbeTransportError as exc:
            return ProbeResult(attempt=attempt, status_code=None, timestamp=self.clock.now(), error=str(exc))
        return ProbeResult(attempt=attempt, status_code=status_code, timestamp=self.clock.now())

    def _wait(self, interval: float, deadline: Optional[float]) -> None:
        if deadline is not None and self.clock.monotonic() + interval > deadline:
            raise RunCancelled("Run deadline exceeded while waiting for the service to become healthy")
        self.clock.sleep(interval)
