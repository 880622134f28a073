from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence


@dataclass(slots=True)
class CommandResult:
    """Outcome of a single external command (docker CLI) invocation."""

    command: Sequence[str]
    return_code: Optional[int]
    stdout: str
    stderr: str
    duration: float
    timed_out: bool
    tool_available: bool
    exception: Optional[BaseException] = None

    def succeeded(self) -> bool:
        """Return True when the command finished successfully."""
        return self.return_code == 0 and not self.timed_out and self.tool_available

    @property
    def combined_output(self) -> str:
        """Stdout followed by stderr, skipping empty streams."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)

    def error_text(self, fallback: str = "Unknown error") -> str:
        return self.stderr.strip() or self.stdout.strip() or fallback


class CommandRunner:
    """Thin wrapper over subprocess that never raises for command failures."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        """Execute a command and capture stdout, stderr, timings, and failures."""
        start = time.monotonic()
        self.logger.debug("Executing command: %s (cwd=%s)", " ".join(command), cwd)
        try:
            completed = subprocess.run(
                list(command),
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env else None,
            )
        except subprocess.TimeoutExpired as exc:
            duration = time.monotonic() - start
            self.logger.warning("Command timed out after %.2fs: %s", duration, " ".join(command))
            return CommandResult(
                command=command,
                return_code=None,
                stdout=_as_text(exc.stdout),
                stderr=_as_text(exc.stderr),
                duration=duration,
                timed_out=True,
                tool_available=True,
                exception=exc,
            )
        except FileNotFoundError as exc:
            self.logger.error("Command not found: %s", command[0])
            return CommandResult(
                command=command,
                return_code=None,
                stdout="",
                stderr=f"Command not found: {command[0]}",
                duration=time.monotonic() - start,
                timed_out=False,
                tool_available=False,
                exception=exc,
            )
        except OSError as exc:
            self.logger.error("Command execution failed: %s", exc)
            return CommandResult(
                command=command,
                return_code=None,
                stdout="",
                stderr=str(exc),
                duration=time.monotonic() - start,
                timed_out=False,
                tool_available=True,
                exception=exc,
            )

        duration = time.monotonic() - start
        self.logger.debug("Command exited with %s after %.2fs", completed.returncode, duration)
        return CommandResult(
            command=command,
            return_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            duration=duration,
            timed_out=False,
            tool_available=True,
        )


def _as_text(value: Optional[str | bytes]) -> str:
    # TimeoutExpired carries bytes even when text=True was requested
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
