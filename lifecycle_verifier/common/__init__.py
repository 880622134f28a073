"""Process and time helpers shared by the runtime backends and the driver."""

from .clock import Clock, SystemClock
from .command_runner import CommandResult, CommandRunner

__all__ = [
    "Clock",
    "SystemClock",
    "CommandResult",
    "CommandRunner",
]
