import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .models import LifecycleRun


class RunReporter:
    """Writes lifecycle run reports as JSON."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def save_report(self, run: LifecycleRun, output_dir: str = "./verification_reports") -> str:
        """
        Save a lifecycle run report to a JSON file.

        Args:
            run: Finished lifecycle run
            output_dir: Directory to save reports

        Returns:
            Path to saved report file
        """
        os.makedirs(output_dir, exist_ok=True)

        timestamp = (run.finished_at or run.started_at or datetime.now(timezone.utc)).strftime("%Y%m%d_%H%M%S")
        core_name = "__".join(
            filter(None, [self._sanitize_token(run.container_name), self._sanitize_token(run.image_tag)])
        ) or "run"
        filename = f"{core_name}_{timestamp}_{run.run_id[:8]}.json"
        filepath = os.path.join(output_dir, filename)

        try:
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(self.run_to_dict(run), f, indent=2, default=str)
        except OSError as e:
            self.logger.error("Failed to save report: %s", e)
            raise

        self.logger.info("Report saved to %s", filepath)
        return filepath

    def run_to_dict(self, run: LifecycleRun) -> Dict[str, Any]:
        """Convert a lifecycle run to a JSON-serializable dictionary."""
        return {
            "run_id": run.run_id,
            "outcome": run.outcome.value if run.outcome else None,
            "exit_code": run.exit_code,
            "config": {
                "image_tag": run.image_tag,
                "container_name": run.container_name,
                "host_port": run.host_port,
                "container_port": run.container_port,
                "max_attempts": run.max_attempts,
                "probe_interval": run.probe_interval,
                "build_context": run.build_context,
                "health_url": run.health_url,
            },
            "container": {
                "name": run.handle.name,
                "id": run.handle.container_id,
            } if run.handle else None,
            "cleanup_performed": run.cleanup_performed,
            "started_at": run.started_at.isoformat() if run.started_at else None,
            "finished_at": run.finished_at.isoformat() if run.finished_at else None,
            "duration": run.duration,
            "probes": [
                {
                    "attempt": result.attempt,
                    "status_code": result.status_code,
                    "error": result.error,
                    "timestamp": result.timestamp.isoformat(),
                }
                for result in run.probe_results
            ],
            "issues": [issue.to_dict() for issue in run.issues],
            "diagnostics": run.diagnostics,
        }

    @staticmethod
    def _sanitize_token(value: str) -> str:
        """Create a filesystem-friendly token from arbitrary text."""
        sanitized = "".join(ch if ch.isalnum() or ch in ("-", "_") else "-" for ch in value.strip())
        return "-".join(filter(None, sanitized.split("-")))
