"""Issue records attached to a lifecycle run."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

IssueSeverity = Literal["error", "warning", "info"]
LifecycleStage = Literal["build", "launch", "probe", "diagnostics", "cleanup"]


@dataclass(slots=True)
class RuntimeIssue:
    """Explains a failed stage or a best-effort step that did not complete."""

    code: str
    message: str
    severity: IssueSeverity = "error"
    subject: Optional[str] = None
    details: Optional[str] = None
    stage: Optional[LifecycleStage] = None

    def is_error(self) -> bool:
        return self.severity == "error"

    def describe(self) -> str:
        prefix = f"[{self.stage}] " if self.stage else ""
        return f"{prefix}{self.code}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "stage": self.stage,
            "severity": self.severity,
            "message": self.message,
            "subject": self.subject,
            "details": self.details,
        }
