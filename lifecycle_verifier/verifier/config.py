"""Configuration model and loader for a lifecycle verification run."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


class VerifierConfig(BaseModel):
    """Settings for one build/run/probe/cleanup cycle.

    The seven fields without defaults describe the run itself and must be
    supplied by the caller; the rest tune how it is carried out.
    """

    image_tag: str = Field(description="Tag applied to the built image and used to start the container.")
    container_name: str = Field(description="Name given to the container under test.")
    host_port: int = Field(description="Host port published for the container.")
    container_port: int = Field(description="Port the service listens on inside the container.")
    max_attempts: int = Field(description="Number of health probes before giving up.")
    probe_interval: float = Field(description="Seconds to wait between health probes.")
    build_context: str = Field(description="Directory used as docker build context.")

    dockerfile: Optional[str] = Field(default=None, description="Dockerfile path, if not <context>/Dockerfile.")
    probe_host: str = Field(default="localhost", description="Host the published port is reachable on.")
    health_path: str = Field(default="/", description="HTTP path probed for readiness.")
    startup_delay: float = Field(default=0.0, description="Seconds to wait after launch before the first probe.")
    request_timeout: float = Field(default=5.0, description="Timeout for a single probe request.")
    build_timeout: float = Field(default=600.0, description="Timeout for the image build.")
    run_timeout: Optional[float] = Field(default=None, description="Overall deadline for the run, in seconds.")
    runtime: Literal["cli", "sdk"] = Field(default="cli", description="Docker backend: CLI subprocess or SDK.")
    docker_bin: str = Field(default="docker", description="Docker CLI executable for the cli runtime.")

    @field_validator("image_tag", "container_name", "build_context", "probe_host", "docker_bin")
    @classmethod
    def _strip_non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("value cannot be empty")
        return value.strip()

    @field_validator("host_port", "container_port")
    @classmethod
    def _validate_port(cls, value: int) -> int:
        if not 1 <= value <= 65535:
            raise ValueError("port must be within 1..65535")
        return value

    @field_validator("max_attempts")
    @classmethod
    def _validate_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_attempts must be >= 1")
        return value

    @field_validator("probe_interval", "startup_delay", "request_timeout", "build_timeout")
    @classmethod
    def _validate_duration(cls, value: float) -> float:
        if value < 0:
            raise ValueError("durations must be >= 0")
        return value

    @field_validator("run_timeout")
    @classmethod
    def _validate_run_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("run_timeout must be > 0")
        return value

    @field_validator("health_path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        value = value.strip()
        return value if value.startswith("/") else "/" + value

    @property
    def health_url(self) -> str:
        return f"http://{self.probe_host}:{self.host_port}{self.health_path}"


def load_verifier_config(
    path: Optional[str | Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> VerifierConfig:
    """
    Build a VerifierConfig from an optional YAML/JSON file plus overrides.

    Overrides whose value is None are ignored so unset CLI flags do not mask
    file values.
    """
    data: Dict[str, Any] = {}
    if path is not None:
        data.update(_read_config_file(Path(path)))

    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    return VerifierConfig.model_validate(data)


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Verifier config file not found: {path}")

    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    elif suffix == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
    else:
        raise ValueError(f"Unsupported verifier config format: {suffix}")

    if data is None:
        raise ValueError(f"Verifier config file {path} is empty.")
    if not isinstance(data, dict):
        raise ValueError(f"Verifier config file {path} must contain a mapping.")
    return data


__all__ = ["VerifierConfig", "load_verifier_config"]
