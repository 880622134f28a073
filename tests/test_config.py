"""Unit tests for verifier configuration loading and validation."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from lifecycle_verifier.verifier.config import VerifierConfig, load_verifier_config

BASE = {
    "image_tag": "frontend-only-app",
    "container_name": "frontend-app",
    "host_port": 3006,
    "container_port": 3000,
    "max_attempts": 10,
    "probe_interval": 3,
    "build_context": ".",
}


def test_load_yaml_config(tmp_path) -> None:
    path = tmp_path / "verify.yaml"
    path.write_text(
        "image_tag: frontend-only-app\n"
        "container_name: frontend-app\n"
        "host_port: 3006\n"
        "container_port: 3000\n"
        "max_attempts: 10\n"
        "probe_interval: 3\n"
        "build_context: .\n"
        "startup_delay: 5\n",
        encoding="utf-8",
    )

    config = load_verifier_config(path)

    assert config.image_tag == "frontend-only-app"
    assert config.startup_delay == 5
    assert config.runtime == "cli"
    assert config.health_url == "http://localhost:3006/"


def test_overrides_win_and_none_is_ignored(tmp_path) -> None:
    path = tmp_path / "verify.json"
    path.write_text(json.dumps(BASE), encoding="utf-8")

    config = load_verifier_config(path, {"host_port": 8080, "container_name": None, "runtime": "sdk"})

    assert config.host_port == 8080
    assert config.container_name == "frontend-app"
    assert config.runtime == "sdk"


def test_overrides_alone_are_enough() -> None:
    config = load_verifier_config(overrides=BASE)

    assert config.max_attempts == 10


def test_health_path_is_normalized() -> None:
    config = VerifierConfig(**BASE, health_path="healthz", probe_host="127.0.0.1")

    assert config.health_url == "http://127.0.0.1:3006/healthz"


@pytest.mark.parametrize(
    "field,value",
    [
        ("host_port", 0),
        ("container_port", 70000),
        ("max_attempts", 0),
        ("probe_interval", -1),
        ("container_name", "   "),
        ("runtime", "podman"),
    ],
)
def test_invalid_values_are_rejected(field: str, value) -> None:
    with pytest.raises(ValidationError):
        VerifierConfig(**{**BASE, field: value})


def test_run_settings_have_no_defaults() -> None:
    incomplete = {key: value for key, value in BASE.items() if key != "max_attempts"}

    with pytest.raises(ValidationError):
        VerifierConfig(**incomplete)


def test_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_verifier_config(tmp_path / "absent.yaml")


def test_unsupported_format(tmp_path) -> None:
    path = tmp_path / "verify.toml"
    path.write_text("image_tag = 'x'", encoding="utf-8")

    with pytest.raises(ValueError, match="Unsupported"):
        load_verifier_config(path)


def test_empty_file(tmp_path) -> None:
    path = tmp_path / "verify.yml"
    path.write_text("", encoding="utf-8")

    with pytest.raises(ValueError, match="empty"):
        load_verifier_config(path)
