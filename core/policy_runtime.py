"""Configuration loading and runtime path bootstrapping."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from core.errors import ConfigurationError


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML from file, returning empty mapping when missing."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must contain a mapping: {path}", {"path": str(path)})
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def ensure_runtime_dirs(root: Path, config: dict[str, Any]) -> dict[str, Path]:
    """Ensure data and log directories exist and return resolved paths."""
    paths_cfg = config.get("paths", {})
    data_dir = (root / paths_cfg.get("data_dir", "data")).resolve()
    db_path = (root / paths_cfg.get("db_path", "data/veritas.db")).resolve()
    audit_log_path = (root / paths_cfg.get("audit_log_path", "logs/audit.jsonl")).resolve()

    data_dir.mkdir(parents=True, exist_ok=True)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    audit_log_path.parent.mkdir(parents=True, exist_ok=True)

    return {
        "data_dir": data_dir,
        "db_path": db_path,
        "audit_log_path": audit_log_path,
    }


def validate_config(config: dict[str, Any]) -> None:
    """Reject settings the pipeline cannot honour."""
    threshold = float(config.get("council", {}).get("voting_threshold", 0.66))
    if not 0.5 < threshold <= 1.0:
        raise ConfigurationError(
            "council.voting_threshold must be in (0.5, 1.0]", {"voting_threshold": threshold}
        )
    dimension = int(config.get("memory", {}).get("embedding_dimension", 1536))
    if dimension <= 0:
        raise ConfigurationError(
            "memory.embedding_dimension must be positive", {"embedding_dimension": dimension}
        )
    timeouts = config.get("timeouts", {})
    for key in ("branch_s", "member_s"):
        value = timeouts.get(key)
        if value is not None and float(value) <= 0:
            raise ConfigurationError(f"timeouts.{key} must be positive", {key: value})


def load_effective_config(root: Path) -> dict[str, Any]:
    """Load and merge all runtime configuration files."""
    config_dir = root / "config"
    default_cfg = load_yaml(config_dir / "default.yaml")
    models_cfg = load_yaml(config_dir / "models.yaml")
    council_cfg = load_yaml(config_dir / "council.yaml")

    merged = merge_dicts(default_cfg, {"models": models_cfg, "council": council_cfg})
    validate_config(merged)
    return merged
