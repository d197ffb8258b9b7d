"""
Compiler configuration.

Loaded from YAML, validated once, immutable afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

SCHEMA_VERSION = 1


@dataclass(frozen=True)
class CompilerConfig:
    """
    Validated compiler settings.
    """

    target: str = "generic"
    max_fixed_point_iterations: int = 8
    verify: bool = True
    statistics_path: Optional[Path] = None

    def __post_init__(self) -> None:
        if not isinstance(self.target, str) or not self.target:
            raise ConfigError("target must be a non-empty string", context={"field": "target"})
        if (
            isinstance(self.max_fixed_point_iterations, bool)
            or not isinstance(self.max_fixed_point_iterations, int)
            or self.max_fixed_point_iterations < 1
        ):
            raise ConfigError(
                "max_fixed_point_iterations must be an integer >= 1",
                context={"field": "max_fixed_point_iterations"},
            )
        if not isinstance(self.verify, bool):
            raise ConfigError("verify must be a boolean", context={"field": "verify"})
        if self.statistics_path is not None and not isinstance(self.statistics_path, Path):
            object.__setattr__(self, "statistics_path", Path(self.statistics_path).expanduser())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CompilerConfig:
        data = dict(data)
        version = data.pop("version", SCHEMA_VERSION)
        if version != SCHEMA_VERSION:
            raise ConfigError(f"unsupported config version: {version}", context={"field": "version"})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(unknown)}", context={"keys": unknown})
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": SCHEMA_VERSION,
            "target": self.target,
            "max_fixed_point_iterations": self.max_fixed_point_iterations,
            "verify": self.verify,
            "statistics_path": str(self.statistics_path) if self.statistics_path else None,
        }


def load_config(path: str | Path) -> CompilerConfig:
    path = Path(path).expanduser()
    if not path.exists():
        raise ConfigError(f"config file not found: {path}", context={"path": str(path)})
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}", context={"path": str(path)}) from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}", context={"path": str(path)})
    return CompilerConfig.from_dict(data)
