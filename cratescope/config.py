"""Configuration loading for cratescope (.cratescope.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".cratescope.yml"

DEFAULT_INCLUDE = ["**/*.rs"]
GENERATED_EXCLUDES = [
    "**/target/**",
    "**/OUT_DIR/**",
    "**/*bindings*.rs",
    "**/*pb*.rs",
]


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ScanConfig:
    """File selection and parsing knobs for the source scanner."""

    include: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE))
    exclude: List[str] = field(default_factory=list)
    exclude_generated: bool = True
    follow_links: bool = False
    max_file_size: Optional[int] = None
    only_newest: Optional[int] = None
    ignore_parse_errors: bool = False
    include_tests: bool = False
    include_examples: bool = False
    include_benches: bool = False
    members: List[str] = field(default_factory=list)
    workers: Optional[int] = None

    def effective_excludes(self) -> List[str]:
        patterns = list(self.exclude)
        if self.exclude_generated:
            patterns.extend(p for p in GENERATED_EXCLUDES if p not in patterns)
        return patterns


@dataclass
class RulesConfig:
    """Rule enablement; an empty list means every discovered rule."""

    enabled: List[str] = field(default_factory=list)


@dataclass
class CrateScopeConfig:
    """Represents the settings defined in .cratescope.yml."""

    root: Path
    crate_name: Optional[str] = None
    scan: ScanConfig = field(default_factory=ScanConfig)
    rules: RulesConfig = field(default_factory=RulesConfig)
    span_locations: bool = True
    snapshot_path: Optional[Path] = None


def load_config(config_path: Path) -> CrateScopeConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return CrateScopeConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    scan = ScanConfig()
    scan_data = _as_dict(data.get("scan"))
    if scan_data:
        if "include" in scan_data:
            scan.include = _as_str_list(scan_data.get("include")) or list(DEFAULT_INCLUDE)
        scan.exclude = _as_str_list(scan_data.get("exclude"))
        scan.exclude_generated = _bool_or(scan_data.get("exclude_generated"), True)
        scan.follow_links = _bool_or(scan_data.get("follow_links"), False)
        scan.max_file_size = _as_positive_int(scan_data, "max_file_size")
        scan.only_newest = _as_positive_int(scan_data, "only_newest")
        scan.ignore_parse_errors = _bool_or(scan_data.get("ignore_parse_errors"), False)
        scan.include_tests = _bool_or(scan_data.get("include_tests"), False)
        scan.include_examples = _bool_or(scan_data.get("include_examples"), False)
        scan.include_benches = _bool_or(scan_data.get("include_benches"), False)
        scan.members = _as_str_list(scan_data.get("members"))
        scan.workers = _as_positive_int(scan_data, "workers")

    rules = RulesConfig()
    rules_data = _as_dict(data.get("rules"))
    if rules_data:
        rules.enabled = _as_str_list(rules_data.get("enabled"))

    snapshot_str = _as_str(data.get("snapshot_path"))

    return CrateScopeConfig(
        root=root,
        crate_name=_as_str(data.get("crate_name")),
        scan=scan,
        rules=rules,
        span_locations=_bool_or(data.get("span_locations"), True),
        snapshot_path=root / snapshot_str if snapshot_str else None,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_positive_int(data: Dict[str, Any], key: str) -> Optional[int]:
    raw = data.get(key)
    if raw is None:
        return None
    value = _as_int(raw)
    if value is None or value <= 0:
        raise ConfigError(f"'{key}' must be a positive integer, got {raw!r}")
    return value


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _bool_or(value: Any, default: bool) -> bool:
    parsed = _as_bool(value)
    return default if parsed is None else parsed


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "CrateScopeConfig",
    "DEFAULT_INCLUDE",
    "GENERATED_EXCLUDES",
    "RulesConfig",
    "ScanConfig",
    "load_config",
]
