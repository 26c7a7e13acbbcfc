"""Configuration loading for motifgen (.motifgen.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".motifgen.yml"

DEFAULT_CHECK_WEIGHTS: Dict[str, float] = {
    "property_coverage": 0.35,
    "method_coverage": 0.45,
    "ownership_adaptation": 0.20,
}


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ScoringConfig:
    """Pattern library overrides."""

    rules_file: Optional[Path] = None


@dataclass
class ComplianceConfig:
    """Verdict thresholds and per-check weights."""

    approve_threshold: float = 0.90
    flag_threshold: float = 0.70
    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_CHECK_WEIGHTS))


@dataclass
class LedgerConfig:
    """Retry policy for ledger appends that lose a compare-and-append race."""

    max_attempts: int = 5
    backoff_seconds: float = 0.01


@dataclass
class ExtractorConfig:
    """Extractor enablement."""

    enabled: List[str] = field(default_factory=list)


@dataclass
class MotifConfig:
    """Represents the settings defined in .motifgen.yml."""

    root: Path
    acceptance_bar: float = 0.70
    state_dir: Optional[Path] = None
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    compliance: ComplianceConfig = field(default_factory=ComplianceConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    extractors: ExtractorConfig = field(default_factory=ExtractorConfig)


def load_config(config_path: Path) -> MotifConfig:
    """Load configuration from disk, returning defaults when the file is absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return MotifConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    engine_data = _as_dict(data.get("engine"))
    acceptance_bar = _as_float(engine_data.get("acceptance_bar"))
    if acceptance_bar is None:
        acceptance_bar = 0.70
    _require_unit_interval("engine.acceptance_bar", acceptance_bar)
    state_dir_str = _as_str(engine_data.get("state_dir"))
    state_dir = root / state_dir_str if state_dir_str else None

    scoring = ScoringConfig()
    scoring_data = _as_dict(data.get("scoring"))
    rules_file = _as_str(scoring_data.get("rules_file"))
    if rules_file:
        scoring.rules_file = root / rules_file

    compliance = ComplianceConfig()
    compliance_data = _as_dict(data.get("compliance"))
    if compliance_data:
        approve = _as_float(compliance_data.get("approve_threshold"))
        flag = _as_float(compliance_data.get("flag_threshold"))
        if approve is not None:
            _require_unit_interval("compliance.approve_threshold", approve)
            compliance.approve_threshold = approve
        if flag is not None:
            _require_unit_interval("compliance.flag_threshold", flag)
            compliance.flag_threshold = flag
        if compliance.flag_threshold > compliance.approve_threshold:
            raise ConfigError("compliance.flag_threshold must not exceed approve_threshold")
        weights = _as_dict(compliance_data.get("weights"))
        for name, raw in weights.items():
            if name not in DEFAULT_CHECK_WEIGHTS:
                raise ConfigError(f"Unknown compliance check '{name}'")
            weight = _as_float(raw)
            if weight is None or weight < 0:
                raise ConfigError(f"compliance.weights.{name} must be a non-negative number")
            compliance.weights[name] = weight

    ledger = LedgerConfig()
    ledger_data = _as_dict(data.get("ledger"))
    if ledger_data:
        attempts = _as_int(ledger_data.get("max_attempts"))
        if attempts is not None:
            if attempts < 1:
                raise ConfigError("ledger.max_attempts must be at least 1")
            ledger.max_attempts = attempts
        backoff = _as_float(ledger_data.get("backoff_seconds"))
        if backoff is not None:
            ledger.backoff_seconds = max(0.0, backoff)

    extractors = ExtractorConfig()
    extractor_data = _as_dict(data.get("extractors"))
    if extractor_data:
        extractors.enabled = _as_str_list(extractor_data.get("enabled"))

    return MotifConfig(
        root=root,
        acceptance_bar=acceptance_bar,
        state_dir=state_dir,
        scoring=scoring,
        compliance=compliance,
        ledger=ledger,
        extractors=extractors,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _require_unit_interval(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ConfigError(f"{name} must be within [0, 1], got {value}")


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


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


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ComplianceConfig",
    "ConfigError",
    "DEFAULT_CHECK_WEIGHTS",
    "ExtractorConfig",
    "LedgerConfig",
    "MotifConfig",
    "ScoringConfig",
    "load_config",
]
