"""Configuration helpers for contact ingestion and agent distribution."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .models import RedistributionStrategy

LOGGER = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Raised when configuration files are missing or malformed."""


_SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}


@dataclass(frozen=True)
class IngestionSettings:
    """Tunable parameters of the table analyzer and contact normalizer."""

    preview_rows: int = 5
    sample_rows: int = 200
    delimiter_sample_lines: int = 10
    phone_value_ratio: float = 0.6
    phone_min_digits: int = 8
    phone_max_digits: int = 13
    country_prefix: str = "55"
    local_min_digits: int = 8
    local_max_digits: int = 11


@dataclass(frozen=True)
class DistributionSettings:
    contact_ceiling: int = 10000
    redistribution_strategy: RedistributionStrategy = RedistributionStrategy.FROM_END


@dataclass(frozen=True)
class DispatchSettings:
    ingestion: IngestionSettings = field(default_factory=IngestionSettings)
    distribution: DistributionSettings = field(default_factory=DistributionSettings)


DEFAULT_SETTINGS = DispatchSettings()


def load_configuration(path: str | Path) -> Dict[str, Any]:
    """Load configuration data from a JSON or YAML file."""

    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Configuration file '{file_path}' was not found")

    if file_path.suffix.lower() not in _SUPPORTED_EXTENSIONS:
        raise ConfigurationError(
            f"Unsupported configuration format '{file_path.suffix}'. Supported extensions: {sorted(_SUPPORTED_EXTENSIONS)}"
        )

    text = file_path.read_text(encoding="utf-8")
    if file_path.suffix.lower() == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid JSON in '{file_path}': {exc}") from exc
    else:
        try:
            import yaml  # type: ignore
        except ImportError as exc:  # pragma: no cover - dependency optional
            raise ConfigurationError(
                "YAML configuration requires the 'pyyaml' package to be installed"
            ) from exc
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in '{file_path}': {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration root in '{file_path}' must be a mapping")
    return data


def load_settings(path: Optional[str | Path] = None) -> DispatchSettings:
    """Return :class:`DispatchSettings` from ``path``, or the defaults."""

    if path is None:
        return DEFAULT_SETTINGS
    return settings_from_mapping(load_configuration(path))


def settings_from_mapping(config: Mapping[str, Any]) -> DispatchSettings:
    ingestion = _apply_section(IngestionSettings(), config.get("ingestion") or {}, "ingestion")
    distribution = _apply_section(DistributionSettings(), config.get("distribution") or {}, "distribution")

    if ingestion.phone_min_digits > ingestion.phone_max_digits:
        raise ConfigurationError("ingestion.phone_min_digits must not exceed phone_max_digits")
    if ingestion.local_min_digits > ingestion.local_max_digits:
        raise ConfigurationError("ingestion.local_min_digits must not exceed local_max_digits")
    if not ingestion.country_prefix.isdigit():
        raise ConfigurationError("ingestion.country_prefix must contain only digits")
    if distribution.contact_ceiling < 0:
        raise ConfigurationError("distribution.contact_ceiling must be non-negative")

    return DispatchSettings(ingestion=ingestion, distribution=distribution)


def _apply_section(defaults, section: Any, section_name: str):
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"Configuration section '{section_name}' must be a mapping")

    known = {item.name: item for item in fields(defaults)}
    overrides: Dict[str, Any] = {}
    for key, value in section.items():
        if key not in known:
            LOGGER.debug("Ignoring unknown configuration key %s.%s", section_name, key)
            continue
        overrides[key] = _coerce(getattr(defaults, key), value, f"{section_name}.{key}")
    return replace(defaults, **overrides)


def _coerce(default: Any, value: Any, key: str) -> Any:
    if isinstance(default, RedistributionStrategy):
        try:
            return RedistributionStrategy(value)
        except ValueError as exc:
            raise ConfigurationError(f"'{key}' must be one of {[s.value for s in RedistributionStrategy]}") from exc
    if isinstance(default, bool) or isinstance(value, bool):
        raise ConfigurationError(f"'{key}' has an invalid value {value!r}")
    if isinstance(default, int):
        if not isinstance(value, int):
            raise ConfigurationError(f"'{key}' must be an integer")
        return value
    if isinstance(default, float):
        if not isinstance(value, (int, float)):
            raise ConfigurationError(f"'{key}' must be a number")
        return float(value)
    if isinstance(default, str):
        return str(value)
    return value
