"""
Reference range registry - single source of truth for clinical thresholds.

This module provides:
- YAML-based loading and validation of the packaged reference ranges
- ReferenceRange dataclass with the severity classification for one field
- Read-only access to the loaded table

The table is loaded once and cached; there is no API to mutate it.
YAML access is encapsulated here - no other module should read
reference_ranges.yaml directly.

Usage:
    from core.reference_ranges import list_reference_ranges, get_reference_range

    for reference in list_reference_ranges():
        severity = reference.classify(value)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    """Severity of an out-of-range measurement."""
    LOW = "low"
    HIGH = "high"
    CRITICAL = "critical"


# =============================================================================
# REFERENCE RANGE DATACLASS
# =============================================================================

@dataclass(frozen=True)
class ReferenceRange:
    """
    Immutable reference range for one measured field.

    Attributes:
        field: Name reported on abnormal values (e.g. "bloodPressure.systolic")
        path: Dotted path of the value inside a health record
        normal_range: Human-readable normal range text
        low: Values below this are low (None if there is no lower bound)
        high: Values above this are high (None if there is no upper bound)
        critical_low: Values below this are critical instead of low
        critical_high: Values above this are critical instead of high
    """
    field: str
    path: Tuple[str, ...]
    normal_range: str
    low: Optional[float] = None
    high: Optional[float] = None
    critical_low: Optional[float] = None
    critical_high: Optional[float] = None

    def classify(self, value: float) -> Optional[Severity]:
        """
        Classify a value against this range.

        Returns:
            The severity if the value is out of range, None if it is normal.
        """
        if self.high is not None and value > self.high:
            if self.critical_high is not None and value > self.critical_high:
                return Severity.CRITICAL
            return Severity.HIGH
        if self.low is not None and value < self.low:
            if self.critical_low is not None and value < self.critical_low:
                return Severity.CRITICAL
            return Severity.LOW
        return None


# =============================================================================
# YAML CONFIGURATION LOADING & VALIDATION
# =============================================================================

_BOUND_KEYS = ("low", "high", "critical_low", "critical_high")


def _get_config_path() -> Path:
    """Get the path to the reference range table."""
    return Path(__file__).parent / "reference_ranges.yaml"


def _load_yaml_config() -> Dict[str, Any]:
    """
    Load and parse the YAML configuration file.

    Raises:
        FileNotFoundError: If reference_ranges.yaml is not found
        yaml.YAMLError: If YAML parsing fails
    """
    config_path = _get_config_path()
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except FileNotFoundError:
        logger.error("Reference range file not found", extra={"path": str(config_path)})
        raise
    except yaml.YAMLError as e:
        logger.error("Failed to parse reference ranges", extra={"path": str(config_path), "error": str(e)})
        raise


def _validate_range_entry(raw: Dict[str, Any], index: int) -> None:
    """
    Validate a single reference range entry from YAML.

    Raises:
        ValueError: If required fields are missing or bounds are inconsistent
    """
    for key in ("field", "path", "normal_range"):
        if not raw.get(key):
            raise ValueError(f"Reference range at index {index} is missing required field: '{key}'")

    name = raw["field"]
    for key in _BOUND_KEYS:
        if raw.get(key) is not None:
            try:
                float(raw[key])
            except (TypeError, ValueError):
                raise ValueError(f"Reference range '{name}' has non-numeric {key}: {raw[key]!r}")

    if raw.get("low") is None and raw.get("high") is None:
        raise ValueError(f"Reference range '{name}' needs at least one of 'low' or 'high'")
    if raw.get("critical_low") is not None and raw.get("low") is None:
        raise ValueError(f"Reference range '{name}' sets critical_low without low")
    if raw.get("critical_high") is not None and raw.get("high") is None:
        raise ValueError(f"Reference range '{name}' sets critical_high without high")
    if raw.get("low") is not None and raw.get("high") is not None and float(raw["low"]) > float(raw["high"]):
        raise ValueError(f"Reference range '{name}' has low above high")


def _parse_range_entry(raw: Dict[str, Any]) -> ReferenceRange:
    """Parse a single YAML entry into a ReferenceRange."""
    bounds = {
        key: float(raw[key]) if raw.get(key) is not None else None
        for key in _BOUND_KEYS
    }
    return ReferenceRange(
        field=raw["field"],
        path=tuple(raw["path"].split(".")),
        normal_range=str(raw["normal_range"]),
        **bounds,
    )


@lru_cache(maxsize=1)
def _load_registry() -> Tuple[ReferenceRange, ...]:
    """
    Load and cache the reference range table from YAML.

    Cached so the file is read exactly once per process.
    """
    config = _load_yaml_config() or {}
    entries = config.get("ranges", [])

    references = []
    seen = set()
    for i, raw in enumerate(entries):
        _validate_range_entry(raw, i)
        if raw["field"] in seen:
            raise ValueError(f"Duplicate reference range for field '{raw['field']}'")
        seen.add(raw["field"])
        references.append(_parse_range_entry(raw))

    logger.info("Loaded reference ranges", extra={"count": len(references)})
    return tuple(references)


# =============================================================================
# PUBLIC API
# =============================================================================

def list_reference_ranges() -> Tuple[ReferenceRange, ...]:
    """Return every reference range in evaluation order."""
    return _load_registry()


def get_reference_range(field: str) -> Optional[ReferenceRange]:
    """Look up the reference range reported under ``field``."""
    for reference in _load_registry():
        if reference.field == field:
            return reference
    return None
