"""
Map Layer Configuration.

Loads map_config.json once. Holds the process-wide, read-only constants the
classification pipeline needs: unit conversion factors, per-parameter domain
maxima, the bucket colour list and the staleness threshold.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(
    os.path.dirname(os.path.dirname(__file__)),
    "config", "map_config.json"
)

_MAP_CONFIG: Optional["MapConfig"] = None


class MapConfigError(ValueError):
    """Configuration cannot support the requested classification."""


class UnknownParameterError(MapConfigError):
    """No domain max is configured for the parameter."""

    def __init__(self, parameter: str):
        super().__init__(f"No domain max configured for parameter={parameter}")
        self.parameter = parameter


def _numeric_table(data: dict, key: str) -> Dict[str, float]:
    table = {}
    for name, raw in (data.get(key) or {}).items():
        try:
            table[name.lower()] = float(raw)
        except (TypeError, ValueError):
            raise MapConfigError(
                f"{key}.{name} must be numeric, got {raw!r}"
            ) from None
    return table


@dataclass(frozen=True)
class MapConfig:
    """Static constants shared by every classification run."""
    parameter_conversion: Dict[str, float]
    parameter_max: Dict[str, float]
    colors: Tuple[str, ...]
    milliseconds_to_old: float
    unused_color: str = "#B3B3B3"
    source_path: Optional[str] = field(default=None, compare=False)

    @property
    def bucket_count(self) -> int:
        return len(self.colors)

    def get_max(self, parameter: str) -> float:
        """
        Return the domain max for a parameter.

        Raises:
            UnknownParameterError: If no max is configured; binning never
                falls back to an arbitrary scale.
        """
        try:
            return self.parameter_max[parameter]
        except KeyError:
            raise UnknownParameterError(parameter) from None

    def to_dict(self) -> dict:
        return {
            "millisecondsToOld": self.milliseconds_to_old,
            "colors": list(self.colors),
            "unusedColor": self.unused_color,
            "parameterConversion": dict(self.parameter_conversion),
            "parameterMax": dict(self.parameter_max),
        }

    @classmethod
    def from_dict(cls, data: dict, source_path: Optional[str] = None) -> "MapConfig":
        colors = tuple(data.get("colors") or ())
        if not colors:
            raise MapConfigError("Map config must define at least one colour")

        threshold = data.get("millisecondsToOld")
        env_threshold = os.getenv("AIRMAP_STALE_THRESHOLD_MS")
        if env_threshold:
            threshold = env_threshold
        try:
            threshold = float(threshold)
        except (TypeError, ValueError):
            raise MapConfigError(
                f"millisecondsToOld must be numeric, got {threshold!r}"
            ) from None
        if threshold <= 0:
            raise MapConfigError(f"millisecondsToOld must be positive, got {threshold}")

        return cls(
            parameter_conversion=_numeric_table(data, "parameterConversion"),
            parameter_max=_numeric_table(data, "parameterMax"),
            colors=colors,
            milliseconds_to_old=threshold,
            unused_color=data.get("unusedColor", "#B3B3B3"),
            source_path=source_path,
        )


def load_map_config(path: Optional[str] = None) -> MapConfig:
    """Read a map config file from disk. Fail fast if missing."""
    path = path or os.getenv("AIRMAP_CONFIG_PATH") or DEFAULT_CONFIG_PATH
    if not os.path.exists(path):
        raise FileNotFoundError(
            f"Map config not found at {path}. Cannot classify readings."
        )

    with open(path, "r") as f:
        data = json.load(f)

    config = MapConfig.from_dict(data, source_path=path)
    logger.info(
        "Map config loaded from %s (%d buckets, %d parameters)",
        path, config.bucket_count, len(config.parameter_max),
    )
    return config


def get_map_config() -> MapConfig:
    """Return the process-wide MapConfig, loading it on first use."""
    global _MAP_CONFIG
    if _MAP_CONFIG is None:
        _MAP_CONFIG = load_map_config()
    return _MAP_CONFIG


def reset_config_cache() -> None:
    global _MAP_CONFIG
    _MAP_CONFIG = None
