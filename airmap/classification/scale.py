"""
Quantized colour scale.

Splits [0, domain_max) into N equal-width buckets, one per colour, with the
last bucket open-ended. Boundaries are half-open: a value exactly on a
boundary belongs to the higher bucket.
"""

import bisect
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from airmap.rules.map_config import MapConfigError


class ScaleConfigurationError(MapConfigError):
    """Domain max or colour list cannot produce valid bucket geometry."""


@dataclass(frozen=True)
class Bucket:
    index: int
    color: str
    lower_bound: float
    upper_bound: float            # math.inf for the last bucket

    @property
    def is_open_ended(self) -> bool:
        return math.isinf(self.upper_bound)

    def contains(self, value: float) -> bool:
        return self.lower_bound <= value < self.upper_bound

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "color": self.color,
            "lowerBound": self.lower_bound,
            "upperBound": None if self.is_open_ended else self.upper_bound,
        }


class QuantizeScale:
    """
    Linear quantize scale over [0, domain_max) with inverse lookup.

    Usage
    -----
    scale = QuantizeScale(50, colors)
    scale.invert_extent(3)        -> (30.0, 40.0)
    scale.invert_extent(colors[4]) -> (40.0, inf)
    """

    def __init__(self, domain_max: float, colors: Sequence[str]):
        if not colors:
            raise ScaleConfigurationError("Colour scale needs at least one colour")
        try:
            domain_max = float(domain_max)
        except (TypeError, ValueError):
            raise ScaleConfigurationError(f"domain max must be numeric, got {domain_max!r}") from None
        if not math.isfinite(domain_max) or domain_max <= 0:
            raise ScaleConfigurationError(
                f"domain max must be a positive finite number, got {domain_max}"
            )

        self.domain_max = domain_max
        self.colors: Tuple[str, ...] = tuple(colors)
        n = len(self.colors)
        self._lowers: List[float] = [domain_max * i / n for i in range(n)]

    def __len__(self) -> int:
        return len(self.colors)

    def _resolve_index(self, key: Union[int, str]) -> int:
        if isinstance(key, str):
            try:
                return self.colors.index(key)
            except ValueError:
                raise KeyError(f"Colour {key} is not in the scale range") from None
        if not 0 <= key < len(self.colors):
            raise IndexError(f"Bucket index {key} out of range 0..{len(self.colors) - 1}")
        return key

    def invert_extent(self, key: Union[int, str]) -> Tuple[float, float]:
        """Return (lower, upper) owned by a bucket index or colour."""
        i = self._resolve_index(key)
        n = len(self.colors)
        lower = self._lowers[i]
        upper = math.inf if i == n - 1 else self.domain_max * (i + 1) / n
        return lower, upper

    def bucket_index(self, value: float) -> Optional[int]:
        """Bucket owning value, or None for negative values."""
        if value < 0:
            return None
        return bisect.bisect_right(self._lowers, value) - 1

    def color_for(self, value: float) -> str:
        i = self.bucket_index(value)
        return self.colors[0 if i is None else i]

    def buckets(self) -> List[Bucket]:
        result = []
        for i, color in enumerate(self.colors):
            lower, upper = self.invert_extent(i)
            result.append(Bucket(index=i, color=color, lower_bound=lower, upper_bound=upper))
        return result


def build_buckets(domain_max: float, colors: Sequence[str]) -> List[Bucket]:
    """Compute the ordered bucket list for a domain max and colour list."""
    return QuantizeScale(domain_max, colors).buckets()
