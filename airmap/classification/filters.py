"""
Filter expression generation.

Produces the declarative filters the renderer applies to the markers source:
one "valid, in range, fresh" filter per bucket and a single filter for stale
or negative (unused) readings. Expressions are nested lists:

    [op, field, literal]          op in >=, <, <=, >
    ["all", child, ...]           every child matches
    ["any", child, ...]           at least one child matches

evaluate_filter() implements the same matching semantics so the partition
can be checked without a renderer.
"""

import logging
import operator
from typing import Any, List, Mapping, Sequence

from airmap.classification.scale import Bucket

logger = logging.getLogger(__name__)

VALUE_FIELD = "convertedValue"
AGE_FIELD = "lastUpdatedMilliseconds"

_COMPARISONS = {
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
}


def build_valid_filters(buckets: Sequence[Bucket], stale_threshold_ms: float) -> List[list]:
    """
    Build one filter per bucket.

    Non-last buckets test lower <= value < upper; the last bucket has no
    upper clause. Every filter also requires age <= stale_threshold_ms.
    """
    filters = []
    last = len(buckets) - 1
    for bucket in buckets:
        if bucket.index < last:
            expr = ["all",
                    [">=", VALUE_FIELD, bucket.lower_bound],
                    ["<", VALUE_FIELD, bucket.upper_bound],
                    ["<=", AGE_FIELD, stale_threshold_ms]]
        else:
            expr = ["all",
                    [">=", VALUE_FIELD, bucket.lower_bound],
                    ["<=", AGE_FIELD, stale_threshold_ms]]
        filters.append(expr)
    logger.debug("Generated %d bucket filters (threshold=%s)", len(filters), stale_threshold_ms)
    return filters


def build_invalid_filter(stale_threshold_ms: float) -> list:
    """Filter for stale readings or readings with a negative value."""
    return ["any",
            [">", AGE_FIELD, stale_threshold_ms],
            ["<", VALUE_FIELD, 0]]


def evaluate_filter(expr: Sequence[Any], properties: Mapping[str, Any]) -> bool:
    """
    Evaluate a filter expression against feature properties.

    A comparison against a missing or non-numeric property is false.

    Raises:
        ValueError: If the expression uses an unknown operator.
    """
    if not expr:
        raise ValueError("Empty filter expression")

    op = expr[0]
    if op == "all":
        return all(evaluate_filter(child, properties) for child in expr[1:])
    if op == "any":
        return any(evaluate_filter(child, properties) for child in expr[1:])

    compare = _COMPARISONS.get(op)
    if compare is None:
        raise ValueError(f"Unsupported filter operator: {op!r}")

    _, field_name, literal = expr
    value = properties.get(field_name)
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return compare(value, literal)


def matching_filters(filters: Sequence[Sequence[Any]], properties: Mapping[str, Any]) -> List[int]:
    """Indices of every filter that matches the properties."""
    return [i for i, f in enumerate(filters) if evaluate_filter(f, properties)]
