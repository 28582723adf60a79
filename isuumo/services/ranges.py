"""Range bucket classification.

Numeric attributes are denormalized into bucket ids at ingest, so a range
facet at query time is a plain equality filter on the *_range column.
"""
import re

from isuumo.errors import InvalidInput
from isuumo.schemas import RangeCondition


UNBOUNDED = -1

INT_RE = re.compile(r"[+-]?\d+", re.ASCII)


def parse_int(name: str, raw: str) -> int:
    """Parse a decimal integer query value, raising InvalidInput otherwise."""
    if raw is None or not INT_RE.fullmatch(raw):
        raise InvalidInput(f"Invalid format {name} parameter : {raw!r}")
    return int(raw)


def classify(condition: RangeCondition, value: float) -> int:
    """Return the id of the [min, max) interval of ``condition`` containing ``value``."""
    for bucket in condition.ranges:
        if bucket.min != UNBOUNDED and value < bucket.min:
            # Intervals are ordered, so falling below this one means a gap
            # or a value under the first lower bound.
            raise InvalidInput(f"value {value} is outside the configured ranges")
        if bucket.max == UNBOUNDED or value < bucket.max:
            return bucket.id
    raise InvalidInput(f"value {value} is outside the configured ranges")


def validate_bucket_id(condition: RangeCondition, name: str, raw: str) -> int:
    """Parse a query-time bucket id and check it against the configured ids."""
    bucket_id = parse_int(name, raw)
    if not 0 <= bucket_id < len(condition.ranges):
        raise InvalidInput(f"{name} invalid, {raw} : unexpected range id")
    return bucket_id
