"""CSV bulk import for chairs and estates.

Rows are parsed strictly and positionally. One bad row rejects the whole
upload before anything is written; the insert itself is one transaction.
"""
from __future__ import annotations

import csv
import io
import math
import re
from typing import TYPE_CHECKING, Iterable

from sqlalchemy import insert

from isuumo.database import store_errors
from isuumo.errors import InvalidInput
from isuumo.logging_config import get_logger
from isuumo.models import Chair, Estate
from isuumo.schemas import ChairSearchCondition, EstateSearchCondition
from isuumo.services.geo import estate_point
from isuumo.services.ranges import INT_RE, classify

if TYPE_CHECKING:
    from isuumo.context import AppContext


logger = get_logger(__name__)

# Plain decimal notation; no whitespace, digit separators, nan or inf
FLOAT_RE = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?", re.ASCII)


class RowReader:
    """Consumes one CSV record field by field."""

    def __init__(self, record: list[str], line: int):
        self.record = record
        self.line = line
        self.offset = 0

    def _next(self) -> str:
        if self.offset >= len(self.record):
            raise InvalidInput(
                f"line {self.line}: expected more than {len(self.record)} fields"
            )
        value = self.record[self.offset]
        self.offset += 1
        return value

    def next_str(self) -> str:
        return self._next()

    def next_int(self) -> int:
        value = self._next()
        if not INT_RE.fullmatch(value):
            raise InvalidInput(
                f"line {self.line}: field {self.offset} is not an integer: {value!r}"
            )
        return int(value)

    def next_float(self) -> float:
        value = self._next()
        if not FLOAT_RE.fullmatch(value):
            raise InvalidInput(
                f"line {self.line}: field {self.offset} is not a number: {value!r}"
            )
        number = float(value)
        if not math.isfinite(number):
            raise InvalidInput(
                f"line {self.line}: field {self.offset} is out of range: {value!r}"
            )
        return number

    def finish(self) -> None:
        """Reject trailing fields."""
        if self.offset != len(self.record):
            raise InvalidInput(
                f"line {self.line}: {len(self.record) - self.offset} unexpected trailing fields"
            )


def read_records(text: str) -> list[list[str]]:
    """Split CSV text into records; an empty upload is invalid."""
    try:
        records = [row for row in csv.reader(io.StringIO(text)) if row]
    except csv.Error as exc:
        raise InvalidInput(f"failed to read csv: {exc}") from exc
    if not records:
        raise InvalidInput("csv contains no records")
    return records


def popularity_sort_key(popularity: int) -> int:
    """Ascending order on this key lists the most popular first."""
    return -popularity


def parse_chair_rows(
    records: Iterable[list[str]], condition: ChairSearchCondition
) -> list[dict]:
    """Parse chair records into insertable rows with their derived columns."""
    rows = []
    for line, record in enumerate(records, 1):
        reader = RowReader(record, line)
        row = {
            "id": reader.next_int(),
            "name": reader.next_str(),
            "description": reader.next_str(),
            "thumbnail": reader.next_str(),
            "price": reader.next_int(),
            "height": reader.next_int(),
            "width": reader.next_int(),
            "depth": reader.next_int(),
            "color": reader.next_str(),
            "features": reader.next_str(),
            "kind": reader.next_str(),
            "popularity": reader.next_int(),
            "stock": reader.next_int(),
        }
        reader.finish()
        try:
            row["price_range"] = classify(condition.price, row["price"])
            row["height_range"] = classify(condition.height, row["height"])
            row["width_range"] = classify(condition.width, row["width"])
            row["depth_range"] = classify(condition.depth, row["depth"])
        except InvalidInput as exc:
            raise InvalidInput(f"line {line}: {exc}") from None
        if row["stock"] < 0:
            raise InvalidInput(f"line {line}: stock must not be negative")
        row["popularity_m"] = popularity_sort_key(row["popularity"])
        row["in_stock"] = row["stock"] > 0
        rows.append(row)
    return rows


def parse_estate_rows(
    records: Iterable[list[str]], condition: EstateSearchCondition
) -> list[dict]:
    """Parse estate records into insertable rows with their derived columns."""
    rows = []
    for line, record in enumerate(records, 1):
        reader = RowReader(record, line)
        row = {
            "id": reader.next_int(),
            "name": reader.next_str(),
            "description": reader.next_str(),
            "thumbnail": reader.next_str(),
            "address": reader.next_str(),
            "latitude": reader.next_float(),
            "longitude": reader.next_float(),
            "rent": reader.next_int(),
            "door_height": reader.next_int(),
            "door_width": reader.next_int(),
            "features": reader.next_str(),
            "popularity": reader.next_int(),
        }
        reader.finish()
        try:
            row["rent_range"] = classify(condition.rent, row["rent"])
            row["door_height_range"] = classify(condition.door_height, row["door_height"])
            row["door_width_range"] = classify(condition.door_width, row["door_width"])
        except InvalidInput as exc:
            raise InvalidInput(f"line {line}: {exc}") from None
        row["popularity_m"] = popularity_sort_key(row["popularity"])
        row["point"] = estate_point(row["latitude"], row["longitude"])
        rows.append(row)
    return rows


def load_chairs(ctx: AppContext, text: str) -> int:
    """Parse and insert a chair CSV upload. Returns the number of rows inserted."""
    rows = parse_chair_rows(read_records(text), ctx.chair_condition)
    with store_errors("postChair"):
        with ctx.chair_sessions.begin() as session:
            session.execute(insert(Chair), rows)
    ctx.low_priced_chair_cache.purge()
    logger.info("inserted %d chairs", len(rows))
    return len(rows)


def load_estates(ctx: AppContext, text: str) -> int:
    """Parse and insert an estate CSV upload. Returns the number of rows inserted."""
    rows = parse_estate_rows(read_records(text), ctx.estate_condition)
    with store_errors("postEstate"):
        with ctx.estate_sessions.begin() as session:
            session.execute(insert(Estate), rows)
    ctx.low_priced_estate_cache.purge()
    logger.info("inserted %d estates", len(rows))
    return len(rows)
