"""Multi-predicate filtering over page records.

Every query scans the full ``pages`` collection and filters in memory. That
is fine at personal-history scale and is the known scalability ceiling of the
store; there is no approximate index.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..image_utils import RGB, parse_color
from .models import PageRecord

DEFAULT_LIMIT = 50
COLOR_THRESHOLD = 50.0


class SearchFilter(BaseModel):
    """Conjunctive query; absent fields impose no constraint."""

    model_config = ConfigDict(populate_by_name=True)

    text: Optional[str] = None
    color: Optional[RGB] = None
    domain: Optional[str] = None
    start_date: Optional[int] = Field(None, alias="startDate")
    end_date: Optional[int] = Field(None, alias="endDate")
    limit: int = Field(DEFAULT_LIMIT, ge=0)

    @field_validator("color", mode="before")
    @classmethod
    def _parse_color(cls, value: Any) -> Optional[RGB]:
        if value is None or value == "":
            return None
        return parse_color(value)

    @field_validator("text", "domain", mode="before")
    @classmethod
    def _empty_to_none(cls, value: Any) -> Any:
        if value == "":
            return None
        return value


def color_distance(first: RGB | None, second: RGB | None) -> float:
    if first is None or second is None:
        return 999.0
    return math.sqrt(
        (first.r - second.r) ** 2 + (first.g - second.g) ** 2 + (first.b - second.b) ** 2
    )


def _record_color(record: PageRecord) -> RGB | None:
    if record.dominant_r is None or record.dominant_g is None or record.dominant_b is None:
        return None
    return RGB(record.dominant_r, record.dominant_g, record.dominant_b)


def _matches_text(record: PageRecord, needle: str) -> bool:
    for field in (record.title, record.url, record.text_content):
        if field and needle in field.lower():
            return True
    return False


def filter_pages(
    records: Iterable[PageRecord],
    query: SearchFilter,
    *,
    color_threshold: float = COLOR_THRESHOLD,
) -> list[PageRecord]:
    """Apply text, color, domain and date filters, newest first, truncated to ``limit``."""

    results: Sequence[PageRecord] = list(records)

    if query.text:
        needle = query.text.lower()
        results = [record for record in results if _matches_text(record, needle)]

    if query.color is not None:
        results = [
            record
            for record in results
            if color_distance(_record_color(record), query.color) < color_threshold
        ]

    if query.domain:
        results = [record for record in results if record.domain == query.domain]

    if query.start_date is not None:
        results = [record for record in results if record.timestamp >= query.start_date]
    if query.end_date is not None:
        results = [record for record in results if record.timestamp <= query.end_date]

    ordered = sorted(results, key=lambda record: record.timestamp, reverse=True)
    return ordered[: query.limit]
