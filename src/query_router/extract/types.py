from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any

from query_router.dates.parser import ParsedDate


@dataclass(frozen=True)
class NumericFilter:
    operator: str  # ">"|"<"|">="|"<="|"="|"between"
    value: float | None = None
    min: float | None = None
    max: float | None = None


@dataclass(frozen=True)
class Measurement:
    value: float
    unit: str  # canonical singular unit, e.g. "ton", "trip", "day"


@dataclass(frozen=True)
class Comparison:
    entity1: str
    entity2: str


@dataclass
class ParameterBag:
    """Structured fields extracted from a question.

    ``None`` means "not specified"; it never stands for zero or empty.
    """

    row_number: int | None = None
    n: int | None = None
    rank_type: str | None = None  # "top"|"bottom"

    month: int | None = None
    month_name: str | None = None
    months: list[int] | None = None
    is_multi_month: bool | None = None
    year: int | None = None
    quarter: int | None = None
    date: str | None = None
    date_start: str | None = None
    date_end: str | None = None
    parsed_date: ParsedDate | None = None
    date_range: str | None = None  # relative period token, e.g. "last_week"
    date_range_start: str | None = None
    date_range_end: str | None = None
    relative_window: Measurement | None = None

    group_by_month: bool | None = None
    group_by_shift: bool | None = None
    month_ranking: bool | None = None
    all_months: bool | None = None

    shift: list[str] | None = None

    equipment_ids: list[str] | None = None
    equipment_replacement: bool | None = None
    exclude_equipment: str | None = None
    replacement_type: str | None = None
    machine_types: list[str] | None = None
    route_or_face: str | None = None

    numeric_filter: NumericFilter | None = None
    measurement: Measurement | None = None

    comparison: Comparison | None = None
    comparison_type: str | None = None

    def is_set(self, name: str) -> bool:
        return getattr(self, name) is not None

    def set_once(self, name: str, value: Any) -> bool:
        """Populate ``name`` unless an earlier extraction already did."""
        if value is None or getattr(self, name) is not None:
            return False
        setattr(self, name, value)
        return True

    def present_fields(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @property
    def has_date(self) -> bool:
        return any(
            self.is_set(name)
            for name in ("parsed_date", "month", "year", "quarter", "date_range")
        )

    @property
    def has_shift(self) -> bool:
        return bool(self.shift)

    @property
    def has_equipment(self) -> bool:
        return bool(self.equipment_ids)
