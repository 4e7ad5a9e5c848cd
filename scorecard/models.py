from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from scorecard.constants import DEFAULT_GROUP, WEEK_STRUCTURE_FLAGS


class MetricType(str, Enum):
    NUMBER_INT = "number_int"
    NUMBER_FLOAT = "number_float"
    BINARY_YES_NO = "binary_yes_no"
    BINARY_POS_NEG = "binary_pos_neg"
    TEXT_SHORT = "text_short"
    TEXT_LONG = "text_long"
    SELECT_SINGLE = "select_single"
    SELECT_MULTI = "select_multi"

    @property
    def is_select(self) -> bool:
        return self in (MetricType.SELECT_SINGLE, MetricType.SELECT_MULTI)


class Aggregation(str, Enum):
    AVERAGE = "average"
    SUM = "sum"
    COUNT_TRUE = "count_true"
    COUNT_SELECTED = "count_selected"
    LATEST = "latest"
    NONE = "none"


_TYPE_VALUES = {item.value for item in MetricType}


class MetricOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    label: str


class MetricDefinition(BaseModel):
    """One version row of a metric, valid over [active_from, active_to]."""

    model_config = ConfigDict(frozen=True)

    metric_id: str = Field(pattern=r"^[a-z0-9_]+$")
    label: str
    type: MetricType
    unit: Optional[str] = None
    options: Optional[List[MetricOption]] = None
    active_from: date
    active_to: Optional[date] = None
    aggregation: Aggregation = Aggregation.NONE
    group: str = DEFAULT_GROUP
    input_attrs: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _options_only_for_selects(cls, data):
        if not isinstance(data, dict):
            return data
        payload = dict(data)
        raw_type = payload.get("type")
        type_value = raw_type.value if isinstance(raw_type, MetricType) else str(raw_type or "")
        if type_value in _TYPE_VALUES and MetricType(type_value).is_select:
            payload["options"] = payload.get("options") or []
        else:
            payload["options"] = None
        if payload.get("input_attrs") is None:
            payload["input_attrs"] = {}
        if not payload.get("group"):
            payload["group"] = DEFAULT_GROUP
        return payload

    @property
    def is_open(self) -> bool:
        return self.active_to is None

    @property
    def option_values(self) -> list[str]:
        return [option.value for option in self.options or []]

    def is_active_on(self, day: date) -> bool:
        if self.active_from > day:
            return False
        return self.active_to is None or day <= self.active_to

    def intersects(self, start: date, end: date) -> bool:
        if self.active_from > end:
            return False
        if self.active_to is not None and self.active_to < self.active_from:
            return False
        return self.active_to is None or self.active_to >= start

    def to_payload(self) -> dict:
        return self.model_dump(mode="json")


class DayRef(BaseModel):
    iso_date: date
    week_monday: date


class DayEntry(BaseModel):
    # Legacy sections (physiology, execution, reflection) survive as extras.
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_tag: str = Field(alias="schema")
    day: DayRef
    metrics: Dict[str, Any] = Field(default_factory=dict)
    metric_definitions: List[MetricDefinition] = Field(default_factory=list)
    meta: Dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class WeekStructure(BaseModel):
    priorities_defined: bool = False
    two_completed: bool = False
    weekly_review_done: bool = False

    @property
    def score(self) -> int:
        return sum(1 for name in WEEK_STRUCTURE_FLAGS if getattr(self, name))


class WeekRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    structure: WeekStructure = Field(default_factory=WeekStructure)
    meta: Dict[str, Any] = Field(default_factory=dict)


class StoreState(BaseModel):
    days: Dict[str, DayEntry] = Field(default_factory=dict)
    weeks: Dict[str, WeekRecord] = Field(default_factory=dict)

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class MetricAggregate(BaseModel):
    metric_id: str
    label: str
    aggregation: Aggregation
    value: Any = None
    value_count: int = 0


class PhysiologySummary(BaseModel):
    sleep_avg_hours: Any = None
    sleep_days_logged: int = 0
    caffeine_avg_drinks: Any = None
    caffeine_days_logged: int = 0
    sugar_binge_days: Any = 0
    movement_days: Any = 0


class ExecutionSummary(BaseModel):
    deep_work_sessions_technical_total: Any = 0
    deep_work_sessions_creative_total: Any = 0


class StructureSummary(BaseModel):
    priorities_defined: bool = False
    two_completed: bool = False
    weekly_review_done: bool = False
    score: int = 0


class WeekSummary(BaseModel):
    week_monday: date
    end_sunday: date
    days_logged: int
    metrics: Dict[str, MetricAggregate] = Field(default_factory=dict)
    physiology: PhysiologySummary = Field(default_factory=PhysiologySummary)
    execution: ExecutionSummary = Field(default_factory=ExecutionSummary)
    structure: StructureSummary = Field(default_factory=StructureSummary)

    def to_payload(self) -> dict:
        return self.model_dump(mode="json")
