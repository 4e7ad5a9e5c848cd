from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from scorecard.models import Aggregation, MetricOption, MetricType


class MetricVersionCreate(BaseModel):
    label: str
    type: MetricType
    aggregation: Aggregation = Aggregation.NONE
    unit: Optional[str] = None
    group: Optional[str] = None
    options: Optional[List[MetricOption]] = None
    input_attrs: Dict[str, Any] = Field(default_factory=dict)
    effective_from: date

    def to_definition_payload(self, metric_id: str) -> dict:
        payload = self.model_dump(mode="json", exclude={"effective_from"})
        payload["metric_id"] = metric_id
        payload["active_from"] = self.effective_from.isoformat()
        return payload


class MetricRetire(BaseModel):
    retire_from: date


class DayValuesPayload(BaseModel):
    metrics: Dict[str, Any] = Field(default_factory=dict)


class WeekStructurePayload(BaseModel):
    priorities_defined: bool = False
    two_completed: bool = False
    weekly_review_done: bool = False


class ImportResponse(BaseModel):
    ok: bool
    status: str
    schema_tag: str
    scope: str
    days: List[str]
    weeks: List[str]
    definitions_added: int
    focus_date: Optional[str] = None
