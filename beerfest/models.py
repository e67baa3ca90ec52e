"""Record types for events, attendees, beers and scores.

Rows coming out of sqlite are loosely typed (JSON text columns, 0/1 flags), so
every record is validated into one of these models before anything else sees
it. The scoring engine only ever works with validated records.
"""
from __future__ import annotations

import json
import math
import time
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CATEGORIES = ("look", "aroma", "flavour", "mouthfeel", "finish")
Category = Literal["look", "aroma", "flavour", "mouthfeel", "finish"]

MIN_SCORE = 0
MAX_SCORE = 5
MAX_TOTAL = MAX_SCORE * len(CATEGORIES)


def now_ms() -> int:
    return int(time.time() * 1000)


def clamp_score(value: Any) -> int:
    """Floor a raw category value and clamp it into [0, 5]; missing or NaN is 0."""
    if value is None:
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number):
        return 0
    if math.isinf(number):
        return MAX_SCORE if number > 0 else MIN_SCORE
    return max(MIN_SCORE, min(MAX_SCORE, math.floor(number)))


def fill_values(values: Optional[Mapping[str, Any]]) -> Dict[str, int]:
    values = values or {}
    return {c: clamp_score(values.get(c)) for c in CATEGORIES}


def compute_total(values: Optional[Mapping[str, Any]]) -> int:
    return sum(fill_values(values).values())


def _json_field(value: Any) -> Any:
    if isinstance(value, (str, bytes)):
        return json.loads(value) if value else None
    return value


class Record(BaseModel):
    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]):
        return cls.model_validate(dict(row))


class Event(Record):
    id: str
    code: str
    name: str
    host_id: Optional[str] = None
    created_at: int
    status: Literal["active", "ended"] = "active"
    beer_order: List[str] = Field(default_factory=list)

    @field_validator("beer_order", mode="before")
    @classmethod
    def _parse_beer_order(cls, value):
        return _json_field(value) or []

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class Attendee(Record):
    id: str
    event_id: str
    name: str
    is_host: bool = False
    joined_at: int
    token: str = Field("", exclude=True, repr=False)


class Beer(Record):
    id: str
    event_id: str
    name: str
    brewery: str = ""
    style: str = ""
    brought_by_attendee_id: str
    order_index: Optional[int] = None
    tasted: bool = False
    photo_url: Optional[str] = None

    @field_validator("brewery", "style", mode="before")
    @classmethod
    def _blank_text(cls, value):
        return value or ""


class Score(Record):
    id: str
    event_id: str
    beer_id: str
    attendee_id: str
    values: Dict[str, float] = Field(default_factory=dict)
    total: int
    updated_at: int = 0

    @model_validator(mode="before")
    @classmethod
    def _fill_total(cls, data):
        if isinstance(data, dict) and data.get("total") is None:
            data = dict(data)
            data["total"] = compute_total(_json_field(data.get("values")))
        return data

    @field_validator("values", mode="before")
    @classmethod
    def _parse_values(cls, value):
        return _json_field(value) or {}
