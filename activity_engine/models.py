"""
Pydantic data models for the GitLab activity engine.
Defines type-safe data structures for events, ranges, scores and series.
"""
from pydantic import (
    BaseModel, ConfigDict, Field, NonNegativeInt,
    field_validator, model_validator
)
from typing import Any, Dict, List, Optional, Set, Tuple
from datetime import date, datetime, timedelta, timezone
from enum import Enum

import pandas as pd

from activity_engine.exceptions import InvalidRange, UnknownCategory


# ==========================================================================
# ENUMERATIONS
# ==========================================================================

class EventCategory(str, Enum):
    """Kind of collaboration event. Declaration order is the sort tie-break."""
    COMMIT = "commit"
    MERGE_REQUEST = "merge_request"

    @property
    def singular_label(self) -> str:
        return self.value.replace("_", " ").title()

    @property
    def label(self) -> str:
        """Display label used by the rendering layer."""
        return self.singular_label + "s"

    @property
    def rank(self) -> int:
        """Position in declaration order; used as the sort tie-break."""
        return _CATEGORY_ORDER[self]

    @classmethod
    def parse(cls, value: Any) -> "EventCategory":
        """
        Resolve a category from an enum member, its value or a known alias.

        Raises:
            UnknownCategory: If value names no known category
        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key in _CATEGORY_ALIASES:
            return _CATEGORY_ALIASES[key]
        raise UnknownCategory(f"Unknown event category: {value!r}")


_CATEGORY_ALIASES = {
    "commit": EventCategory.COMMIT,
    "commits": EventCategory.COMMIT,
    "merge_request": EventCategory.MERGE_REQUEST,
    "merge_requests": EventCategory.MERGE_REQUEST,
    "mergerequest": EventCategory.MERGE_REQUEST,
    "merge-request": EventCategory.MERGE_REQUEST,
    "merge request": EventCategory.MERGE_REQUEST,
    "mr": EventCategory.MERGE_REQUEST,
    "pull_request": EventCategory.MERGE_REQUEST,
}

_CATEGORY_ORDER = {category: index for index, category in enumerate(EventCategory)}


def as_utc(value: Any) -> Any:
    """
    Coerce strings, dates and datetimes to timezone-aware UTC datetimes.
    Naive values are taken to be UTC. Other types are returned untouched so
    pydantic can report them.
    """
    if isinstance(value, str):
        parsed = pd.Timestamp(value)
        if pd.isna(parsed):
            raise ValueError(f"Not a point in time: {value!r}")
        value = parsed.to_pydatetime()
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return value


# ==========================================================================
# EVENT MODELS
# ==========================================================================

class EventRecord(BaseModel):
    """Normalized commit or merge request event."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Opaque event identifier (sha, iid, ...)")
    category: EventCategory = Field(..., description="Kind of event")
    timestamp: datetime = Field(..., description="Resolved event time (UTC)")
    project_id: str = Field(..., description="Project the event belongs to")

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp_utc(cls, value):
        return as_utc(value)


class DateRange(BaseModel):
    """Closed interval [start, end] bounding scoring and bucketization."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end", mode="before")
    @classmethod
    def _bounds_utc(cls, value):
        return as_utc(value)

    @model_validator(mode="after")
    def _check_order(self):
        if self.end < self.start:
            raise InvalidRange(self.start, self.end)
        return self

    def contains(self, instant: datetime) -> bool:
        """Check whether instant lies inside the range (both ends inclusive)."""
        return self.start <= instant <= self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()} .. {self.end.isoformat()}"


# ==========================================================================
# SCORING MODELS
# ==========================================================================

class WeightingPolicy(BaseModel):
    """Per-category score multipliers; unlisted categories use default_weight."""
    weights: Dict[EventCategory, float] = Field(default_factory=dict)
    default_weight: float = Field(default=1.0, ge=0)

    @field_validator("weights")
    @classmethod
    def _non_negative(cls, weights: Dict[EventCategory, float]) -> Dict[EventCategory, float]:
        for category, weight in weights.items():
            if weight < 0:
                raise ValueError(f"Weight for {category.value} must be non-negative, got {weight}")
        return weights

    def weight_for(self, category: EventCategory) -> float:
        return self.weights.get(category, self.default_weight)


class CategoryScore(BaseModel):
    """Score of one category for one scoring invocation."""
    model_config = ConfigDict(frozen=True)

    category: EventCategory
    value: float = Field(..., ge=0)


# ==========================================================================
# SERIES MODELS
# ==========================================================================

class TimeBucket(BaseModel):
    """Half-open interval [bucket_start, bucket_end) with per-category counts."""
    model_config = ConfigDict(frozen=True)

    bucket_start: datetime
    bucket_end: datetime
    counts: Dict[EventCategory, NonNegativeInt] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.bucket_end <= self.bucket_start:
            raise ValueError("bucket_end must be after bucket_start")
        return self

    def contains(self, instant: datetime) -> bool:
        return self.bucket_start <= instant < self.bucket_end


class PanelToggleState(BaseModel):
    """Categories currently shown on one graph panel."""
    panel_id: str
    enabled_categories: Set[EventCategory] = Field(
        default_factory=lambda: set(EventCategory)
    )


# ==========================================================================
# RESULT MODELS
# ==========================================================================

class NormalizationWarnings(BaseModel):
    """Record-level problems absorbed while normalizing a batch."""
    malformed_records: int = Field(default=0, ge=0)
    unknown_category_records: int = Field(default=0, ge=0)
    messages: List[str] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.malformed_records + self.unknown_category_records


class NormalizationResult(BaseModel):
    """Unified, time-sorted event sequence plus the warning summary."""
    events: Tuple[EventRecord, ...] = ()
    warnings: NormalizationWarnings = Field(default_factory=NormalizationWarnings)
    excluded_merge_request_commits: int = Field(default=0, ge=0)


class ProjectActivityReport(BaseModel):
    """Everything the rendering layer needs for one project and date range."""
    project_id: str
    project_name: str = ""
    date_range: DateRange
    granularity: timedelta
    scores: List[CategoryScore] = Field(default_factory=list)
    buckets: List[TimeBucket] = Field(default_factory=list)
    event_counts: Dict[EventCategory, int] = Field(default_factory=dict)
    warnings: NormalizationWarnings = Field(default_factory=NormalizationWarnings)

    def score_for(self, category: EventCategory) -> Optional[float]:
        for score in self.scores:
            if score.category == category:
                return score.value
        return None
