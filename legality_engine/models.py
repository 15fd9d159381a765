# legality_engine/models.py
"""
Duty, violation and verdict models.

Every model is frozen: a recorded duty period never changes, and a verdict is a
value the caller can cache, compare or serialise as-is.
"""

from enum import Enum
from typing import Any, Dict, Optional, Tuple
import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .timeutils import parse_iso, timedelta_to_hhmm, timedelta_to_hours


class DutyPeriod(BaseModel):
    """
    One flight duty period, from report to release.

    Range checks (release after report, flight time within the duty, at least
    one segment) are made by the evaluator so they surface as InputError rather
    than as a model construction failure.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    report_instant: datetime.datetime
    release_instant: datetime.datetime
    segment_count: int
    is_augmented_crew: bool = False
    flight_time_minutes: int
    layover_location: Optional[str] = None
    disrupted_rest: bool = Field(
        False, description="Rest following this duty was disrupted (e.g. by positioning)"
    )
    acclimatized_tz: Optional[str] = Field(
        None, description="IANA zone for the report time-of-day; defaults to the regime's zone"
    )
    duty_id: Optional[str] = None

    @field_validator("report_instant", "release_instant", mode="before")
    @classmethod
    def _aware_instant(cls, v: Any) -> datetime.datetime:
        return parse_iso(v)

    @property
    def duration(self) -> datetime.timedelta:
        return self.release_instant - self.report_instant

    @property
    def flight_time(self) -> datetime.timedelta:
        return datetime.timedelta(minutes=self.flight_time_minutes)

    def label(self) -> str:
        if self.duty_id:
            return self.duty_id
        return self.report_instant.isoformat()


class ViolationKind(str, Enum):
    FDP_CEILING_EXCEEDED = "FDP_CEILING_EXCEEDED"
    CUMULATIVE_WINDOW_EXCEEDED = "CUMULATIVE_WINDOW_EXCEEDED"
    MIN_REST_NOT_MET = "MIN_REST_NOT_MET"
    REST_DISRUPTED = "REST_DISRUPTED"


class VerdictStatus(str, Enum):
    LEGAL = "legal"
    LEGAL_PENDING_FUTURE_REST = "legal_pending_future_rest"
    ILLEGAL = "illegal"


class RestStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    PROVISIONAL = "provisional"


class Violation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str
    category: ViolationKind
    limit_value: float = Field(..., description="Limit in hours")
    observed_value: float = Field(..., description="Observed value in hours")
    limit: Optional[str] = Field(None, description="Limit as HH:MM")
    observed: Optional[str] = Field(None, description="Observed value as HH:MM")
    explanation: str
    window: Optional[str] = None

    @classmethod
    def build(
        cls,
        category: ViolationKind,
        limit: datetime.timedelta,
        observed: datetime.timedelta,
        explanation: str,
        window: Optional[str] = None,
    ) -> "Violation":
        kind = category.value if window is None else f"{category.value}:{window}"
        return cls(
            kind=kind,
            category=category,
            limit_value=timedelta_to_hours(limit),
            observed_value=timedelta_to_hours(observed),
            limit=timedelta_to_hhmm(limit),
            observed=timedelta_to_hhmm(observed),
            explanation=explanation,
            window=window,
        )


class RestOutcome(BaseModel):
    """Result of checking the rest that precedes a proposed duty."""

    model_config = ConfigDict(frozen=True)

    status: RestStatus
    kind: Optional[ViolationKind] = None
    required: Optional[datetime.timedelta] = None
    observed: Optional[datetime.timedelta] = None
    compensatory_required: Optional[datetime.timedelta] = None
    explanation: str = ""

    def to_trace(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "kind": self.kind.value if self.kind else None,
            "required": timedelta_to_hhmm(self.required),
            "observed": timedelta_to_hhmm(self.observed),
            "compensatory_required": timedelta_to_hhmm(self.compensatory_required),
            "explanation": self.explanation,
        }


class Verdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: VerdictStatus
    is_legal: bool
    violations: Tuple[Violation, ...] = ()
    provisional: Optional[RestOutcome] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    @property
    def kinds(self) -> Tuple[str, ...]:
        return tuple(v.kind for v in self.violations)
