# legality_engine/windows.py
"""
Cumulative flight/duty time over rolling windows.

A window of duration ``d`` ending at the reference instant ``r`` covers
[r - d, r]. Attribution is whole-duty: a duty period that touches the window
at all contributes its full quantity, the way "100 hours in any 672
consecutive hours" limits are applied. The proposed duty is always counted.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple
import datetime
import logging

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import DutyPeriod
from .timeutils import MAX_CONFIG_HOURS, timedelta_to_hhmm, timedelta_to_hours

log = logging.getLogger("legality")


class WindowQuantity(str, Enum):
    FLIGHT_TIME = "flight_time"
    DUTY_TIME = "duty_time"


class WindowDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    duration_hours: float = Field(..., le=MAX_CONFIG_HOURS, allow_inf_nan=False)
    quantity: WindowQuantity
    ceiling_hours: float = Field(..., ge=0, le=MAX_CONFIG_HOURS, allow_inf_nan=False)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("window name must be non-empty")
        return v.strip()

    @field_validator("duration_hours")
    @classmethod
    def _positive_duration(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("window duration must be positive")
        return v

    @property
    def duration(self) -> datetime.timedelta:
        return datetime.timedelta(hours=self.duration_hours)

    @property
    def ceiling(self) -> datetime.timedelta:
        return datetime.timedelta(hours=self.ceiling_hours)


class WindowTotal(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    quantity: WindowQuantity
    window_start: datetime.datetime
    window_end: datetime.datetime
    observed: datetime.timedelta
    ceiling: datetime.timedelta
    contributing_duties: int

    @property
    def exceeded(self) -> bool:
        # ceilings are inclusive maxima
        return self.observed > self.ceiling

    @property
    def remaining(self) -> datetime.timedelta:
        return self.ceiling - self.observed

    @property
    def percent_used(self) -> int:
        if not self.ceiling:
            return 0
        return int(round(self.observed / self.ceiling * 100))

    def to_trace(self) -> Dict[str, Any]:
        return {
            "quantity": self.quantity.value,
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "total": timedelta_to_hhmm(self.observed),
            "total_hours": timedelta_to_hours(self.observed),
            "max": timedelta_to_hhmm(self.ceiling),
            "remaining": timedelta_to_hhmm(self.remaining),
            "percent_used": self.percent_used,
            "contributing_duties": self.contributing_duties,
            "exceeded": self.exceeded,
        }


def quantity_of(duty: DutyPeriod, quantity: WindowQuantity) -> datetime.timedelta:
    if quantity is WindowQuantity.FLIGHT_TIME:
        return duty.flight_time
    return duty.duration


def contributes(duty: DutyPeriod, window_start: datetime.datetime, window_end: datetime.datetime) -> bool:
    """True if any part of ``duty`` lies inside [window_start, window_end]."""
    return duty.release_instant > window_start and duty.report_instant <= window_end


def _longest(window_defs: Sequence[WindowDefinition]) -> datetime.timedelta:
    return max(w.duration for w in window_defs)


def trim_history(
    history: Sequence[DutyPeriod],
    window_defs: Sequence[WindowDefinition],
    reference_instant: datetime.datetime,
) -> Tuple[DutyPeriod, ...]:
    """
    Drop history entries that end before the longest window can reach them.
    Callers holding years of history should trim before evaluating.
    """
    if not window_defs:
        return tuple()
    cutoff = reference_instant - _longest(window_defs)
    return tuple(d for d in history if d.release_instant > cutoff)


def aggregate(
    history: Sequence[DutyPeriod],
    proposed_duty: DutyPeriod,
    window_defs: Sequence[WindowDefinition],
    reference_instant: Optional[datetime.datetime] = None,
) -> Dict[str, WindowTotal]:
    """
    Observed totals per window name, in the order the windows are configured.
    ``history`` must be chronological and non-overlapping.
    """
    reference = reference_instant or proposed_duty.release_instant
    if not window_defs:
        return {}

    earliest_start = reference - _longest(window_defs)
    # newest first; releases are ordered, so stop at the first one out of reach
    relevant: List[DutyPeriod] = []
    for duty in reversed(history):
        if duty.release_instant <= earliest_start:
            break
        if duty.report_instant <= reference:
            relevant.append(duty)

    totals: Dict[str, WindowTotal] = {}
    for w in window_defs:
        start = reference - w.duration
        observed = quantity_of(proposed_duty, w.quantity)
        count = 1
        for duty in relevant:
            if contributes(duty, start, reference):
                observed += quantity_of(duty, w.quantity)
                count += 1
        totals[w.name] = WindowTotal(
            name=w.name,
            quantity=w.quantity,
            window_start=start,
            window_end=reference,
            observed=observed,
            ceiling=w.ceiling,
            contributing_duties=count,
        )
        log.debug("window %s: %s of %s over %d duties", w.name, observed, w.ceiling, count)
    return totals


def exceeded_windows(totals: Dict[str, WindowTotal]) -> List[WindowTotal]:
    return [t for t in totals.values() if t.exceeded]
