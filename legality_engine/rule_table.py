# legality_engine/rule_table.py
"""
FDP ceiling table (Table B style) keyed by report time-of-day.

The table is a sorted tuple of half-open time-of-day bands that must tile the
whole day. Each band carries a segment-count step function for unaugmented
crews and an independent ceiling for augmented crews. Lookup of a time that
no band covers is a configuration error, never a fallback to some default.
"""

from typing import Any, NamedTuple, Optional, Sequence, Tuple
import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import ConfigurationError, InputError
from .timeutils import (
    MAX_CONFIG_HOURS,
    MINUTES_PER_DAY,
    format_time_of_day,
    local_time_of_day,
    parse_time_of_day,
    seconds_since_midnight,
)


class SegmentStep(BaseModel):
    """Ceiling for segment counts up to ``max_segments`` (None = no upper bound)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_segments: Optional[int] = Field(None, ge=1)
    ceiling_hours: float = Field(..., gt=0, le=MAX_CONFIG_HOURS, allow_inf_nan=False)


class FdpBand(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    start: str
    end: str
    segment_steps: Tuple[SegmentStep, ...]
    augmented_ceiling_hours: float = Field(..., gt=0, le=MAX_CONFIG_HOURS, allow_inf_nan=False)

    @model_validator(mode="before")
    @classmethod
    def _expand_shorthand(cls, data: Any) -> Any:
        # {"segment_threshold": 4, "ceiling_hours": 12, "ceiling_hours_above_threshold": 11.5}
        # and {"ceiling_hours": 9} are normalised into segment_steps.
        if not isinstance(data, dict) or "segment_steps" in data:
            return data
        data = dict(data)
        if "segment_threshold" in data:
            threshold = data.pop("segment_threshold")
            data["segment_steps"] = [
                {"max_segments": threshold, "ceiling_hours": data.pop("ceiling_hours", None)},
                {"max_segments": None, "ceiling_hours": data.pop("ceiling_hours_above_threshold", None)},
            ]
        elif "ceiling_hours" in data:
            data["segment_steps"] = [{"max_segments": None, "ceiling_hours": data.pop("ceiling_hours")}]
        return data

    @field_validator("start", "end")
    @classmethod
    def _normalise_time_of_day(cls, v: str) -> str:
        return format_time_of_day(parse_time_of_day(v))

    @model_validator(mode="after")
    def _check_band(self) -> "FdpBand":
        if self.start_minute >= self.end_minute:
            raise ValueError(f"band {self.label}: start must be before end (bands may not wrap midnight)")
        steps = self.segment_steps
        if not steps:
            raise ValueError(f"band {self.label}: at least one segment step is required")
        if steps[-1].max_segments is not None:
            raise ValueError(f"band {self.label}: last segment step must be open-ended (max_segments null)")
        previous_max = 0
        previous_ceiling = None
        for step in steps[:-1]:
            if step.max_segments is None:
                raise ValueError(f"band {self.label}: only the last segment step may be open-ended")
            if step.max_segments <= previous_max:
                raise ValueError(f"band {self.label}: segment thresholds must increase")
            previous_max = step.max_segments
        for step in steps:
            if previous_ceiling is not None and step.ceiling_hours > previous_ceiling:
                raise ValueError(f"band {self.label}: ceilings must not increase with segment count")
            previous_ceiling = step.ceiling_hours
        if self.augmented_ceiling_hours < steps[0].ceiling_hours:
            raise ValueError(f"band {self.label}: augmented ceiling is below the unaugmented ceiling")
        return self

    @property
    def start_minute(self) -> int:
        return parse_time_of_day(self.start)

    @property
    def end_minute(self) -> int:
        return parse_time_of_day(self.end)

    @property
    def label(self) -> str:
        return f"[{self.start},{self.end})"

    def contains(self, second_of_day: int) -> bool:
        return self.start_minute * 60 <= second_of_day < self.end_minute * 60

    def ceiling_for(self, segment_count: int, is_augmented: bool) -> datetime.timedelta:
        if is_augmented:
            return datetime.timedelta(hours=self.augmented_ceiling_hours)
        for step in self.segment_steps:
            if step.max_segments is None or segment_count <= step.max_segments:
                return datetime.timedelta(hours=step.ceiling_hours)
        # unreachable for a validated band: the last step is open-ended
        raise ConfigurationError(f"band {self.label} has no step for {segment_count} segments")


def check_band_coverage(bands: Sequence[FdpBand]) -> None:
    """
    Raise ValueError unless ``bands`` (sorted by start) tile [00:00, 24:00)
    exactly, without gaps or overlaps.
    """
    if not bands:
        raise ValueError("FDP table has no bands")
    cursor = 0
    for band in bands:
        if band.start_minute > cursor:
            raise ValueError(
                f"FDP table does not cover [{format_time_of_day(cursor)},{band.start})"
            )
        if band.start_minute < cursor:
            raise ValueError(f"FDP band {band.label} overlaps the previous band")
        cursor = band.end_minute
    if cursor != MINUTES_PER_DAY:
        raise ValueError(f"FDP table does not cover [{format_time_of_day(cursor)},24:00)")


class RuleTable(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    bands: Tuple[FdpBand, ...]

    @field_validator("bands")
    @classmethod
    def _sorted_full_day(cls, bands: Tuple[FdpBand, ...]) -> Tuple[FdpBand, ...]:
        ordered = tuple(sorted(bands, key=lambda b: b.start_minute))
        check_band_coverage(ordered)
        return ordered


class FdpCeiling(NamedTuple):
    band: FdpBand
    ceiling: datetime.timedelta
    augmented: bool


def find_band(table: RuleTable, time_of_day: datetime.time) -> FdpBand:
    second_of_day = seconds_since_midnight(time_of_day)
    for band in table.bands:
        if band.contains(second_of_day):
            return band
    raise ConfigurationError(
        f"no FDP band covers report time {time_of_day.isoformat()}",
        details={"bands": [b.label for b in table.bands]},
    )


def lookup_fdp_ceiling(
    table: RuleTable,
    report_time_of_day: datetime.time,
    segment_count: int,
    is_augmented: bool,
) -> FdpCeiling:
    """
    Maximum FDP for a duty reporting at ``report_time_of_day`` (local,
    acclimatised) with ``segment_count`` segments.
    """
    if segment_count < 1:
        raise InputError("segment_count must be at least 1", field="segment_count")
    band = find_band(table, report_time_of_day)
    return FdpCeiling(band=band, ceiling=band.ceiling_for(segment_count, is_augmented), augmented=is_augmented)


def report_time_of_day(report_instant: datetime.datetime, tz_name: str) -> datetime.time:
    return local_time_of_day(report_instant, tz_name)
