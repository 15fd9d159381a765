# legality_engine/legality.py
"""
Legality evaluator and the /check endpoints.

evaluate() composes the FDP table lookup, the rolling-window aggregation and
the rest check into one Verdict. Every rule category is evaluated even after a
failure, so a verdict lists every reason a duty is illegal. Violations are
ordered FDP ceiling, cumulative windows (configuration order), rest.

Notes:
 - Internally calculations use timedeltas; traces carry HH:MM strings and
   float hours for display and machine use.
 - The report time-of-day is taken in the duty's acclimatized_tz when given,
   else in the regime's reference_timezone.
 - Verdicts contain no timestamps: identical inputs give identical verdicts.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple
import datetime
import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field

from .errors import InputError, UnknownRegimeError
from .models import (
    DutyPeriod,
    RestOutcome,
    RestStatus,
    Verdict,
    VerdictStatus,
    Violation,
    ViolationKind,
)
from .rest import validate_rest
from .rule_config import RuleConfiguration, compute_ruleset_provenance
from .rule_table import lookup_fdp_ceiling, report_time_of_day
from .timeutils import get_zone, timedelta_to_hhmm, timedelta_to_hours
from .windows import WindowQuantity, aggregate, exceeded_windows

log = logging.getLogger("legality")
router = APIRouter()

_QUANTITY_LABEL = {
    WindowQuantity.FLIGHT_TIME: "Flight time",
    WindowQuantity.DUTY_TIME: "Duty time",
}


# ---------- Input validation ----------
def validate_duty_period(duty: DutyPeriod, field: str = "proposed") -> None:
    if duty.release_instant <= duty.report_instant:
        raise InputError(
            f"{field}: release_instant must be after report_instant",
            field=f"{field}.release_instant",
        )
    if duty.segment_count < 1:
        raise InputError(f"{field}: segment_count must be at least 1", field=f"{field}.segment_count")
    if duty.flight_time_minutes < 0:
        raise InputError(f"{field}: flight_time_minutes must not be negative", field=f"{field}.flight_time_minutes")
    if duty.flight_time > duty.duration:
        raise InputError(
            f"{field}: flight time {timedelta_to_hhmm(duty.flight_time)} exceeds duty duration "
            f"{timedelta_to_hhmm(duty.duration)}",
            field=f"{field}.flight_time_minutes",
        )
    if duty.acclimatized_tz is not None:
        try:
            get_zone(duty.acclimatized_tz)
        except ValueError as e:
            raise InputError(str(e), field=f"{field}.acclimatized_tz") from e


def validate_inputs(
    proposed: DutyPeriod,
    history: Sequence[DutyPeriod],
    next_duty: Optional[DutyPeriod] = None,
) -> Tuple[DutyPeriod, ...]:
    """
    Check every input invariant and return the history as an immutable
    snapshot. Raises InputError on the first broken invariant.
    """
    snapshot = tuple(history)
    validate_duty_period(proposed, "proposed")
    for i, duty in enumerate(snapshot):
        validate_duty_period(duty, f"history[{i}]")
        if i and snapshot[i - 1].release_instant > duty.report_instant:
            raise InputError(
                f"history[{i}] starts before history[{i - 1}] is released; history must be "
                "chronological and non-overlapping",
                field=f"history[{i}].report_instant",
            )
    if snapshot and proposed.report_instant < snapshot[-1].release_instant:
        raise InputError(
            "proposed duty starts before the last history entry is released",
            field="proposed.report_instant",
        )
    if next_duty is not None:
        validate_duty_period(next_duty, "next_duty")
        if next_duty.report_instant < proposed.release_instant:
            raise InputError(
                "next_duty starts before the proposed duty is released",
                field="next_duty.report_instant",
            )
    return snapshot


# ---------- Rule categories ----------
def check_fdp_ceiling(proposed: DutyPeriod, config: RuleConfiguration) -> Tuple[Optional[Violation], Dict[str, Any]]:
    tz_name = proposed.acclimatized_tz or config.reference_timezone
    local_time = report_time_of_day(proposed.report_instant, tz_name)
    lookup = lookup_fdp_ceiling(
        config.fdp_table, local_time, proposed.segment_count, proposed.is_augmented_crew
    )
    duration = proposed.duration
    exceeded = duration > lookup.ceiling
    trace = {
        "report_time_local": local_time.isoformat(),
        "timezone": tz_name,
        "band": lookup.band.label,
        "segment_count": proposed.segment_count,
        "augmented": lookup.augmented,
        "ceiling": timedelta_to_hhmm(lookup.ceiling),
        "ceiling_hours": timedelta_to_hours(lookup.ceiling),
        "duration": timedelta_to_hhmm(duration),
        "duration_hours": timedelta_to_hours(duration),
        "exceeded": exceeded,
    }
    if not exceeded:
        return None, trace

    crew = "augmented crew" if lookup.augmented else f"{proposed.segment_count} segment(s)"
    msg = (
        f"FDP exceeded: allowed {timedelta_to_hhmm(lookup.ceiling)} for report at "
        f"{local_time.strftime('%H:%M')} {tz_name} (band {lookup.band.label}, {crew}), "
        f"actual {timedelta_to_hhmm(duration)}"
    )
    return Violation.build(ViolationKind.FDP_CEILING_EXCEEDED, lookup.ceiling, duration, msg), trace


def check_windows(
    history: Sequence[DutyPeriod],
    proposed: DutyPeriod,
    config: RuleConfiguration,
) -> Tuple[List[Violation], Dict[str, Any]]:
    totals = aggregate(history, proposed, config.windows)
    violations: List[Violation] = []
    for total in exceeded_windows(totals):
        definition = config.window(total.name)
        msg = (
            f"{_QUANTITY_LABEL[total.quantity]} {timedelta_to_hhmm(total.observed)} in window "
            f"'{total.name}' ({definition.duration_hours:g} consecutive hours ending "
            f"{total.window_end.isoformat()}) exceeds limit {timedelta_to_hhmm(total.ceiling)}"
        )
        violations.append(
            Violation.build(
                ViolationKind.CUMULATIVE_WINDOW_EXCEEDED, total.ceiling, total.observed, msg, window=total.name
            )
        )
    trace = {name: total.to_trace() for name, total in totals.items()}
    return violations, trace


def check_rest(
    history: Sequence[DutyPeriod],
    proposed: DutyPeriod,
    config: RuleConfiguration,
    next_duty: Optional[DutyPeriod] = None,
) -> Tuple[RestOutcome, Optional[Violation]]:
    prior = history[-1] if history else None
    following_rest = None
    if next_duty is not None:
        following_rest = next_duty.report_instant - proposed.release_instant
    outcome = validate_rest(prior, proposed, config.rest, following_rest=following_rest)
    if outcome.status is not RestStatus.FAIL:
        return outcome, None
    violation = Violation.build(outcome.kind, outcome.required, outcome.observed, outcome.explanation)
    return outcome, violation


# ---------- Evaluator ----------
def evaluate(
    proposed: DutyPeriod,
    history: Sequence[DutyPeriod],
    config: RuleConfiguration,
    *,
    next_duty: Optional[DutyPeriod] = None,
) -> Verdict:
    """
    Evaluate ``proposed`` against ``history`` under ``config``.

    ``next_duty`` is the duty scheduled after the proposed one, when known; it
    settles a reduced-rest verdict that would otherwise stay pending.
    Raises InputError for malformed inputs; limit violations are returned in
    the Verdict.
    """
    snapshot = validate_inputs(proposed, history, next_duty)

    violations: List[Violation] = []

    fdp_violation, fdp_trace = check_fdp_ceiling(proposed, config)
    if fdp_violation:
        violations.append(fdp_violation)

    window_violations, window_trace = check_windows(snapshot, proposed, config)
    violations.extend(window_violations)

    rest_outcome, rest_violation = check_rest(snapshot, proposed, config, next_duty)
    if rest_violation:
        violations.append(rest_violation)

    provisional = rest_outcome if rest_outcome.status is RestStatus.PROVISIONAL else None
    if violations:
        status = VerdictStatus.ILLEGAL
    elif provisional is not None:
        status = VerdictStatus.LEGAL_PENDING_FUTURE_REST
    else:
        status = VerdictStatus.LEGAL

    log.debug("evaluated %s under %s: %s %s", proposed.label(), config.id, status.value,
              [v.kind for v in violations])

    return Verdict(
        status=status,
        is_legal=status is VerdictStatus.LEGAL,
        violations=tuple(violations),
        provisional=provisional,
        details={
            "fdp": fdp_trace,
            "windows": window_trace,
            "rest": rest_outcome.to_trace(),
            "history_entries": len(snapshot),
            "provenance": compute_ruleset_provenance(config),
        },
    )


class BatchItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    proposed: DutyPeriod
    history: List[DutyPeriod] = Field(default_factory=list)
    next_duty: Optional[DutyPeriod] = None


class BatchResult(BaseModel):
    index: int
    verdict: Optional[Verdict] = None
    error: Optional[Dict[str, Any]] = None


def evaluate_batch(items: Sequence[BatchItem], config: RuleConfiguration) -> List[BatchResult]:
    """
    Evaluate independent (proposed, history) items in input order. An input
    error is reported against its own item; the rest of the batch still runs.
    """
    results: List[BatchResult] = []
    for index, item in enumerate(items):
        try:
            verdict = evaluate(item.proposed, item.history, config, next_duty=item.next_duty)
        except InputError as e:
            log.info("batch item %d rejected: %s", index, e.message)
            results.append(BatchResult(index=index, error=e.to_dict()))
            continue
        results.append(BatchResult(index=index, verdict=verdict))
    return results


# ---------- Request models ----------
class CheckRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    regime: Optional[str] = None
    proposed: DutyPeriod
    history: List[DutyPeriod] = Field(default_factory=list)
    next_duty: Optional[DutyPeriod] = None


class BatchCheckRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    regime: Optional[str] = None
    items: List[BatchItem]


def resolve_regime(request: Request, regime: Optional[str]) -> RuleConfiguration:
    configurations: Dict[str, RuleConfiguration] = getattr(request.app.state, "configurations", {}) or {}
    regime_id = regime or getattr(request.app.state, "default_regime", None)
    if not regime_id or regime_id not in configurations:
        raise UnknownRegimeError(regime_id or "<default>")
    return configurations[regime_id]


# ---------- /check endpoints ----------
@router.post("/check", response_model=Verdict)
def check_legality(payload: CheckRequest, request: Request):
    config = resolve_regime(request, payload.regime)
    return evaluate(payload.proposed, payload.history, config, next_duty=payload.next_duty)


@router.post("/check/batch", response_model=List[BatchResult])
def check_legality_batch(payload: BatchCheckRequest, request: Request):
    config = resolve_regime(request, payload.regime)
    results = evaluate_batch(payload.items, config)
    log.info(
        "Batch of %d evaluated under %s: %d rejected",
        len(results), config.id, sum(1 for r in results if r.error),
    )
    return results
