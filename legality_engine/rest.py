# legality_engine/rest.py
"""
Rest preceding a proposed duty.

Outcomes are pass / fail / provisional. Provisional means the rest is only
legal under the reduced-rest provision and the compensating rest after the
proposed duty is not known yet; callers re-validate once it is scheduled.
"""

from typing import Optional
import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import DutyPeriod, RestOutcome, RestStatus, ViolationKind
from .timeutils import MAX_CONFIG_HOURS, timedelta_to_hhmm


class ReducedRestRules(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = False
    floor_hours: float = Field(8.0, gt=0, le=MAX_CONFIG_HOURS, allow_inf_nan=False)
    compensatory_hours: float = Field(12.0, gt=0, le=MAX_CONFIG_HOURS, allow_inf_nan=False)


class RestRules(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    minimum_rest_hours: float = Field(..., gt=0, le=MAX_CONFIG_HOURS, allow_inf_nan=False)
    minimum_sleep_hours: float = Field(..., gt=0, le=MAX_CONFIG_HOURS, allow_inf_nan=False)
    travel_overhead_hours: float = Field(0.0, ge=0, le=MAX_CONFIG_HOURS, allow_inf_nan=False)
    disrupted_rest_hours: float = Field(..., gt=0, le=MAX_CONFIG_HOURS, allow_inf_nan=False)
    reduced_rest: ReducedRestRules = Field(default_factory=ReducedRestRules)

    @model_validator(mode="after")
    def _check_consistency(self) -> "RestRules":
        sleep_opportunity = self.minimum_rest_hours - self.travel_overhead_hours
        if sleep_opportunity < self.minimum_sleep_hours:
            raise ValueError(
                f"minimum rest {self.minimum_rest_hours}h less travel overhead "
                f"{self.travel_overhead_hours}h leaves {sleep_opportunity}h, "
                f"below the {self.minimum_sleep_hours}h sleep opportunity"
            )
        if self.disrupted_rest_hours < self.minimum_rest_hours:
            raise ValueError("disrupted_rest_hours must not be below minimum_rest_hours")
        reduced = self.reduced_rest
        if reduced.enabled:
            if reduced.floor_hours >= self.minimum_rest_hours:
                raise ValueError("reduced_rest.floor_hours must be below minimum_rest_hours")
            if reduced.compensatory_hours < self.minimum_rest_hours:
                raise ValueError("reduced_rest.compensatory_hours must not be below minimum_rest_hours")
        return self

    @property
    def minimum_rest(self) -> datetime.timedelta:
        return datetime.timedelta(hours=self.minimum_rest_hours)

    @property
    def disrupted_rest(self) -> datetime.timedelta:
        return datetime.timedelta(hours=self.disrupted_rest_hours)


def validate_rest(
    prior_duty: Optional[DutyPeriod],
    proposed_duty: DutyPeriod,
    rest_rules: RestRules,
    following_rest: Optional[datetime.timedelta] = None,
) -> RestOutcome:
    """
    Check the rest between ``prior_duty`` and ``proposed_duty``.

    ``following_rest`` is the rest after the proposed duty, when already
    scheduled; it settles a reduced-rest case either way.
    """
    if prior_duty is None:
        return RestOutcome(status=RestStatus.PASS, explanation="No prior duty; rest requirement does not apply")

    rest = proposed_duty.report_instant - prior_duty.release_instant
    minimum = rest_rules.minimum_rest

    if prior_duty.disrupted_rest:
        floor = max(minimum, rest_rules.disrupted_rest)
        if rest < floor:
            return RestOutcome(
                status=RestStatus.FAIL,
                kind=ViolationKind.REST_DISRUPTED,
                required=floor,
                observed=rest,
                explanation=(
                    f"Rest after {prior_duty.label()} was disrupted: required "
                    f"{timedelta_to_hhmm(floor)} (hh:mm), provided {timedelta_to_hhmm(rest)} (hh:mm)"
                ),
            )
        return RestOutcome(status=RestStatus.PASS, required=floor, observed=rest,
                           explanation="Disrupted rest meets the disrupted-rest minimum")

    if rest >= minimum:
        return RestOutcome(status=RestStatus.PASS, required=minimum, observed=rest,
                           explanation="Rest meets the minimum")

    reduced = rest_rules.reduced_rest
    if reduced.enabled and rest >= datetime.timedelta(hours=reduced.floor_hours):
        compensatory = datetime.timedelta(hours=reduced.compensatory_hours)
        if following_rest is None:
            return RestOutcome(
                status=RestStatus.PROVISIONAL,
                required=minimum,
                observed=rest,
                compensatory_required=compensatory,
                explanation=(
                    f"Reduced rest {timedelta_to_hhmm(rest)} (hh:mm) is legal only if the next rest is "
                    f"at least {timedelta_to_hhmm(compensatory)} (hh:mm); re-validate once it is scheduled"
                ),
            )
        if following_rest >= compensatory:
            return RestOutcome(
                status=RestStatus.PASS,
                required=minimum,
                observed=rest,
                compensatory_required=compensatory,
                explanation="Reduced rest compensated by the following rest",
            )
        return RestOutcome(
            status=RestStatus.FAIL,
            kind=ViolationKind.MIN_REST_NOT_MET,
            required=compensatory,
            observed=following_rest,
            compensatory_required=compensatory,
            explanation=(
                f"Reduced rest {timedelta_to_hhmm(rest)} (hh:mm) not compensated: following rest "
                f"{timedelta_to_hhmm(following_rest)} (hh:mm), required {timedelta_to_hhmm(compensatory)} (hh:mm)"
            ),
        )

    return RestOutcome(
        status=RestStatus.FAIL,
        kind=ViolationKind.MIN_REST_NOT_MET,
        required=minimum,
        observed=rest,
        explanation=(
            f"Insufficient rest: required {timedelta_to_hhmm(minimum)} (hh:mm), "
            f"provided {timedelta_to_hhmm(rest)} (hh:mm)"
        ),
    )
