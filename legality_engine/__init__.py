"""Crew duty/rest legality engine."""

from .errors import ConfigurationError, InputError, LegalityError
from .legality import evaluate, evaluate_batch, validate_inputs
from .models import DutyPeriod, RestStatus, Verdict, VerdictStatus, Violation, ViolationKind
from .rest import validate_rest
from .rule_config import (
    RuleConfiguration,
    compute_ruleset_provenance,
    load_configuration,
    load_default_configuration,
    load_rules_from_folder,
    parse_configuration,
)
from .rule_table import lookup_fdp_ceiling
from .windows import aggregate, trim_history

__all__ = [
    "ConfigurationError",
    "DutyPeriod",
    "InputError",
    "LegalityError",
    "RestStatus",
    "RuleConfiguration",
    "Verdict",
    "VerdictStatus",
    "Violation",
    "ViolationKind",
    "aggregate",
    "compute_ruleset_provenance",
    "evaluate",
    "evaluate_batch",
    "load_configuration",
    "load_default_configuration",
    "load_rules_from_folder",
    "lookup_fdp_ceiling",
    "parse_configuration",
    "trim_history",
    "validate_inputs",
    "validate_rest",
]
