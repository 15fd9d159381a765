# legality_engine/rule_config.py
"""
Rule configuration documents: schema, loading and provenance.

Provides:
 - RuleConfiguration: one validated, immutable regulatory regime
 - parse_configuration / load_configuration: build a regime, raising ConfigurationError
 - load_rules_from_folder: every regime in a folder plus an invalid-file report
 - compute_ruleset_provenance: deterministic id/version/hash for audit traces

A regime that fails validation is never returned, so nothing can be evaluated
against an incomplete rule set.
"""
from pathlib import Path
import hashlib
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .rest import RestRules
from .rule_table import RuleTable
from .timeutils import get_zone
from .windows import WindowDefinition

log = logging.getLogger("rule_loader")

RULES_DIR = Path(__file__).parent / "rules"
DEFAULT_REGIME_FILE = "part117.json"


# ---------------------------------------------------------
# RuleConfiguration Model
# ---------------------------------------------------------
class RuleConfiguration(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    title: Optional[str] = None
    version: Optional[str] = None
    enabled: bool = True
    reference_timezone: str = "UTC"
    fdp_table: RuleTable
    windows: Tuple[WindowDefinition, ...] = Field(..., min_length=1)
    rest: RestRules
    notes: Optional[Dict[str, Any]] = None
    source_file: Optional[str] = None

    @field_validator("id")
    @classmethod
    def _id_not_empty(cls, v: str) -> str:
        if not v or v.strip() == "":
            raise ValueError("id must be non-empty string")
        return v.strip()

    @field_validator("reference_timezone")
    @classmethod
    def _known_zone(cls, v: str) -> str:
        get_zone(v)
        return v

    @field_validator("windows")
    @classmethod
    def _unique_window_names(cls, windows: Tuple[WindowDefinition, ...]) -> Tuple[WindowDefinition, ...]:
        seen = set()
        for w in windows:
            if w.name in seen:
                raise ValueError(f"duplicate window name: {w.name}")
            seen.add(w.name)
        return windows

    def window(self, name: str) -> WindowDefinition:
        for w in self.windows:
            if w.name == name:
                return w
        raise KeyError(name)


def _format_validation_error(e: ValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": ".".join(str(p) for p in err.get("loc", ())), "msg": err.get("msg")}
        for err in e.errors()
    ]


def parse_configuration(raw: Any, source: Optional[str] = None) -> RuleConfiguration:
    """Validate a configuration document; raises ConfigurationError."""
    if not isinstance(raw, dict):
        raise ConfigurationError("configuration document must be a JSON object", source=source)
    try:
        config = RuleConfiguration.model_validate(raw)
    except ValidationError as e:
        errors = _format_validation_error(e)
        first = errors[0]["msg"] if errors else str(e)
        raise ConfigurationError(first, source=source, details=errors) from e
    if source and config.source_file is None:
        config = config.model_copy(update={"source_file": source})
    return config


# ---------------------------------------------------------
# Helper: Extract configuration objects from mixed JSON formats
# ---------------------------------------------------------
def iter_configuration_objects(raw: Any) -> List[Any]:
    if raw is None:
        return []

    # List of documents
    if isinstance(raw, list):
        return raw

    if isinstance(raw, dict):
        # wrapper { "configurations": [ ... ] }
        if "configurations" in raw and isinstance(raw["configurations"], list):
            return raw["configurations"]
        # Single document
        return [raw]

    return [raw]


def load_configuration(path: Path) -> RuleConfiguration:
    """Load a single-document rules file."""
    path = Path(path)
    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"read_error: {e}", source=path.name) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"json_parse_error: {e}", source=path.name) from e

    docs = iter_configuration_objects(parsed)
    if len(docs) != 1:
        raise ConfigurationError(f"expected one configuration, found {len(docs)}", source=path.name)
    return parse_configuration(docs[0], source=path.name)


def load_default_configuration() -> RuleConfiguration:
    return load_configuration(RULES_DIR / DEFAULT_REGIME_FILE)


# ---------------------------------------------------------
# Main Loader
# ---------------------------------------------------------
def load_rules_from_folder(folder: Path) -> Tuple[Dict[str, RuleConfiguration], List[Dict[str, Any]]]:
    """
    Loads all *.json rule documents from folder.
    Returns:
        (VALID, INVALID_REPORTS) where VALID maps regime id -> RuleConfiguration
    """
    valid: Dict[str, RuleConfiguration] = {}
    invalid: List[Dict[str, Any]] = []

    folder = Path(folder)

    if not folder.exists() or not folder.is_dir():
        log.warning(f"Rules folder does not exist: {folder}")
        return valid, invalid

    # Load *.json files deterministically
    for f in sorted(folder.glob("*.json")):
        fname = f.name
        try:
            text = f.read_text(encoding="utf-8")
        except OSError as e:
            invalid.append({"file": fname, "error": f"read_error: {e}"})
            log.error(f"Failed to read {fname}: {e}")
            continue

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            invalid.append({"file": fname, "error": f"json_parse_error: {e}"})
            log.error(f"JSON parse error in {fname}: {e}")
            continue

        for idx, raw in enumerate(iter_configuration_objects(parsed)):
            try:
                config = parse_configuration(raw, source=fname)
            except ConfigurationError as e:
                invalid.append({"file": fname, "index": idx, "error": e.message, "details": e.details})
                log.error(f"Invalid configuration #{idx} in {fname}: {e.message}")
                continue

            if not config.enabled:
                log.info(f"Skipping disabled configuration {config.id} from {fname}")
                continue

            if config.id in valid:
                invalid.append({
                    "file": fname,
                    "index": idx,
                    "error": f"duplicate configuration id: {config.id}",
                    "existing_from": valid[config.id].source_file,
                })
                log.error(f"Duplicate configuration id {config.id} in {fname}")
                continue

            valid[config.id] = config
            log.info(f"Loaded configuration {config.id} ({config.version}) from {fname}")

    log.info(f"Rule loader summary: {len(valid)} valid configurations, {len(invalid)} invalid")

    return valid, invalid


# ---------- ruleset provenance ----------
def compute_ruleset_provenance(config: RuleConfiguration) -> Dict[str, Any]:
    """
    Deterministic provenance for a regime: id, version, source file and the
    SHA-256 of its canonical JSON form. Contains no timestamps, so identical
    inputs always produce identical verdicts.
    """
    serial = json.dumps(config.model_dump(mode="json", exclude={"source_file"}), sort_keys=True)
    return {
        "ruleset_id": config.id,
        "ruleset_version": config.version,
        "ruleset_hash_sha256": hashlib.sha256(serial.encode("utf-8")).hexdigest(),
        "source_file": config.source_file,
    }


__all__ = [
    "RuleConfiguration",
    "parse_configuration",
    "load_configuration",
    "load_default_configuration",
    "load_rules_from_folder",
    "compute_ruleset_provenance",
    "RULES_DIR",
]
