# tests/conftest.py
# Ensure project root is on sys.path so `import legality_engine` works reliably in pytest.
import copy
import sys
from pathlib import Path

import pytest

# Resolve project root as the parent of the tests folder
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    # put project root at front so local packages take precedence
    sys.path.insert(0, str(ROOT))

from legality_engine.models import DutyPeriod  # noqa: E402
from legality_engine.rule_config import load_default_configuration, parse_configuration  # noqa: E402


# Small regime: three bands, two windows, standard rest.
SIMPLE_DOC = {
    "id": "simple",
    "title": "Simple test regime",
    "version": "t1",
    "reference_timezone": "UTC",
    "fdp_table": {
        "bands": [
            {"start": "00:00", "end": "05:00", "ceiling_hours": 9, "augmented_ceiling_hours": 13},
            {"start": "05:00", "end": "06:00", "segment_threshold": 4, "ceiling_hours": 12,
             "ceiling_hours_above_threshold": 11.5, "augmented_ceiling_hours": 14},
            {"start": "06:00", "end": "24:00", "augmented_ceiling_hours": 16,
             "segment_steps": [{"max_segments": 2, "ceiling_hours": 14},
                               {"max_segments": None, "ceiling_hours": 13}]},
        ]
    },
    "windows": [
        {"name": "7day", "duration_hours": 168, "quantity": "duty_time", "ceiling_hours": 60},
        {"name": "28day", "duration_hours": 672, "quantity": "flight_time", "ceiling_hours": 100},
    ],
    "rest": {
        "minimum_rest_hours": 10,
        "minimum_sleep_hours": 8,
        "travel_overhead_hours": 2,
        "disrupted_rest_hours": 12,
        "reduced_rest": {"enabled": False, "floor_hours": 8, "compensatory_hours": 12},
    },
}


@pytest.fixture
def simple_doc():
    return copy.deepcopy(SIMPLE_DOC)


@pytest.fixture
def simple_config(simple_doc):
    return parse_configuration(simple_doc)


@pytest.fixture
def part117():
    return load_default_configuration()


@pytest.fixture
def reduced_rest_config(part117):
    doc = part117.model_dump(mode="json")
    doc["id"] = "faa_part117_reduced"
    doc["rest"]["reduced_rest"] = {"enabled": True, "floor_hours": 8, "compensatory_hours": 12}
    return parse_configuration(doc)


@pytest.fixture
def make_duty():
    def _make(report, release, segments=2, flight_minutes=0, **extra):
        return DutyPeriod(
            report_instant=report,
            release_instant=release,
            segment_count=segments,
            flight_time_minutes=flight_minutes,
            **extra,
        )
    return _make
