import json
import shutil

import pytest
from fastapi.testclient import TestClient

from legality_engine.main import create_app
from legality_engine.rule_config import RULES_DIR
from legality_engine.settings import Settings

SCENARIO_A = {
    "report_instant": "2026-04-01T05:30:00Z",
    "release_instant": "2026-04-01T16:45:00Z",
    "segment_count": 2,
    "flight_time_minutes": 600,
}
PRIOR_SHORT_REST = {
    "report_instant": "2026-03-31T18:00:00Z",
    "release_instant": "2026-04-01T02:00:00Z",
    "segment_count": 1,
    "flight_time_minutes": 300,
}


@pytest.fixture
def rules_dir(tmp_path):
    shutil.copy(RULES_DIR / "part117.json", tmp_path / "part117.json")
    return tmp_path


@pytest.fixture
def client(rules_dir):
    settings = Settings(rules_dir=rules_dir, default_regime="faa_part117", log_level="INFO")
    with TestClient(create_app(settings)) as c:
        yield c


def test_root(client):
    resp = client.get("/")
    assert resp.status_code == 200
    body = resp.json()
    assert body["regimes_loaded"] == 1
    assert body["default_regime"] == "faa_part117"


def test_get_rules(client):
    resp = client.get("/rules")
    assert resp.status_code == 200
    data = resp.json()
    assert [r["id"] for r in data] == ["faa_part117"]
    assert data[0]["windows"] == ["7day", "28day", "28day_duty", "365day"]


def test_get_rule_detail(client):
    resp = client.get("/rules/faa_part117")
    assert resp.status_code == 200
    body = resp.json()
    assert body["rest"]["minimum_rest_hours"] == 10
    assert len(body["fdp_table"]["bands"]) == 11

    assert client.get("/rules/does_not_exist").status_code == 404


def test_reload_picks_up_new_documents(client, rules_dir, simple_doc):
    (rules_dir / "simple.json").write_text(json.dumps(simple_doc), encoding="utf-8")
    (rules_dir / "broken.json").write_text("{", encoding="utf-8")
    resp = client.post("/rules/reload")
    assert resp.status_code == 200
    body = resp.json()
    assert body["loaded"] == 2
    assert [r["file"] for r in body["invalid"]] == ["broken.json"]
    assert client.get("/rules/simple").status_code == 200


def test_check_legal(client):
    resp = client.post("/check", json={"proposed": SCENARIO_A})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "legal"
    assert body["is_legal"] is True
    assert body["violations"] == []
    assert body["details"]["provenance"]["ruleset_id"] == "faa_part117"


def test_check_illegal_rest(client):
    resp = client.post("/check", json={"regime": "faa_part117", "proposed": SCENARIO_A,
                                       "history": [PRIOR_SHORT_REST]})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "illegal"
    assert [v["kind"] for v in body["violations"]] == ["MIN_REST_NOT_MET"]
    assert body["violations"][0]["observed"] == "03:30"


def test_check_unknown_regime(client):
    resp = client.post("/check", json={"regime": "easa_ftl", "proposed": SCENARIO_A})
    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"


def test_check_input_error(client):
    bad = dict(SCENARIO_A, release_instant="2026-04-01T05:00:00Z")
    resp = client.post("/check", json={"proposed": bad})
    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "INPUT_ERROR"
    assert body["details"]["field"] == "proposed.release_instant"


def test_check_naive_timestamp_rejected(client):
    bad = dict(SCENARIO_A, report_instant="2026-04-01T05:30:00")
    resp = client.post("/check", json={"proposed": bad})
    assert resp.status_code == 422


def test_check_batch(client):
    bad = dict(SCENARIO_A, flight_time_minutes=9999)
    resp = client.post("/check/batch", json={"items": [
        {"proposed": SCENARIO_A},
        {"proposed": SCENARIO_A, "history": [PRIOR_SHORT_REST]},
        {"proposed": bad},
    ]})
    assert resp.status_code == 200
    results = resp.json()
    assert [r["index"] for r in results] == [0, 1, 2]
    assert results[0]["verdict"]["status"] == "legal"
    assert results[1]["verdict"]["status"] == "illegal"
    assert results[2]["verdict"] is None
    assert results[2]["error"]["code"] == "INPUT_ERROR"


def test_check_misspelled_duty_field_rejected(client):
    prior = dict(PRIOR_SHORT_REST, disruptedRest=True)
    resp = client.post("/check", json={"proposed": SCENARIO_A, "history": [prior]})
    assert resp.status_code == 422
    assert "disruptedRest" in resp.text


def test_check_unknown_request_field_rejected(client):
    resp = client.post("/check", json={"regim": "faa_part117", "proposed": SCENARIO_A})
    assert resp.status_code == 422
