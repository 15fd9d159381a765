# tests/test_rule_loader.py
import json

import pytest

from legality_engine.errors import ConfigurationError
from legality_engine.rule_config import (
    RULES_DIR,
    compute_ruleset_provenance,
    iter_configuration_objects,
    load_configuration,
    load_rules_from_folder,
    parse_configuration,
)


def write(folder, name, payload):
    p = folder / name
    p.write_text(payload if isinstance(payload, str) else json.dumps(payload), encoding="utf-8")
    return p


def test_packaged_rules_load():
    valid, invalid = load_rules_from_folder(RULES_DIR)
    assert "faa_part117" in valid
    assert invalid == []
    config = valid["faa_part117"]
    assert config.source_file == "part117.json"
    assert [w.name for w in config.windows] == ["7day", "28day", "28day_duty", "365day"]
    assert config.rest.minimum_rest_hours == 10


def test_folder_with_mixed_documents(tmp_path, simple_doc):
    write(tmp_path, "a_simple.json", simple_doc)
    write(tmp_path, "b_broken.json", '{"id": "broken", ')
    gap = json.loads(json.dumps(simple_doc))
    gap["id"] = "gappy"
    del gap["fdp_table"]["bands"][0]
    write(tmp_path, "c_gap.json", gap)
    write(tmp_path, "d_duplicate.json", simple_doc)
    disabled = dict(simple_doc, id="off", enabled=False)
    write(tmp_path, "e_disabled.json", disabled)

    valid, invalid = load_rules_from_folder(tmp_path)

    assert list(valid) == ["simple"]
    by_file = {r["file"]: r for r in invalid}
    assert set(by_file) == {"b_broken.json", "c_gap.json", "d_duplicate.json"}
    assert by_file["b_broken.json"]["error"].startswith("json_parse_error")
    assert "does not cover" in by_file["c_gap.json"]["error"]
    assert by_file["d_duplicate.json"]["existing_from"] == "a_simple.json"


def test_wrapper_document_holds_several_regimes(tmp_path, simple_doc):
    other = dict(simple_doc, id="simple_b")
    write(tmp_path, "both.json", {"configurations": [simple_doc, other]})
    valid, invalid = load_rules_from_folder(tmp_path)
    assert sorted(valid) == ["simple", "simple_b"]
    assert invalid == []


def test_missing_folder_loads_nothing(tmp_path):
    valid, invalid = load_rules_from_folder(tmp_path / "nope")
    assert valid == {} and invalid == []


def test_iter_configuration_objects_shapes():
    assert iter_configuration_objects(None) == []
    assert iter_configuration_objects([{"id": "a"}]) == [{"id": "a"}]
    assert iter_configuration_objects({"configurations": [{"id": "a"}]}) == [{"id": "a"}]
    assert iter_configuration_objects({"id": "a"}) == [{"id": "a"}]


def test_load_configuration_requires_one_document(tmp_path, simple_doc):
    p = write(tmp_path, "two.json", [simple_doc, simple_doc])
    with pytest.raises(ConfigurationError) as ei:
        load_configuration(p)
    assert "expected one configuration" in ei.value.message


def test_parse_configuration_rejects_non_object():
    with pytest.raises(ConfigurationError):
        parse_configuration(["not", "a", "document"])


def test_missing_section_lists_validation_errors(simple_doc):
    del simple_doc["rest"]
    with pytest.raises(ConfigurationError) as ei:
        parse_configuration(simple_doc, source="x.json")
    info = ei.value.details["info"]
    assert any(err["loc"] == "rest" for err in info)


def test_duplicate_window_names_are_rejected(simple_doc):
    simple_doc["windows"].append(dict(simple_doc["windows"][0]))
    with pytest.raises(ConfigurationError):
        parse_configuration(simple_doc)


def test_unknown_reference_timezone_is_rejected(simple_doc):
    simple_doc["reference_timezone"] = "Nowhere/Special"
    with pytest.raises(ConfigurationError):
        parse_configuration(simple_doc)


def test_provenance_is_stable_and_tracks_content(simple_doc):
    first = compute_ruleset_provenance(parse_configuration(simple_doc, source="a.json"))
    again = compute_ruleset_provenance(parse_configuration(simple_doc, source="b.json"))
    # source file is reported but does not affect the hash
    assert first["ruleset_hash_sha256"] == again["ruleset_hash_sha256"]
    assert first["source_file"] == "a.json"

    simple_doc["windows"][1]["ceiling_hours"] = 90
    changed = compute_ruleset_provenance(parse_configuration(simple_doc))
    assert changed["ruleset_hash_sha256"] != first["ruleset_hash_sha256"]
    assert set(first) == {"ruleset_id", "ruleset_version", "ruleset_hash_sha256", "source_file"}


def test_infinite_hours_in_file_are_reported_invalid(tmp_path, simple_doc):
    text = json.dumps(simple_doc).replace('"ceiling_hours": 100', '"ceiling_hours": Infinity')
    assert "Infinity" in text
    write(tmp_path, "inf.json", text)
    valid, invalid = load_rules_from_folder(tmp_path)
    assert valid == {}
    assert [r["file"] for r in invalid] == ["inf.json"]
