# legality_engine/validate_rules.py
# Run:
#   legality-validate-rules [folder]
# It validates every .json in the rules folder (default: the packaged rules or
# $LEGALITY_RULES_DIR) against the configuration schema and prints errors with
# file/line/col for JSON syntax problems.

import json
from pathlib import Path
import sys
from typing import List, Optional

from .errors import ConfigurationError
from .rule_config import iter_configuration_objects, parse_configuration
from .settings import Settings


def _print_json_error(p: Path, txt: str, e: json.JSONDecodeError) -> None:
    # Print friendly error with line/col and snippet
    print(f"{p.name}: JSON parse error: {e.msg} (line {e.lineno}, col {e.colno})")
    lines = txt.splitlines()
    ln = e.lineno - 1
    start = max(0, ln - 2)
    end = min(len(lines), ln + 2)
    print("---- context ----")
    for i in range(start, end):
        marker = ">>" if i == ln else "  "
        print(f"{marker} {i+1:4d}: {lines[i]}")
    print("-----------------")


def validate_json_file(p: Path) -> bool:
    try:
        txt = p.read_text(encoding="utf-8")
    except OSError as e:
        print(f"{p.name}: ERROR reading file: {e}")
        return False
    try:
        parsed = json.loads(txt)
    except json.JSONDecodeError as e:
        _print_json_error(p, txt, e)
        return False

    ok = True
    docs = iter_configuration_objects(parsed)
    if not docs:
        print(f"{p.name}: no configuration documents found")
        return False
    for idx, raw in enumerate(docs):
        try:
            config = parse_configuration(raw, source=p.name)
        except ConfigurationError as e:
            ok = False
            print(f"{p.name}[{idx}]: {e.message}")
            for err in (e.details or {}).get("info") or []:
                print(f"    {err['loc']}: {err['msg']}")
            continue
        print(f"{p.name}[{idx}]: OK ({config.id} {config.version or ''})".rstrip())
    return ok


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    rules_dir = Path(args[0]) if args else Settings.from_env().rules_dir
    if not rules_dir.is_dir():
        print("Rules folder not found:", rules_dir.resolve())
        return 1
    files = sorted(rules_dir.glob("*.json"))
    if not files:
        print("No .json files found in:", rules_dir.resolve())
        return 0
    ok_count = 0
    bad_count = 0
    for f in files:
        if validate_json_file(f):
            ok_count += 1
        else:
            bad_count += 1
    print(f"\nSummary: {ok_count} OK, {bad_count} INVALID ({len(files)} files checked)")
    return 2 if bad_count else 0


if __name__ == "__main__":
    sys.exit(main())
