#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional


def _ensure_src_on_path() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src = repo_root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))


def _read_text(path: str) -> str:
    p = Path(path)
    if not p.exists():
        raise SystemExit(f"File not found: {p}")
    return p.read_text(encoding="utf-8", errors="replace")


def _period_json(period) -> Optional[dict]:
    if period is None:
        return None
    return {"month": period.month_str, "year": period.year, "month_name": period.month_name}


def main(argv: list[str] | None = None) -> int:
    _ensure_src_on_path()

    from vodafone_invoice_mailer.portal.periods import (
        PERIOD_PATTERNS,
        extract_first_archive_entry,
        extract_period,
    )

    p = argparse.ArgumentParser(
        prog="parse_invoice_text_snapshot",
        description=(
            "Run the invoice period extractor and archive resolver on a saved page text snapshot\n"
            "(from `run --debug-dir`, *.txt). Intended for debugging parsing regressions offline."
        ),
    )
    p.add_argument("--file", required=True, help="Path to a .txt snapshot of an invoice page")
    p.add_argument("--out", default="", help="Optional output JSON path (otherwise prints to stdout)")
    args = p.parse_args(argv)

    body_text = _read_text(args.file)
    payload = {
        "period": _period_json(extract_period(body_text)),
        "archive_first_entry": _period_json(extract_first_archive_entry(body_text)),
        # Per-pattern view, to see which phrasing matched (or why none did).
        "patterns": {pat.name: _period_json(pat.match(body_text)) for pat in PERIOD_PATTERNS},
    }
    out_json = json.dumps(payload, indent=2, ensure_ascii=False)
    if args.out:
        Path(args.out).write_text(out_json, encoding="utf-8")
    else:
        print(out_json)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
