from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from sumkeep.engine import Outcome, VerificationReport

REPORT_SCHEMA_VERSION = "1.0.0"


def report_payload(report: VerificationReport) -> dict[str, Any]:
    return {
        "schema_version": REPORT_SCHEMA_VERSION,
        "manifest": report.manifest_path.as_posix(),
        "algorithm": report.algorithm.value,
        "passed": report.passed,
        "counts": {
            "ok": report.count(Outcome.OK),
            "mismatch": report.count(Outcome.MISMATCH),
            "missing": report.count(Outcome.MISSING),
        },
        "failures": [{"path": r.path, "outcome": r.outcome.value} for r in report.failures],
        "error_log": report.error_log.as_posix() if report.error_log else None,
    }


def write_report(path: str | Path, report: VerificationReport, *, make_parents: bool = True) -> Path:
    """Write a verification report as deterministic JSON.

    Sorted keys, 2-space indent, UTF-8, LF newlines and a trailing newline, so
    repeated runs over an unchanged tree give byte-identical output.
    """

    out = Path(path)
    if make_parents:
        out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(
        json.dumps(report_payload(report), indent=2, sort_keys=True, ensure_ascii=False) + "\n",
        encoding="utf-8",
        newline="\n",
    )
    return out


__all__ = ["REPORT_SCHEMA_VERSION", "report_payload", "write_report"]
