"""
Verdict export utilities.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List

import pandas as pd

from .models import StabilityVerdict


logger = logging.getLogger(__name__)

VERDICT_COLUMNS = [
    "package_id",
    "release",
    "is_stable",
    "num_violations",
    "violation_kinds",
    "unstable_dependencies",
]

VIOLATION_COLUMNS = ["package_id", "release", "ordinal", "kind", "subject", "detail"]


def verdicts_to_frame(verdicts: Iterable[StabilityVerdict]) -> pd.DataFrame:
    """One row per verdict, sorted by package and release."""
    rows = []
    for verdict in verdicts:
        rows.append({
            "package_id": verdict.package_id,
            "release": verdict.release,
            "is_stable": verdict.is_stable,
            "num_violations": len(verdict.violations),
            "violation_kinds": ";".join(v.kind.label for v in verdict.violations),
            "unstable_dependencies": ";".join(
                sorted(str(dep) for dep in verdict.unstable_dependencies)
            ),
        })
    df = pd.DataFrame(rows, columns=VERDICT_COLUMNS)
    return df.sort_values(["package_id", "release"], ignore_index=True)


def violations_to_frame(verdicts: Iterable[StabilityVerdict]) -> pd.DataFrame:
    """One row per violation, in verdict order."""
    rows = []
    for verdict in verdicts:
        for violation in verdict.violations:
            rows.append({
                "package_id": verdict.package_id,
                "release": verdict.release,
                "ordinal": violation.kind.ordinal,
                "kind": violation.kind.label,
                "subject": violation.subject,
                "detail": violation.detail,
            })
    return pd.DataFrame(rows, columns=VIOLATION_COLUMNS)


def log_summary(verdicts: Iterable[StabilityVerdict]) -> None:
    verdicts = list(verdicts)
    stable = sum(1 for v in verdicts if v.is_stable)
    logger.info("=" * 60)
    logger.info("STABILITY RESULTS")
    logger.info("=" * 60)
    logger.info("Packages evaluated: %d", len(verdicts))
    logger.info("Stable: %d", stable)
    logger.info("Unstable: %d", len(verdicts) - stable)
    logger.info("-" * 60)
    for verdict in verdicts:
        if verdict.is_stable:
            continue
        logger.info(
            "%s@%s: %s",
            verdict.package_id,
            verdict.release,
            ", ".join(str(v) for v in verdict.violations),
        )
    logger.info("=" * 60)


def save_verdicts_json(
    verdicts: Iterable[StabilityVerdict], output_dir: Path, name: str = "verdicts"
) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    results_file = output_dir / f"{name}.json"
    records: List = [verdict.to_record() for verdict in verdicts]
    with open(results_file, 'w') as f:
        json.dump(records, f, indent=2)
    return results_file


def export_verdicts_csv(
    verdicts: Iterable[StabilityVerdict], output_dir: Path, name: str = "verdicts"
) -> Path:
    """Write the verdict summary and the violation detail as two CSV files.

    Returns the summary file; the detail file sits next to it.
    """
    verdicts = list(verdicts)
    output_dir.mkdir(parents=True, exist_ok=True)
    summary_file = output_dir / f"{name}_summary.csv"
    details_file = output_dir / f"{name}_violations.csv"
    verdicts_to_frame(verdicts).to_csv(summary_file, index=False)
    violations_to_frame(verdicts).to_csv(details_file, index=False)
    logger.info("Verdicts saved to: %s", summary_file)
    return summary_file
