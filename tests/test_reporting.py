from pathlib import Path

import pandas as pd

from stability_gate.models import NodeKey, PackageDescriptor
from stability_gate.reporting import (
    export_verdicts_csv,
    save_verdicts_json,
    verdicts_to_frame,
    violations_to_frame,
)
from stability_gate.snapshot import empty_snapshot


def _verdicts():
    snapshot = empty_snapshot()
    snapshot.timeline.append("R1")
    snapshot.graph.bulk_load([
        PackageDescriptor("P", "R1", extensions_used=frozenset({"E1"})),
        PackageDescriptor(
            "Q", "R1", language_edition="GHC2021", dependencies=(NodeKey("P", "R1"),)
        ),
        PackageDescriptor("S", "R1", language_edition="GHC2021"),
    ])
    return list(snapshot.evaluator().evaluate_all().values())


def test_frames_summarise_verdicts():
    verdicts = _verdicts()

    summary = verdicts_to_frame(verdicts)
    details = violations_to_frame(verdicts)

    assert list(summary["package_id"]) == ["P", "Q", "S"]
    assert list(summary["is_stable"]) == [False, False, True]
    assert summary.loc[1, "unstable_dependencies"] == "P@R1"
    assert list(details["kind"]) == [
        "UsesExperimentalExtension",
        "MissingLanguageEdition",
        "UnstableDependency",
    ]
    assert verdicts_to_frame([]).empty


def test_reporting_exports(tmp_path: Path):
    verdicts = _verdicts()
    output_dir = tmp_path / "out"

    json_file = save_verdicts_json(verdicts, output_dir)
    summary_file = export_verdicts_csv(verdicts, output_dir)

    assert json_file.exists()
    assert summary_file.exists()
    assert (output_dir / "verdicts_violations.csv").exists()
    assert len(pd.read_csv(summary_file)) == 3
