"""Tests for snapshot loading and saving."""

import json
from pathlib import Path

import pytest

from stability_gate.errors import InvalidTransition, SnapshotError
from stability_gate.models import ExtensionState, NodeKey
from stability_gate.snapshot import (
    fetch_snapshot,
    load_snapshot,
    save_snapshot,
    snapshot_from_dict,
    snapshot_to_dict,
)


SNAPSHOT = {
    "ordering": "pep440",
    "policy": {"deprecatedIsViolation": True, "defaultMinimumCycles": 2},
    "releases": ["9.2", "9.4", "9.6", "9.8"],
    "featureTags": {"uses-nonstandard-backend": "alternative code generator"},
    "transitions": [
        {"extension": "LinearTypes", "release": "9.2", "newState": "Stable"},
        {"extension": "LinearTypes", "release": "9.4", "newState": "Deprecated"},
    ],
    "cases": [{"subject": "-Wstar-is-type", "announcedAt": "9.4", "minimumCycles": 3}],
    "packages": [
        {
            "packageId": "text",
            "release": "9.6",
            "extensionsUsed": ["LinearTypes"],
            "languageEdition": "GHC2021",
        },
        {
            "packageId": "aeson",
            "release": "9.8",
            "languageEdition": "GHC2021",
            "dependencies": [{"packageId": "text", "release": "9.6"}],
        },
    ],
}


def test_snapshot_from_dict_builds_working_evaluator():
    snapshot = snapshot_from_dict(SNAPSHOT)

    assert snapshot.timeline.releases() == ["9.2", "9.4", "9.6", "9.8"]
    assert snapshot.registry.classification_at("LinearTypes", "9.6") is ExtensionState.DEPRECATED
    [case] = snapshot.tracker.cases_for("LinearTypes")
    assert case.minimum_cycles == 2 and case.effective_not_before == "9.8"

    evaluator = snapshot.evaluator()
    # Deprecation announced at 9.4 is still in its cycle at 9.6.
    assert evaluator.evaluate("text", "9.6").is_stable is True
    assert evaluator.evaluate("aeson", "9.8").is_stable is True


def test_snapshot_round_trip_through_file(tmp_path: Path):
    snapshot = snapshot_from_dict(SNAPSHOT)

    path = save_snapshot(snapshot, tmp_path / "out" / "snapshot.json")
    reloaded = load_snapshot(path)

    assert snapshot_to_dict(reloaded) == snapshot_to_dict(snapshot)
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved["cases"] == SNAPSHOT["cases"]
    assert saved["transitions"][1]["minimumCycles"] == 2


def test_malformed_snapshots_raise_snapshot_error(tmp_path: Path):
    with pytest.raises(SnapshotError):
        snapshot_from_dict([])
    with pytest.raises(SnapshotError):
        snapshot_from_dict({"releases": ["R1"], "packages": [{"release": "R1"}]})
    with pytest.raises(SnapshotError):
        snapshot_from_dict({"releases": ["R1"], "transitions": [
            {"extension": "E", "release": "R1", "newState": "Beta"},
        ]})
    with pytest.raises(SnapshotError):
        snapshot_from_dict({"ordering": "calendar"})

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(SnapshotError):
        load_snapshot(bad)


def test_structural_errors_in_snapshot_propagate():
    data = {
        "releases": ["R1", "R2"],
        "transitions": [
            {"extension": "E", "release": "R1", "newState": "Stable"},
            {"extension": "E", "release": "R2", "newState": "Experimental"},
        ],
    }
    with pytest.raises(InvalidTransition):
        snapshot_from_dict(data)


def test_fetch_snapshot_uses_session():
    requested = {}

    class FakeResponse:
        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def raise_for_status(self):
            return None

        def json(self):
            return SNAPSHOT

    class FakeSession:
        def get(self, url, timeout=None):
            requested["url"] = url
            requested["timeout"] = timeout
            return FakeResponse()

    snapshot = fetch_snapshot("https://index.example/snapshot.json", session=FakeSession())

    assert requested == {"url": "https://index.example/snapshot.json", "timeout": 30}
    assert NodeKey("aeson", "9.8") in snapshot.graph


@pytest.mark.parametrize("field", ["extensionsUsed", "experimentalFeatureTags"])
def test_bare_string_name_sets_are_rejected(field):
    data = {
        "releases": ["R1"],
        "packages": [{"packageId": "P", "release": "R1", field: "LinearTypes"}],
    }
    with pytest.raises(SnapshotError):
        snapshot_from_dict(data)


def test_descriptor_record_rejects_bare_string_extensions():
    from stability_gate.models import PackageDescriptor

    with pytest.raises(SnapshotError):
        PackageDescriptor.from_record(
            {"packageId": "P", "release": "R1", "extensionsUsed": "LinearTypes"}
        )
