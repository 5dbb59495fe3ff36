#!/usr/bin/env python3
"""
Example script showing how to use the stability gate.
"""

import threading
from pathlib import Path

from stability_gate import (
    EvaluationPolicy,
    ExtensionState,
    NodeKey,
    PackageDescriptor,
    empty_snapshot,
)
from stability_gate.reporting import export_verdicts_csv, log_summary


def example_single_package():
    """Example: Evaluate one package and its dependency."""
    print("="*60)
    print("Example 1: Single Package")
    print("="*60)

    snapshot = empty_snapshot()
    snapshot.timeline.append("R1")
    snapshot.timeline.append("R2")

    snapshot.graph.submit(PackageDescriptor(
        package_id="P",
        release="R1",
        extensions_used=frozenset({"E1"}),
    ))
    snapshot.graph.submit(PackageDescriptor(
        package_id="Q",
        release="R1",
        language_edition="GHC2021",
        dependencies=(NodeKey("P", "R1"),),
    ))

    evaluator = snapshot.evaluator()
    for name in ("P", "Q"):
        verdict = evaluator.evaluate(name, "R1")
        print(f"\n{name}: stable={verdict.is_stable}")
        for violation in verdict.violations:
            print(f"  - {violation}: {violation.detail}")


def example_deprecation_cycle():
    """Example: A deprecated extension is grandfathered for two releases."""
    print("\n" + "="*60)
    print("Example 2: Deprecation Cycle")
    print("="*60)

    snapshot = empty_snapshot()
    for release in ("R1", "R2", "R3", "R4"):
        snapshot.timeline.append(release)

    snapshot.registry.record_transition("E", "R1", ExtensionState.STABLE)
    snapshot.registry.record_transition("E", "R2", ExtensionState.DEPRECATED, minimum_cycles=2)

    evaluator = snapshot.evaluator()
    for release in ("R2", "R3", "R4"):
        snapshot.graph.submit(PackageDescriptor(
            package_id="P",
            release=release,
            extensions_used=frozenset({"E"}),
            language_edition="GHC2021",
        ))
        verdict = evaluator.evaluate("P", release)
        notices = evaluator.deprecation_notices("P", release)
        print(f"\nP@{release}: stable={verdict.is_stable}")
        for notice in notices:
            print(f"  notice: {notice.extension} {notice.status.value}, "
                  f"effective at {notice.effective_release}")


def example_batch_evaluation():
    """Example: Evaluate a whole ecosystem in parallel."""
    print("\n" + "="*60)
    print("Example 3: Batch Evaluation")
    print("="*60)

    snapshot = empty_snapshot(EvaluationPolicy(max_workers=8, show_progress=True))
    snapshot.timeline.append("R1")
    descriptors = [PackageDescriptor("base", "R1", language_edition="GHC2021")]
    for i in range(50):
        descriptors.append(PackageDescriptor(
            f"pkg{i}",
            "R1",
            language_edition="GHC2021" if i % 7 else None,
            dependencies=(NodeKey("base", "R1"),),
        ))
    snapshot.graph.bulk_load(descriptors)

    cancel = threading.Event()
    verdicts = snapshot.evaluator().evaluate_all(cancel_event=cancel)
    log_summary(verdicts.values())

    summary_file = export_verdicts_csv(verdicts.values(), Path("./output/example3"))
    print(f"\nResults saved to: {summary_file}")


if __name__ == "__main__":
    import logging

    logging.basicConfig(level=logging.INFO)

    example_single_package()
    example_deprecation_cycle()
    example_batch_evaluation()
