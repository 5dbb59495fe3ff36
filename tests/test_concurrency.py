"""Concurrency tests for batch evaluation, coalescing and invalidation."""

import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor

import pytest

from stability_gate.config import EvaluationPolicy
from stability_gate.errors import EvaluationCancelled, UnknownPackage
from stability_gate.models import NodeKey, PackageDescriptor
from stability_gate.snapshot import empty_snapshot


def _pkg(name, deps=(), edition="GHC2021"):
    return PackageDescriptor(
        package_id=name,
        release="R1",
        language_edition=edition,
        dependencies=tuple(NodeKey(dep, "R1") for dep in deps),
    )


def _ecosystem(max_workers=4):
    snapshot = empty_snapshot(EvaluationPolicy(max_workers=max_workers))
    snapshot.timeline.append("R1")
    # A few independent chains sharing a common base.
    descriptors = [_pkg("base"), _pkg("broken", edition=None)]
    for chain in range(5):
        previous = "base"
        for depth in range(4):
            name = f"c{chain}-{depth}"
            deps = [previous] + (["broken"] if chain == 0 and depth == 0 else [])
            descriptors.append(_pkg(name, deps))
            previous = name
    snapshot.graph.bulk_load(descriptors)
    return snapshot, snapshot.evaluator()


def _count_computes(monkeypatch, evaluator, delay=0.0, hook=None):
    calls = Counter()
    lock = threading.Lock()
    compute = evaluator._compute

    def counting(key):
        with lock:
            calls[key] += 1
            first = calls[key] == 1
        if hook is not None and first:
            hook(key)
        if delay:
            time.sleep(delay)
        return compute(key)

    monkeypatch.setattr(evaluator, "_compute", counting)
    return calls


def test_evaluate_all_matches_sequential_results():
    snapshot, evaluator = _ecosystem()
    batch = evaluator.evaluate_all()

    _, sequential = _ecosystem()
    for key in snapshot.graph.keys():
        assert batch[key] == sequential.evaluate(*key)

    assert batch[NodeKey("c0-3", "R1")].is_stable is False
    assert batch[NodeKey("c1-3", "R1")].is_stable is True


def test_evaluate_many_returns_requested_keys_only():
    _, evaluator = _ecosystem()
    wanted = [NodeKey("c2-3", "R1"), NodeKey("base", "R1")]

    results = evaluator.evaluate_many(wanted)

    assert list(results) == wanted
    assert evaluator.cached("c2-0", "R1") is not None


def test_concurrent_requests_for_same_key_share_one_computation(monkeypatch):
    _, evaluator = _ecosystem()
    evaluator.evaluate("base", "R1")
    calls = _count_computes(monkeypatch, evaluator, delay=0.05)

    with ThreadPoolExecutor(max_workers=8) as pool:
        verdicts = list(pool.map(lambda _: evaluator.evaluate("c3-3", "R1"), range(16)))

    assert all(v == verdicts[0] for v in verdicts)
    assert set(calls.values()) == {1}
    assert calls[NodeKey("c3-3", "R1")] == 1


def test_structural_error_in_batch_caches_nothing():
    snapshot, evaluator = _ecosystem()
    snapshot.graph.submit(_pkg("dangling", ["ghost"]))

    with pytest.raises(UnknownPackage):
        evaluator.evaluate_many([NodeKey("c1-3", "R1"), NodeKey("dangling", "R1")])
    assert evaluator.cached("c1-3", "R1") is None


def test_cancel_before_start_runs_nothing(monkeypatch):
    _, evaluator = _ecosystem()
    calls = _count_computes(monkeypatch, evaluator)
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(EvaluationCancelled):
        evaluator.evaluate_all(cancel_event=cancel)
    assert sum(calls.values()) == 0


def test_cancel_mid_batch_keeps_finished_verdicts(monkeypatch):
    _, evaluator = _ecosystem(max_workers=1)
    cancel = threading.Event()
    _count_computes(monkeypatch, evaluator, hook=lambda key: cancel.set())

    with pytest.raises(EvaluationCancelled):
        evaluator.evaluate_all(cancel_event=cancel)

    # The first layer was already running when the event was set.
    assert evaluator.cached("base", "R1") is not None
    assert evaluator.cached("c4-3", "R1") is None


def test_invalidation_during_computation_forces_recompute(monkeypatch):
    _, evaluator = _ecosystem()
    target = NodeKey("c1-0", "R1")
    evaluator.evaluate("base", "R1")

    def invalidate_target(key):
        if key == target:
            evaluator.invalidate(*target)

    calls = _count_computes(monkeypatch, evaluator, hook=invalidate_target)

    verdict = evaluator.evaluate(*target)

    assert calls[target] == 2
    assert evaluator.cached(*target) == verdict


def test_invalidate_while_readers_run():
    _, evaluator = _ecosystem()
    expected = {key: evaluator.evaluate(*key) for key in evaluator.graph.keys()}
    stop = threading.Event()

    def reader():
        while not stop.is_set():
            for key in expected:
                assert evaluator.evaluate(*key) == expected[key]

    with ThreadPoolExecutor(max_workers=4) as pool:
        futures = [pool.submit(reader) for _ in range(3)]
        for _ in range(20):
            evaluator.invalidate("base", "R1")
            time.sleep(0.001)
        stop.set()
        for future in futures:
            future.result()
