"""Tests for the stability_gate package."""

import pytest


def test_package_import():
    """Test that the package can be imported."""
    import stability_gate
    assert stability_gate.__version__ == "0.1.0"


def test_public_api_exports():
    import stability_gate

    for name in stability_gate.__all__:
        assert hasattr(stability_gate, name), name


def test_evaluator_import():
    """Test that evaluator module can be imported."""
    from stability_gate.evaluator import StabilityEvaluator
    assert StabilityEvaluator is not None


def test_structural_errors_share_a_base():
    from stability_gate import errors

    for cls in (
        errors.DuplicateRelease,
        errors.ReleaseOutOfOrder,
        errors.UnknownRelease,
        errors.OutOfRange,
        errors.InvalidTransition,
        errors.UnknownPackage,
        errors.DuplicateDescriptor,
        errors.LaterReleaseDependency,
        errors.DependencyCycle,
    ):
        assert issubclass(cls, errors.StructuralError)


def test_violation_kind_ordinals_follow_criteria_order():
    from stability_gate.models import ViolationKind

    assert [kind.ordinal for kind in ViolationKind] == [1, 2, 3, 4, 5]
    assert ViolationKind.from_label("MissingLanguageEdition") is ViolationKind.MISSING_LANGUAGE_EDITION
    with pytest.raises(ValueError):
        ViolationKind.from_label("Nope")


def test_policy_from_mapping():
    from stability_gate.config import EvaluationPolicy

    policy = EvaluationPolicy.from_mapping({"deprecatedIsViolation": False, "max_workers": 2})
    assert policy.deprecated_is_violation is False
    assert policy.max_workers == 2
    assert EvaluationPolicy.from_mapping(None) == EvaluationPolicy()

    with pytest.raises(ValueError):
        EvaluationPolicy.from_mapping({"colour": "blue"})
    with pytest.raises(ValueError):
        EvaluationPolicy(default_minimum_cycles=0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
