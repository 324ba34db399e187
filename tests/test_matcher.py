import math

import numpy as np
import pytest

from student_attendance.descriptors import EnrolledStudent
from student_attendance.exceptions import ConfigurationError, DimensionMismatch
from student_attendance.matcher import Matched, Matcher, Unmatched
from student_attendance.policy import RawDistancePolicy, ScaledDistancePolicy, get_policy
from student_attendance.registry import DescriptorRegistry


def _registry(*students):
    registry = DescriptorRegistry()
    registry.load([EnrolledStudent(sid, sid, vector) for sid, vector in students])
    return registry


def test_exact_descriptor_matches_with_full_confidence(registry):
    for policy in (ScaledDistancePolicy(), RawDistancePolicy()):
        matcher = Matcher(registry, policy, threshold=0.6)
        result = matcher.match([0.3, 0.3, 0.3, 0.3])

        assert isinstance(result, Matched)
        assert result.student_id == "S-002"
        assert result.name == "Ben Reyes"
        assert result.distance == 0.0
        assert result.confidence == 1.0
        assert result.policy == policy.name


def test_empty_registry_is_always_unmatched():
    registry = DescriptorRegistry()
    registry.load([])
    matcher = Matcher(registry, RawDistancePolicy(), threshold=0.0)

    result = matcher.match([0.0, 0.0])

    assert isinstance(result, Unmatched)
    assert result.best_distance is None
    assert result.label == "Unknown"


def test_far_query_is_unmatched_under_scaled_policy():
    registry = _registry(("A", [0.0, 0.0]), ("B", [10.0, 10.0]))
    matcher = Matcher(registry, ScaledDistancePolicy(max_distance=0.6), threshold=0.6)

    result = matcher.match([1.0, 1.0])

    assert isinstance(result, Unmatched)
    assert result.best_distance == pytest.approx(math.sqrt(2), rel=1e-6)
    assert result.confidence < 0


def test_raw_and_scaled_policies_disagree_on_the_same_distance():
    registry = _registry(("A", [0.0, 0.0]))
    query = [0.3, 0.0]

    raw = Matcher(registry, RawDistancePolicy(), threshold=0.6).match(query)
    scaled = Matcher(registry, ScaledDistancePolicy(max_distance=0.6), threshold=0.6).match(query)

    assert isinstance(raw, Matched)
    assert raw.confidence == pytest.approx(0.7, abs=1e-6)
    assert isinstance(scaled, Unmatched)
    assert scaled.confidence == pytest.approx(0.5, abs=1e-6)


def test_ties_resolve_to_roster_order():
    registry = _registry(("first", [1.0, 0.0]), ("second", [-1.0, 0.0]))
    result = Matcher(registry, ScaledDistancePolicy(max_distance=2.0), threshold=0.5).match([0.0, 0.0])
    assert isinstance(result, Matched)
    assert result.student_id == "first"

    reversed_registry = _registry(("second", [-1.0, 0.0]), ("first", [1.0, 0.0]))
    result = Matcher(reversed_registry, ScaledDistancePolicy(max_distance=2.0), threshold=0.5).match([0.0, 0.0])
    assert result.student_id == "second"


def test_ties_resolve_to_roster_order_across_shards():
    registry = _registry(("a", [5.0]), ("b", [1.0]), ("c", [-1.0]), ("d", [1.0]))
    result = Matcher(registry, RawDistancePolicy(), threshold=0.0, shards=3).match([0.0])
    assert result.student_id == "b"


def test_dimension_mismatch_propagates():
    registry = _registry(("good", [0.0] * 128), ("corrupt", [0.0] * 64))
    matcher = Matcher(registry, RawDistancePolicy(), threshold=0.6)

    with pytest.raises(DimensionMismatch) as info:
        matcher.match([0.0] * 128)

    assert info.value.student_id == "corrupt"
    assert info.value.expected == 128
    assert info.value.actual == 64


def test_higher_threshold_never_adds_matches(registry):
    rng = np.random.default_rng(7)
    queries = [rng.uniform(-0.2, 1.2, size=4).tolist() for _ in range(40)]
    thresholds = [0.0, 0.2, 0.4, 0.6, 0.8, 0.95]

    previous = None
    for threshold in thresholds:
        matcher = Matcher(registry, ScaledDistancePolicy(max_distance=1.5), threshold=threshold)
        matched = {i for i, query in enumerate(queries) if isinstance(matcher.match(query), Matched)}
        if previous is not None:
            assert matched <= previous
        previous = matched


def test_call_threshold_overrides_configured_threshold(registry):
    matcher = Matcher(registry, RawDistancePolicy(), threshold=0.99)
    assert isinstance(matcher.match([0.05, 0.0, 0.0, 0.0]), Unmatched)
    assert isinstance(matcher.match([0.05, 0.0, 0.0, 0.0], threshold=0.9), Matched)


def test_match_does_not_mutate_inputs(registry):
    query = np.array([0.31, 0.29, 0.3, 0.3], dtype=np.float32)
    before_query = query.copy()
    before = [entry.descriptor.copy() for entry in registry.snapshot()]

    Matcher(registry, RawDistancePolicy()).match(query)

    np.testing.assert_array_equal(query, before_query)
    for entry, original in zip(registry.snapshot(), before):
        np.testing.assert_array_equal(entry.descriptor, original)


def test_policy_lookup_by_name():
    assert isinstance(get_policy("scaled", max_distance=0.5), ScaledDistancePolicy)
    assert get_policy("SCALED", max_distance=0.5).max_distance == 0.5
    assert isinstance(get_policy("raw"), RawDistancePolicy)
    with pytest.raises(ConfigurationError):
        get_policy("cosine")
    with pytest.raises(ConfigurationError):
        ScaledDistancePolicy(max_distance=0.0)
