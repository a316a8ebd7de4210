import pytest

from breaks.coverage import CoverageCalculator
from breaks.types import BreakType, CoverageRule, ViolationType


@pytest.fixture
def calculator(grid, resolver):
    return CoverageCalculator(grid, resolver)


class TestCoverageRuleCapacity:

    def test_no_limits_is_unlimited(self):
        assert CoverageRule().capacity(10) is None

    def test_absolute_limit(self):
        assert CoverageRule(max_concurrent_on_break=2).capacity(10) == 2

    def test_percent_never_rounds_staffed_slot_to_zero(self):
        assert CoverageRule(max_concurrent_percent=10).capacity(2) == 1

    def test_percent_floors(self):
        assert CoverageRule(max_concurrent_percent=25).capacity(10) == 2

    def test_stricter_of_absolute_and_percent(self):
        assert CoverageRule(max_concurrent_on_break=5, max_concurrent_percent=50).capacity(4) == 2
        assert CoverageRule(max_concurrent_on_break=1, max_concurrent_percent=50).capacity(4) == 1

    def test_min_available_floor(self):
        assert CoverageRule(min_available=2).capacity(3) == 1
        assert CoverageRule(min_available=3).capacity(2) == 0


class TestCoverageCalculator:

    def test_staffed_covers_shift_windows(self, calculator, make_shift):
        snapshot = calculator.summarize([], [make_shift("alice", "AM"), make_shift("carol", "PM")])
        assert snapshot.get(0).staffed == 1  # 09:00, AM only
        assert snapshot.get(16).staffed == 2  # 13:00, AM and PM overlap
        assert snapshot.get(47).staffed == 1  # 20:45, PM only
        assert sorted(snapshot.slots) == list(range(48))

    def test_on_break_and_available(self, calculator, make_shift, make_assignment):
        shifts = [make_shift("alice"), make_shift("bob")]
        assignments = [make_assignment("alice", 4), make_assignment("bob", 4, BreakType.B)]
        cov = calculator.summarize(assignments, shifts).get(4)
        assert cov.staffed == 2
        assert cov.on_break == 2
        assert cov.available == 0
        assert cov.by_type == {BreakType.HB1: 1, BreakType.B: 1}

    def test_on_break_counts_distinct_agents(self, calculator, make_shift, make_assignment):
        assignments = [make_assignment("alice", 4), make_assignment("alice", 4, BreakType.B)]
        cov = calculator.summarize(assignments, [make_shift("alice")]).get(4)
        assert cov.on_break == 1
        assert sum(cov.by_type.values()) == 2

    def test_orphan_assignment_is_included(self, calculator, make_shift, make_assignment):
        snapshot = calculator.summarize([make_assignment("ghost", 40)], [make_shift("alice")])
        assert snapshot.get(40).staffed == 0
        assert snapshot.get(40).on_break == 1

    def test_off_shift_is_not_staffed(self, calculator, make_shift):
        assert calculator.summarize([], [make_shift("alice", "OFF")]).slots == {}

    def test_exceeding(self, calculator, make_shift, make_assignment):
        shifts = [make_shift("alice"), make_shift("bob")]
        assignments = [make_assignment("alice", 4), make_assignment("bob", 4)]
        violations = calculator.summarize(assignments, shifts).exceeding(CoverageRule(max_concurrent_on_break=1))
        assert len(violations) == 1
        assert violations[0].violation_type == ViolationType.COVERAGE_EXCEEDED
        assert violations[0].slot == 4
        assert violations[0].details == {"staffed": 2, "on_break": 2, "capacity": 1}

    def test_within_capacity_has_no_violations(self, calculator, make_shift, make_assignment):
        shifts = [make_shift("alice"), make_shift("bob")]
        assignments = [make_assignment("alice", 4), make_assignment("bob", 5)]
        snapshot = calculator.summarize(assignments, shifts)
        assert snapshot.exceeding(CoverageRule(max_concurrent_on_break=1)) == []

    def test_stats(self, calculator, make_shift, make_assignment):
        snapshot = calculator.summarize([make_assignment("alice", 4)], [make_shift("alice"), make_shift("bob")])
        stats = snapshot.stats()
        assert stats["min_available"] == 1
        assert stats["max_available"] == 2
        assert stats["avg_available"] == pytest.approx(1.97, abs=0.01)

    def test_stats_empty(self, calculator):
        assert calculator.summarize([], []).stats()["avg_available"] == 0.0

    def test_to_frame(self, calculator, grid, make_shift, make_assignment):
        snapshot = calculator.summarize([make_assignment("alice", 4)], [make_shift("alice")])
        frame = snapshot.to_frame(grid)
        assert list(frame.columns) == ["staffed", "on_break", "HB1", "B", "HB2", "available"]
        assert frame.loc["10:00", "HB1"] == 1
        assert frame.loc["10:00", "available"] == 0
        assert len(frame) == 32
