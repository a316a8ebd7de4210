"""Tests for BreakScheduleService over the in-memory repository."""

import asyncio
from collections import Counter
from dataclasses import replace

import pytest

from breaks.errors import ConcurrentModificationError, ShiftNotFoundError, WarningNotFoundError
from breaks.types import BreakType, CoverageRule, ViolationType, schedule_version, DEFAULT_BREAK_RULES
from db.memory import InMemoryScheduleRepository
from schedule_service import BreakScheduleService
from conftest import AM_VALID_BREAKS, DATE


@pytest.fixture
def service(repository):
    return BreakScheduleService(repository)


# A valid set for a BET shift (11:00-19:00)
BET_VALID_BREAKS = [(12, BreakType.HB1), (20, BreakType.B), (28, BreakType.HB2)]

# A valid set for a PM shift (13:00-21:00)
PM_VALID_BREAKS = [(20, BreakType.HB1), (28, BreakType.B), (36, BreakType.HB2)]


def run(coro):
    return asyncio.run(coro)


class TestValidateAndReplace:

    def test_success_stores_required_counts(self, service, repository):
        outcome = run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS, created_by="lead"))
        assert outcome.ok

        stored = run(repository.get_assignments(DATE, "alice"))
        assert len(stored) == 3
        assert Counter(a.break_type for a in stored) == {BreakType.HB1: 1, BreakType.B: 1, BreakType.HB2: 1}
        assert {a.shift_code_at_assignment for a in stored} == {"AM"}
        assert {a.created_by for a in stored} == {"lead"}
        assert outcome.version == schedule_version("AM", stored)

    def test_invalid_set_is_not_stored(self, service, repository):
        outcome = run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS[:2]))
        assert not outcome.ok
        assert outcome.validation.violations[0].violation_type == ViolationType.COUNT_MISMATCH
        assert run(repository.get_assignments(DATE, "alice")) == []

    def test_replace_is_wholesale(self, service, repository):
        run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS))
        moved = [(5, BreakType.HB1), (13, BreakType.B), (21, BreakType.HB2)]
        run(service.validate_and_replace("alice", DATE, moved))
        stored = run(repository.get_assignments(DATE, "alice"))
        assert [a.interval_slot for a in stored] == [5, 13, 21]

    def test_unknown_agent(self, service):
        with pytest.raises(ShiftNotFoundError):
            run(service.validate_and_replace("zed", DATE, AM_VALID_BREAKS))

    def test_matching_version_is_accepted(self, service):
        version = schedule_version("AM", [])
        outcome = run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS, expected_version=version))
        assert outcome.ok

    def test_stale_version_is_rejected(self, service):
        stale = schedule_version("AM", [])
        run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS))
        with pytest.raises(ConcurrentModificationError):
            run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS, expected_version=stale))

    def test_shift_change_invalidates_version(self, service, repository, make_shift):
        schedule = run(service.get_schedule(DATE))
        version = next(a["version"] for a in schedule["agents"] if a["user_id"] == "bob")
        repository.set_shift(make_shift("bob", "BET"))
        with pytest.raises(ConcurrentModificationError):
            run(service.validate_and_replace("bob", DATE, BET_VALID_BREAKS, expected_version=version))

    def test_validate_is_a_dry_run(self, service, repository):
        result = run(service.validate("alice", DATE, AM_VALID_BREAKS))
        assert result.ok
        assert run(repository.get_assignments(DATE)) == []

    def test_clear_assignments(self, service, repository):
        run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS))
        assert run(service.clear_assignments("alice", DATE)) == 3
        assert run(repository.get_assignments(DATE, "alice")) == []


class TestGetSchedule:

    def test_agents_and_coverage(self, service):
        run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS))
        schedule = run(service.get_schedule(DATE))

        assert len(schedule["slots"]) == 48
        assert [a["user_id"] for a in schedule["agents"]] == ["alice", "bob", "carol"]
        alice = schedule["agents"][0]
        assert alice["shift_start"] == "09:00"
        assert alice["required_breaks"] == {"HB1": 1, "B": 1, "HB2": 1}
        assert [b["time"] for b in alice["breaks"]] == ["10:00", "12:00", "14:00"]

        slot_4 = next(c for c in schedule["coverage"] if c["slot"] == 4)
        assert (slot_4["staffed"], slot_4["on_break"], slot_4["available"]) == (2, 1, 1)

    def test_department_filter(self, service):
        schedule = run(service.get_schedule(DATE, department="sales"))
        assert [a["user_id"] for a in schedule["agents"]] == ["carol"]

    def test_shift_change_warning_then_dismiss(self, service, repository, make_shift):
        run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS))
        repository.set_shift(make_shift("alice", "PM", department="support"))

        warnings = run(service.get_schedule(DATE))["warnings"]
        assert len(warnings) == 1
        assert warnings[0]["warning_type"] == "shift_changed"

        # Reading again does not duplicate the warning
        assert len(run(service.get_schedule(DATE))["warnings"]) == 1

        run(service.dismiss_warning(warnings[0]["id"]))
        assert run(service.detect_warnings(DATE)) == []
        assert run(service.get_schedule(DATE))["warnings"] == []

    def test_dismiss_unknown_warning(self, service):
        with pytest.raises(WarningNotFoundError):
            run(service.dismiss_warning("missing"))

    def test_repeat_mismatch_after_replan_is_reported(self, service, repository, make_shift):
        run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS))
        repository.set_shift(make_shift("alice", "PM", department="support"))
        warning = run(service.detect_warnings(DATE))[0]
        run(service.dismiss_warning(warning.id))

        # Replan under PM, then move back to AM and replan again
        run(service.validate_and_replace("alice", DATE, PM_VALID_BREAKS))
        assert run(repository.get_warnings(DATE)) == []
        repository.set_shift(make_shift("alice", "AM", department="support"))
        run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS))

        repository.set_shift(make_shift("alice", "PM", department="support"))
        warnings = run(service.detect_warnings(DATE))
        assert [(w.old_shift_code, w.new_shift_code) for w in warnings] == [("AM", "PM")]

    def test_repeat_mismatch_after_shift_flips_back(self, service, repository, make_shift):
        run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS))
        repository.set_shift(make_shift("alice", "PM", department="support"))
        warning = run(service.detect_warnings(DATE))[0]
        run(service.dismiss_warning(warning.id))

        repository.set_shift(make_shift("alice", "AM", department="support"))
        assert run(service.detect_warnings(DATE)) == []
        assert run(repository.get_warnings(DATE)) == []

        repository.set_shift(make_shift("alice", "PM", department="support"))
        assert len(run(service.detect_warnings(DATE))) == 1

    def test_open_warning_survives_detection(self, service, repository, make_shift):
        run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS))
        repository.set_shift(make_shift("alice", "PM", department="support"))
        run(service.detect_warnings(DATE))
        repository.set_shift(make_shift("alice", "AM", department="support"))
        run(service.detect_warnings(DATE))
        assert len(run(repository.get_warnings(DATE))) == 1


class TestDistribution:

    def test_preview_does_not_persist(self, service, repository):
        result = run(service.preview_distribution(DATE))
        assert result.feasible
        assert set(result.assignments_by_user) == {"alice", "bob", "carol"}
        assert run(repository.get_assignments(DATE)) == []

    def test_apply_persists_every_agent(self, service, repository):
        outcome = run(service.apply_distribution(DATE))
        assert outcome["status"] == "success"
        assert outcome["applied_users"] == ["alice", "bob", "carol"]
        stored = run(repository.get_assignments(DATE))
        assert Counter(a.user_id for a in stored) == {"alice": 3, "bob": 3, "carol": 3}

    def test_apply_respects_coverage_rule(self, repository):
        repository.coverage_rule = CoverageRule(max_concurrent_on_break=1)
        service = BreakScheduleService(repository)
        run(service.apply_distribution(DATE))
        stored = run(repository.get_assignments(DATE))
        assert len({a.interval_slot for a in stored}) == len(stored)

    def test_only_unscheduled_keeps_manual_breaks(self, service, repository):
        run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS))
        outcome = run(service.apply_distribution(DATE, apply_mode="only_unscheduled"))
        assert outcome["result"]["kept_users"] == ["alice"]
        stored = run(repository.get_assignments(DATE, "alice"))
        assert [a.interval_slot for a in stored] == [4, 12, 20]

    def test_partial_when_an_agent_cannot_be_placed(self, make_shift, tiny_rules):
        repository = InMemoryScheduleRepository(
            shifts=[make_shift("alice", "TINY"), make_shift("bob", "AM")],
            rules=tiny_rules,
            shift_configurations=[
                {"shift_code": "AM", "start_time": "09:00", "end_time": "17:00"},
                {"shift_code": "TINY", "start_time": "09:00", "end_time": "10:00"},
            ],
        )
        outcome = run(BreakScheduleService(repository).apply_distribution(DATE))
        assert outcome["status"] == "partial"
        assert outcome["applied_users"] == ["bob"]
        assert [f["user_id"] for f in outcome["failed_agents"]] == ["alice"]
        assert run(repository.get_assignments(DATE, "alice")) == []

    def test_partial_when_coverage_cannot_be_met(self, repository):
        repository.coverage_rule = CoverageRule(max_concurrent_on_break=0)
        outcome = run(BreakScheduleService(repository).apply_distribution(DATE))
        assert outcome["status"] == "partial"
        assert outcome["failed_agents"] == []
        assert outcome["applied_users"] == ["alice", "bob", "carol"]
        assert outcome["result"]["feasible"] is False

    def test_unknown_apply_mode(self, service):
        with pytest.raises(ValueError):
            run(service.preview_distribution(DATE, apply_mode="sometimes"))

    def test_ortools_solver_choice(self, service):
        result = run(service.preview_distribution(DATE, solver_type="ortools"))
        assert result.solver == "ortools"
        assert result.feasible

    def test_staggered_solver_choice(self, service):
        result = run(service.preview_distribution(DATE, solver_type="staggered"))
        assert result.solver == "staggered"
        assert result.rule_compliance["blocking_violations"] == 0


class TestRulesAndConfig:

    def test_saving_a_shift_configuration_keeps_defaults(self, service):
        run(service.save_shift_configuration({"shift_code": "night", "start_time": "17:00", "end_time": "21:00"}))
        codes = [row["shift_code"] for row in run(service.get_shift_configurations())]
        assert codes == ["AM", "BET", "NIGHT", "OFF", "PM"]

    def test_shift_configuration_must_not_end_before_start(self, service):
        with pytest.raises(ValueError):
            run(service.save_shift_configuration({"shift_code": "X", "start_time": "17:00", "end_time": "09:00"}))

    def test_coverage_percent_out_of_range(self, service):
        with pytest.raises(ValueError):
            run(service.save_coverage_rule(CoverageRule(max_concurrent_percent=150)))

    def test_schedule_config_validates_grid(self, service):
        config = replace(run(service.get_schedule_config()), interval_minutes=25)
        with pytest.raises(ValueError):
            run(service.save_schedule_config(config))


class TestDateOperations:

    def test_bulk_replace_stores_each_valid_agent(self, service, repository):
        outcome = run(service.bulk_replace(DATE, [
            {"user_id": "alice", "breaks": AM_VALID_BREAKS},
            {"user_id": "bob", "breaks": AM_VALID_BREAKS[:2]},
            {"user_id": "zed", "breaks": AM_VALID_BREAKS},
        ], created_by="lead"))

        assert outcome["status"] == "partial"
        assert [u["user_id"] for u in outcome["updated"]] == ["alice"]
        assert [(f["user_id"], f["reason"]) for f in outcome["failed_agents"]] == [
            ("bob", "validation_failed"),
            ("zed", "shift_not_found"),
        ]
        assert outcome["failed_agents"][0]["violations"][0]["violation_type"] == "count_mismatch"
        stored = run(repository.get_assignments(DATE))
        assert {a.user_id for a in stored} == {"alice"}
        assert {a.created_by for a in stored} == {"lead"}

    def test_bulk_replace_stale_version(self, service):
        stale = schedule_version("AM", [])
        run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS))
        outcome = run(service.bulk_replace(DATE, [
            {"user_id": "alice", "breaks": AM_VALID_BREAKS, "expected_version": stale},
            {"user_id": "carol", "breaks": PM_VALID_BREAKS},
        ]))
        assert [u["user_id"] for u in outcome["updated"]] == ["carol"]
        assert outcome["failed_agents"] == [
            {"user_id": "alice", "reason": "concurrent_modification", "violations": []},
        ]

    def test_bulk_replace_success(self, service):
        outcome = run(service.bulk_replace(DATE, [
            {"user_id": "alice", "breaks": AM_VALID_BREAKS},
            {"user_id": "carol", "breaks": PM_VALID_BREAKS},
        ]))
        assert outcome["status"] == "success"
        assert outcome["failed_agents"] == []

    def test_clear_all_for_date(self, service, repository, make_shift):
        run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS))
        run(service.validate_and_replace("carol", DATE, PM_VALID_BREAKS))
        other_day = "2026-01-21"
        repository.set_shift(make_shift("alice", "AM", date=other_day))
        run(service.validate_and_replace("alice", other_day, AM_VALID_BREAKS))

        assert run(service.clear_all_for_date(DATE)) == 6
        assert run(repository.get_assignments(DATE)) == []
        assert len(run(repository.get_assignments(other_day))) == 3

    def test_clear_all_retires_dismissed_warnings(self, service, repository, make_shift):
        run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS))
        repository.set_shift(make_shift("alice", "PM", department="support"))
        warning = run(service.detect_warnings(DATE))[0]
        run(service.dismiss_warning(warning.id))

        run(service.clear_all_for_date(DATE))
        assert run(repository.get_warnings(DATE)) == []


class TestBreakRules:

    def test_toggle_rule_off_drops_requirement(self, service):
        rule = run(service.toggle_break_rule("hb2", False))
        assert not rule.is_active

        schedule = run(service.get_schedule(DATE))
        assert schedule["agents"][0]["required_breaks"] == {"HB1": 1, "B": 1}
        assert run(service.validate("alice", DATE, AM_VALID_BREAKS[:2])).ok

        result = run(service.preview_distribution(DATE))
        assert {a.break_type for a in result.assignments_by_user["alice"]} == {BreakType.HB1, BreakType.B}

    def test_toggle_rule_back_on(self, service):
        run(service.toggle_break_rule("HB2", False))
        assert run(service.toggle_break_rule("HB2", True)).is_active
        assert not run(service.validate("alice", DATE, AM_VALID_BREAKS[:2])).ok

    def test_update_rule_keeps_omitted_fields(self, service):
        rule = run(service.update_break_rule("B", {"min_spacing_slots": 4}))
        assert rule.min_spacing_slots == 4
        assert rule.sequence == 2
        assert rule.buckets == DEFAULT_BREAK_RULES[1].buckets

    def test_update_rule_can_remove_gap_limit(self, service):
        assert run(service.update_break_rule("B", {"max_gap_slots": None})).max_gap_slots is None

    def test_update_rule_rejects_zero_gap(self, service):
        with pytest.raises(ValueError):
            run(service.update_break_rule("B", {"max_gap_slots": 0}))

    def test_non_blocking_rule_lets_save_through(self, service, repository):
        run(service.update_break_rule("HB2", {"is_blocking": False}))
        outcome = run(service.validate_and_replace("alice", DATE, AM_VALID_BREAKS[:2]))
        assert outcome.ok
        assert outcome.validation.warning_count == 1
        assert len(run(repository.get_assignments(DATE, "alice"))) == 2
