import pytest
from datetime import time

from breaks.grid import IntervalGrid
from breaks.shifts import ShiftWindowResolver
from breaks.types import ShiftWindow


class TestIntervalGrid:

    def test_operating_day_has_48_slots(self, grid):
        assert grid.total_slots == 48

    def test_first_and_last_labels(self, grid):
        labels = grid.labels()
        assert labels[0] == "09:00"
        assert labels[-1] == "20:45"

    def test_slot_of_aligned_time(self, grid):
        assert grid.slot_of("10:00") == 4

    def test_slot_of_floors_unaligned_time(self, grid):
        assert grid.slot_of("10:14") == 4
        assert grid.slot_of(time(10, 15)) == 5

    @pytest.mark.parametrize("value", ["08:59", "21:00", "23:30"])
    def test_slot_of_outside_day_raises(self, grid, value):
        with pytest.raises(ValueError):
            grid.slot_of(value)

    @pytest.mark.parametrize("slot", [-1, 48, 100])
    def test_time_of_day_of_out_of_range_raises(self, grid, slot):
        with pytest.raises(ValueError):
            grid.time_of_day_of(slot)

    @pytest.mark.parametrize("t", [time(9, 0), time(12, 45), time(20, 45)])
    def test_round_trip_for_aligned_times(self, grid, t):
        assert grid.time_of_day_of(grid.slot_of(t)) == t

    def test_interval_must_divide_day(self):
        with pytest.raises(ValueError):
            IntervalGrid("09:00", "21:00", 25)

    @pytest.mark.parametrize("interval", [0, -15])
    def test_interval_must_be_positive(self, interval):
        with pytest.raises(ValueError):
            IntervalGrid("09:00", "21:00", interval)

    def test_empty_day_rejected(self):
        with pytest.raises(ValueError):
            IntervalGrid("12:00", "12:00", 15)

    def test_window_slots_for_am_shift(self, grid):
        assert grid.window_slots(ShiftWindow(540, 1020)) == range(0, 32)

    def test_window_slots_clamped_to_grid(self, grid):
        # 07:00-10:00 only overlaps the first four slots
        assert grid.window_slots(ShiftWindow(420, 600)) == range(0, 4)

    def test_window_outside_grid_is_empty(self, grid):
        assert len(grid.window_slots(ShiftWindow(1290, 1380))) == 0


class TestShiftWindowResolver:

    def test_default_am_window(self, resolver):
        window = resolver.resolve("AM")
        assert (window.start, window.end) == ("09:00", "17:00")
        assert window.duration_minutes == 480

    def test_case_insensitive(self, resolver):
        assert resolver.resolve("pm") == resolver.resolve("PM")

    @pytest.mark.parametrize("code", ["OFF", "NIGHT", "", None])
    def test_unschedulable_codes_resolve_to_none(self, resolver, code):
        assert resolver.resolve(code) is None

    def test_from_configurations_respects_inactive(self):
        resolver = ShiftWindowResolver.from_configurations([
            {"shift_code": "EARLY", "start_time": "7:00 AM", "end_time": "3:00 PM"},
            {"shift_code": "LATE", "start_time": "14:00", "end_time": "22:00", "is_active": False},
        ])
        assert resolver.resolve("early") == ShiftWindow(420, 900)
        assert resolver.resolve("LATE") is None
        assert resolver.codes() == ["EARLY", "LATE"]
