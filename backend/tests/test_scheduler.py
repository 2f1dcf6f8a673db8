"""Tests for the rolling scheduler and single-range pattern application."""
from datetime import date
from unittest.mock import patch

import pytest

from rotalib.errors import ValidationError
from rotalib.scheduler import (
    MonthStatus,
    MultiMonthRangeError,
    NewStarterClip,
    RollingScheduler,
    target_months,
)

PATTERN = 'EARLY,EARLY,OFF'


@pytest.fixture
def scheduler(sheets, catalog):
    return RollingScheduler(sheets, catalog)


def _days(sheets, month, year, name='Ann'):
    grid = sheets.find_grid(month, year)
    return grid.read_days(grid.find_row(name))


class TestTargetMonths:
    def test_fixed_horizon_counts_current_month(self):
        assert target_months(11, 2024, 'fixed', 3) == [(11, 2024), (12, 2024), (1, 2025)]

    def test_until_march(self):
        assert target_months(1, 2025, 'march_31') == [(1, 2025), (2, 2025), (3, 2025)]

    @pytest.mark.parametrize("mode,horizon", [
        ('weekly', 3),
        ('fixed', 0),
        ('fixed', 25),
        ('fixed', '3'),
    ])
    def test_invalid(self, mode, horizon):
        with pytest.raises(ValidationError):
            target_months(1, 2025, mode, horizon)


class TestNewStarterClip:
    def test_from_value(self):
        assert NewStarterClip.from_value(None) is None
        assert NewStarterClip.from_value('') is None
        assert NewStarterClip.from_value('2024-02-10').start == date(2024, 2, 10)
        assert NewStarterClip.from_value({'year': 2024, 'month': 2, 'day': 10}).start == date(2024, 2, 10)
        with pytest.raises(ValidationError):
            NewStarterClip.from_value({'year': 2024, 'month': 2})

    def test_month_comparisons(self):
        clip = NewStarterClip(date(2024, 4, 15))
        assert clip.is_after(3, 2024)
        assert clip.is_after(12, 2023)
        assert not clip.is_after(4, 2024)
        assert clip.is_within(4, 2024)
        assert not clip.is_within(5, 2024)


class TestApplyRolling:
    def test_pattern_continues_across_months(self, scheduler, sheets):
        summary = scheduler.apply_rolling('Ann', PATTERN, 1, 31, 2, 2024, horizon=2)
        assert summary.succeeded == 2
        assert summary.created_sheets == ['February 2024', 'March 2024']
        feb = _days(sheets, 2, 2024)
        assert feb[:3] == ['EARLY', 'EARLY', 'OFF']
        # 29 days leave the cycle at index 2
        assert _days(sheets, 3, 2024)[:3] == ['OFF', 'EARLY', 'EARLY']
        assert summary.next_offset == (29 + 31) % 3

    def test_end_day_clamped_to_month_length(self, scheduler, sheets):
        summary = scheduler.apply_rolling('Ann', PATTERN, 1, 31, 4, 2024, horizon=1)
        assert summary.months[0].end_day == 30
        assert summary.months[0].status == MonthStatus.APPLIED_BATCH
        assert len(_days(sheets, 4, 2024)) == 30
        assert sheets.find_grid(4, 2024).table.get_value(2, 32).startswith('=')

    def test_new_starter_clip_inside_month(self, scheduler, sheets):
        summary = scheduler.apply_rolling('Ann', PATTERN, 1, 31, 2, 2024, horizon=2,
                                          clip='2024-02-10')
        assert summary.months[0].start_day == 10
        feb = _days(sheets, 2, 2024)
        assert feb[:9] == [None] * 9
        assert feb[9:12] == ['EARLY', 'EARLY', 'OFF']
        # 20 days written in February
        assert _days(sheets, 3, 2024)[0] == 'OFF'

    def test_months_before_start_are_skipped(self, scheduler, sheets):
        summary = scheduler.apply_rolling('Ann', PATTERN, 1, 31, 2, 2024, horizon=3,
                                          clip={'year': 2024, 'month': 4, 'day': 15})
        statuses = [m.status for m in summary.months]
        assert statuses == [
            MonthStatus.SKIPPED_BEFORE_START,
            MonthStatus.SKIPPED_BEFORE_START,
            MonthStatus.APPLIED_BATCH,
        ]
        assert sheets.find_grid(2, 2024) is None
        assert sheets.find_grid(3, 2024) is None
        assert _days(sheets, 4, 2024)[14] == 'EARLY'
        assert summary.skipped == 2

    def test_short_month_skipped_without_consuming_pattern(self, scheduler, sheets):
        summary = scheduler.apply_rolling('Ann', PATTERN, 31, 31, 1, 2024, horizon=3)
        assert [m.status for m in summary.months] == [
            MonthStatus.APPLIED_BATCH, MonthStatus.SKIPPED, MonthStatus.APPLIED_BATCH,
        ]
        assert _days(sheets, 1, 2024)[30] == 'EARLY'
        assert _days(sheets, 3, 2024)[30] == 'EARLY'
        assert summary.next_offset == 2

    def test_batch_rejection_falls_back_to_cells(self, scheduler, sheets):
        grid, _ = sheets.get_or_create_grid(4, 2024)
        sheets.ensure_staff_row(grid, 'Ann')
        with patch.object(grid.table, 'set_values', side_effect=RuntimeError('rejected')):
            summary = scheduler.apply_rolling('Ann', PATTERN, 1, 5, 4, 2024, horizon=1)
        assert summary.months[0].status == MonthStatus.APPLIED_CELL_FALLBACK
        assert _days(sheets, 4, 2024)[:5] == ['EARLY', 'EARLY', 'OFF', 'EARLY', 'EARLY']
        assert summary.succeeded == 1

    def test_failed_month_does_not_stop_others(self, scheduler, sheets):
        grid, _ = sheets.get_or_create_grid(4, 2024)
        sheets.ensure_staff_row(grid, 'Ann')
        with patch.object(grid.table, 'set_values', side_effect=RuntimeError('rejected')), \
                patch.object(grid.table, 'set_value', side_effect=RuntimeError('rejected')):
            summary = scheduler.apply_rolling('Ann', PATTERN, 1, 31, 4, 2024, horizon=2)
        assert [m.status for m in summary.months] == [MonthStatus.FAILED, MonthStatus.APPLIED_BATCH]
        assert summary.failed == 1
        assert summary.months[0].reason
        # April's 30 days still advance the cycle
        assert _days(sheets, 5, 2024)[:3] == ['EARLY', 'EARLY', 'OFF']
        assert 'Failed for 1 month(s).' in summary.message()

    def test_aggregate_write_failure_fails_only_that_month(self, scheduler, sheets):
        grid, _ = sheets.get_or_create_grid(4, 2024)
        with patch.object(grid.table, 'set_formulas', side_effect=RuntimeError('protected')):
            summary = scheduler.apply_rolling('Ann', PATTERN, 1, 31, 4, 2024, horizon=2)
        assert [m.status for m in summary.months] == [MonthStatus.FAILED, MonthStatus.APPLIED_BATCH]
        assert 'Could not write aggregates' in summary.months[0].reason
        assert _days(sheets, 5, 2024)[:3] == ['EARLY', 'EARLY', 'OFF']

    def test_month_that_cannot_hold_a_grid_fails(self, scheduler, sheets, workbook):
        workbook.insert_sheet('March 2024').set_value(1, 1, 'Notes')
        summary = scheduler.apply_rolling('Ann', PATTERN, 1, 31, 2, 2024, horizon=3)
        assert [m.status for m in summary.months] == [
            MonthStatus.APPLIED_BATCH, MonthStatus.FAILED, MonthStatus.APPLIED_BATCH,
        ]
        assert _days(sheets, 4, 2024)[0] == ['EARLY', 'EARLY', 'OFF'][(29 + 31) % 3]

    def test_existing_staff_row_reused(self, scheduler, sheets):
        sheets.get_or_create_grid(4, 2024, ['Bob', 'Ann'])
        scheduler.apply_rolling('Ann', PATTERN, 1, 2, 4, 2024, horizon=1)
        grid = sheets.find_grid(4, 2024)
        assert grid.staff_rows() == [(2, 'Bob'), (3, 'Ann')]
        assert grid.read_days(3)[:2] == ['EARLY', 'EARLY']
        assert grid.read_days(2)[:2] == [None, None]

    @pytest.mark.parametrize("kwargs", [
        {'staff_name': ' '},
        {'pattern': 'EARLY,NOPE'},
        {'start_day': 0},
        {'end_day': 32},
        {'start_day': 10, 'end_day': 5},
        {'mode': 'sometimes'},
    ])
    def test_invalid_requests(self, scheduler, sheets, kwargs):
        args = dict(staff_name='Ann', pattern=PATTERN, start_day=1, end_day=5, month=4, year=2024)
        args.update(kwargs)
        with pytest.raises(ValidationError):
            scheduler.apply_rolling(**args)
        assert sheets.grids() == []

    def test_summary_dict(self, scheduler):
        summary = scheduler.apply_rolling('Ann', PATTERN, 1, 3, 4, 2024, horizon=1)
        d = summary.to_dict()
        assert d['succeeded'] == 1
        assert d['createdSheets'] == ['April 2024']
        assert d['nextOffset'] == 0
        assert d['months'][0]['status'] == 'applied-batch'


class TestApplyRange:
    def test_single_month(self, scheduler, sheets):
        result = scheduler.apply_range('Ann', PATTERN, '2024-04-29', '2024-04-30')
        assert result['sheet'] == 'April 2024'
        assert result['created'] is True
        assert result['values'] == ['EARLY', 'EARLY']
        assert result['status'] == 'applied-batch'
        assert _days(sheets, 4, 2024)[28:] == ['EARLY', 'EARLY']

    def test_worked_grid_becomes_active(self, scheduler, sheets):
        sheets.get_or_create_grid(5, 2024)
        sheets.get_or_create_grid(4, 2024)
        assert sheets.active_grid().name == 'May 2024'
        scheduler.apply_range('Ann', PATTERN, '2024-04-01', '2024-04-02')
        assert sheets.active_grid().name == 'April 2024'

    def test_multi_month_declined(self, scheduler, sheets):
        with pytest.raises(MultiMonthRangeError) as exc:
            scheduler.apply_range('Ann', PATTERN, '2024-04-29', '2024-05-02')
        assert exc.value.months == ['April 2024', 'May 2024']
        assert sheets.grids() == []

    def test_reversed_dates(self, scheduler):
        with pytest.raises(ValidationError):
            scheduler.apply_range('Ann', PATTERN, '2024-04-05', '2024-04-01')
