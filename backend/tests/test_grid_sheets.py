"""Tests for MonthGrid, the month sheet manager and the openpyxl host."""
from unittest.mock import patch

import pytest

from rotalib.constants import BUILTIN_SHIFTS, STAFF_HEADER, SUMMARY_HEADERS
from rotalib.errors import DataError, ValidationError, WriteError
from rotalib.grid import MonthGrid
from rotalib.sheets import MonthSheetManager
from rotalib.xlsx_backend import CODE_LIST_SHEET, XlsxGridTable, XlsxWorkbook


def _list_validations(grid):
    return [dv for dv in grid.table.ws.data_validations.dataValidation if dv.type == 'list']


def _rule_count(grid):
    return sum(len(cf.rules) for cf in grid.table.ws.conditional_formatting)


class TestGridCreation:
    def test_layout(self, sheets):
        grid, created = sheets.get_or_create_grid(2, 2024, ['Ann', 'Bob'])
        assert created is True
        assert grid.name == 'February 2024'
        assert grid.days_in_month == 29
        t = grid.table
        assert t.get_value(1, 1) == STAFF_HEADER
        # 1 February 2024 was a Thursday
        assert t.get_value(1, 2) == "1\nThu"
        assert t.get_value(1, 30) == "29\nThu"
        assert [t.get_value(1, c) for c in range(31, 35)] == list(SUMMARY_HEADERS)
        assert grid.first_summary_column == 31
        assert grid.last_column == 34

    def test_staff_and_aggregates_written(self, sheets):
        grid, _ = sheets.get_or_create_grid(2, 2024, ['Ann', ' Bob ', '', 'Ann'])
        assert grid.staff_rows() == [(2, 'Ann'), (3, 'Bob')]
        assert grid.table.get_value(2, 31).startswith('=SUMPRODUCT(')
        assert grid.table.get_value(2, 32) == '=28-COUNTIF(B2:AD2,"AL")'
        assert grid.table.get_value(3, 33) == '=COUNTIF(B3:AD3,"SICK")'
        assert grid.table.get_value(3, 34) == '=COUNTIF(B3:AD3,"TRAINING")'

    def test_validation_covers_day_columns_only(self, sheets):
        grid, _ = sheets.get_or_create_grid(2, 2024)
        validations = _list_validations(grid)
        assert len(validations) == 1
        assert str(validations[0].sqref) == 'B2:AD51'
        assert validations[0].formula1 == '"' + ','.join(BUILTIN_SHIFTS) + '"'
        assert _rule_count(grid) == len(BUILTIN_SHIFTS)

    def test_existing_grid_returned_unchanged(self, sheets):
        first, _ = sheets.get_or_create_grid(4, 2024, ['Ann'])
        second, created = sheets.get_or_create_grid(4, 2024, ['Zed'])
        assert created is False
        assert second.staff_rows() == [(2, 'Ann')]
        assert second.table is first.table

    def test_non_grid_sheet_with_month_name(self, sheets, workbook):
        workbook.insert_sheet('February 2024').set_value(1, 1, 'Notes')
        with pytest.raises(DataError):
            sheets.get_or_create_grid(2, 2024)
        assert sheets.find_grid(2, 2024) is None

    def test_grids_ignores_other_sheets(self, sheets, workbook):
        sheets.get_or_create_grid(1, 2025)
        workbook.insert_sheet('Absence Tracker').set_value(1, 1, STAFF_HEADER)
        workbook.insert_sheet('Notes')
        assert [g.name for g in sheets.grids()] == ['January 2025']

    def test_create_monthly_grids(self, sheets):
        sheets.get_or_create_grid(1, 2025)
        result = sheets.create_monthly_grids(
            [{'month': 1, 'year': 2025}, (2, 2025), {'month': 13, 'year': 2025}], ['Ann'],
        )
        assert result['created'] == ['February 2025']
        assert result['existing'] == ['January 2025']
        assert len(result['failed']) == 1
        assert sheets.find_grid(2, 2025).staff_rows() == [(2, 'Ann')]

    def test_create_missing_grids(self, sheets):
        sheets.get_or_create_grid(12, 2024)
        result = sheets.create_missing_grids(11, 2024, 3)
        assert result == {'created': ['November 2024', 'January 2025'], 'existing': ['December 2024']}

    def test_host_refusing_layout_raises_write_error(self, sheets):
        with patch.object(XlsxGridTable, 'set_values', side_effect=RuntimeError('locked')):
            with pytest.raises(WriteError, match='Could not lay out June 2024'):
                sheets.get_or_create_grid(6, 2024, ['Ann'])

    def test_failed_creation_reported_per_month(self, sheets):
        with patch.object(XlsxGridTable, 'set_list_validation', side_effect=RuntimeError('locked')):
            result = sheets.create_monthly_grids([(6, 2024)], ['Ann'])
        assert result['created'] == []
        assert len(result['failed']) == 1


class TestMonthGrid:
    def test_from_table_requires_header_and_name(self, sheets, workbook):
        grid, _ = sheets.get_or_create_grid(3, 2024)
        wrapped = MonthGrid.from_table(grid.table)
        assert (wrapped.month, wrapped.year) == (3, 2024)
        other = workbook.insert_sheet('Rota copy')
        other.set_value(1, 1, STAFF_HEADER)
        assert MonthGrid.from_table(other) is None
        assert MonthGrid.from_table(None) is None

    def test_write_days_cannot_reach_summary_columns(self, sheets):
        grid, _ = sheets.get_or_create_grid(2, 2024, ['Ann'])
        with pytest.raises(ValidationError):
            grid.write_days(2, 28, ['EARLY', 'EARLY', 'EARLY'])
        with pytest.raises(ValidationError):
            grid.write_day(2, 30, 'EARLY')
        with pytest.raises(ValidationError):
            grid.write_days(2, 0, ['EARLY'])
        assert grid.table.get_value(2, 31).startswith('=')

    def test_write_and_read_days(self, sheets):
        grid, _ = sheets.get_or_create_grid(4, 2024, ['Ann'])
        grid.write_days(2, 29, ['LATE', 'NIGHT'])
        days = grid.read_days(2)
        assert len(days) == 30
        assert days[28:] == ['LATE', 'NIGHT']

    def test_find_row_is_trimmed_and_case_sensitive(self, sheets):
        grid, _ = sheets.get_or_create_grid(4, 2024, ['Ann'])
        assert grid.find_row(' Ann ') == 2
        assert grid.find_row('ann') is None


class TestStaffRows:
    def test_ensure_staff_row_adds_once(self, sheets):
        grid, _ = sheets.get_or_create_grid(4, 2024, ['Ann', 'Bob'])
        assert sheets.ensure_staff_row(grid, 'Cara') == (4, True)
        assert sheets.ensure_staff_row(grid, 'Cara') == (4, False)
        assert grid.table.get_value(4, 33) == '=28-COUNTIF(B4:AE4,"AL")'

    def test_ensure_staff_row_reuses_cleared_row(self, sheets):
        grid, _ = sheets.get_or_create_grid(4, 2024, ['Ann', 'Bob'])
        sheets.remove_staff_rows(grid, [{'name': 'Ann', 'row': 2}])
        assert sheets.ensure_staff_row(grid, 'Dan') == (2, True)

    def test_ensure_staff_row_requires_name(self, sheets):
        grid, _ = sheets.get_or_create_grid(4, 2024)
        with pytest.raises(ValidationError):
            sheets.ensure_staff_row(grid, '  ')

    def test_remove_clears_whole_row(self, sheets):
        grid, _ = sheets.get_or_create_grid(4, 2024, ['Ann', 'Bob'])
        grid.write_days(2, 1, ['EARLY'])
        removed, errors = sheets.remove_staff_rows(grid, [{'name': 'Ann', 'row': 2}])
        assert removed == ['Ann']
        assert errors == []
        assert grid.table.get_values(2, 1, 1, grid.last_column)[0] == [None] * grid.last_column
        assert grid.staff_rows() == [(3, 'Bob')]

    def test_remove_checks_name(self, sheets):
        grid, _ = sheets.get_or_create_grid(4, 2024, ['Ann', 'Bob'])
        removed, errors = sheets.remove_staff_rows(
            grid, [{'name': 'Bob', 'row': 2}, {'name': 'Bob', 'row': 'x'}],
        )
        assert removed == []
        assert errors[0] == 'Name mismatch for row 2: expected "Bob" but found "Ann"'
        assert len(errors) == 2
        assert grid.find_row('Ann') == 2

    def test_host_refusing_clear_is_reported(self, sheets):
        grid, _ = sheets.get_or_create_grid(4, 2024, ['Ann', 'Bob'])
        with patch.object(grid.table, 'clear_row', side_effect=RuntimeError('locked')):
            removed, errors = sheets.remove_staff_rows(
                grid, [{'name': 'Ann', 'row': 2}, {'name': 'Bob', 'row': 3}],
            )
        assert removed == []
        assert errors[0].startswith('Could not clear April 2024 row 2')
        assert len(errors) == 2


class TestCatalogSync:
    def test_custom_shift_resyncs_existing_grids(self, sheets, catalog):
        grid, _ = sheets.get_or_create_grid(4, 2024, ['Ann'])
        catalog.save_custom_shift('TWILIGHT', 'Twilight', 6, '#ABCDEF')
        validations = _list_validations(grid)
        assert len(validations) == 1
        assert 'TWILIGHT' in validations[0].formula1
        assert '(B2:AE2="TWILIGHT")*6' in grid.table.get_value(2, 32)
        assert _rule_count(grid) == len(BUILTIN_SHIFTS) + 1

    def test_hidden_shift_leaves_validation(self, sheets, catalog):
        grid, _ = sheets.get_or_create_grid(4, 2024, ['Ann'])
        catalog.delete_shift('DAY')
        assert 'DAY' not in _list_validations(grid)[0].formula1.split('"')[1].split(',')

    def test_refresh_staff_aggregates(self, sheets, leave):
        sheets.get_or_create_grid(4, 2024, ['Ann', 'Bob'])
        sheets.get_or_create_grid(5, 2024, ['Bob'])
        leave.set_allocation('Ann', 20)
        assert sheets.refresh_staff_aggregates('Ann') == 1
        assert sheets.find_grid(4, 2024).table.get_value(2, 33) == '=20-COUNTIF(B2:AE2,"AL")'

    def test_resync_skips_grid_the_host_refuses(self, sheets, catalog):
        april, _ = sheets.get_or_create_grid(4, 2024, ['Ann'])
        may, _ = sheets.get_or_create_grid(5, 2024, ['Ann'])
        with patch.object(april.table, 'set_color_rules', side_effect=RuntimeError('protected')):
            catalog.save_custom_shift('TWILIGHT', 'Twilight', 6, '#ABCDEF')
            assert sheets.resync_all() == 1
        assert 'TWILIGHT' in _list_validations(may)[0].formula1
        assert '(B2:AE2="TWILIGHT")*6' in may.table.get_value(2, 32)
        assert '(B2:AE2="TWILIGHT")*6' not in april.table.get_value(2, 32)

    def test_long_code_list_moves_to_hidden_sheet(self, sheets, catalog, workbook):
        grid, _ = sheets.get_or_create_grid(4, 2024, ['Ann'])
        for i in range(20):
            catalog.save_custom_shift(f'LONGSHIFTCODE_{i:02d}', f'Long {i}', 1, '#ABCDEF')
        validations = _list_validations(grid)
        assert len(validations) == 1
        codes = list(catalog.resolve())
        assert validations[0].formula1 == f"'{CODE_LIST_SHEET}'!$A$1:$A${len(codes)}"
        codes_ws = workbook.wb[CODE_LIST_SHEET]
        assert codes_ws.sheet_state == 'hidden'
        assert [c.value for c in codes_ws['A'][:len(codes)]] == codes
        assert [g.name for g in sheets.grids()] == ['April 2024']

        for i in range(20):
            catalog.delete_shift(f'LONGSHIFTCODE_{i:02d}')
        assert _list_validations(grid)[0].formula1.startswith('"EARLY,')


class TestSnapshot:
    def test_snapshot_computes_aggregates(self, sheets):
        grid, _ = sheets.get_or_create_grid(4, 2024, ['Ann'])
        grid.write_days(2, 1, ['EARLY', 'NIGHT', 'AL', 'AL', 'SICK'])
        snap = sheets.snapshot(grid)
        assert snap['sheet'] == 'April 2024'
        assert snap['daysInMonth'] == 30
        assert snap['headers'][0] == STAFF_HEADER
        row = snap['rows'][0]
        assert row['name'] == 'Ann'
        assert row['days'][:6] == ['EARLY', 'NIGHT', 'AL', 'AL', 'SICK', '']
        assert row['aggregates'] == {'totalHours': 18, 'annualLeave': 26, 'sickDays': 1, 'trainingDays': 0}


class TestXlsxPersistence:
    def test_flush_and_reload(self, tmp_path, catalog, leave):
        path = str(tmp_path / 'rota.xlsx')
        wb = XlsxWorkbook(path)
        MonthSheetManager(wb, catalog, leave).get_or_create_grid(4, 2024, ['Ann'])
        wb.flush()
        assert not (tmp_path / 'rota.xlsx.tmp').exists()

        reloaded = MonthSheetManager(XlsxWorkbook(path), catalog, leave)
        grid = reloaded.find_grid(4, 2024)
        assert grid is not None
        assert grid.staff_rows() == [(2, 'Ann')]
        assert grid.table.get_value(2, 34) == '=COUNTIF(B2:AE2,"SICK")'
        reloaded._install_rules(grid)
        assert len(_list_validations(grid)) == 1

    def test_flush_without_sheets_writes_nothing(self, tmp_path):
        path = tmp_path / 'rota.xlsx'
        XlsxWorkbook(str(path)).flush()
        assert not path.exists()

    def test_insert_existing_sheet_rejected(self, workbook):
        workbook.insert_sheet('May 2024')
        with pytest.raises(ValueError):
            workbook.insert_sheet('May 2024')

    def test_set_active(self, workbook):
        workbook.insert_sheet('May 2024')
        workbook.insert_sheet('June 2024')
        workbook.set_active('June 2024')
        assert workbook.active_sheet().name == 'June 2024'
