"""
openpyxl-backed grid host.

One XlsxWorkbook wraps an .xlsx file; each worksheet is exposed as an
XlsxGridTable. Formulas are stored as Excel formula strings and are not
evaluated here (see aggregates.evaluate_row for computed values).
"""
import logging
import os
from typing import Any, Dict, List, Optional

import openpyxl
from openpyxl.formatting.formatting import ConditionalFormattingList
from openpyxl.formatting.rule import CellIsRule
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.datavalidation import DataValidation

from .color_utils import is_light_color, to_argb
from .grid import GridTable, GridWorkbook

_log = logging.getLogger(__name__)

# Approximate pixel width of one character unit at the default font
_PX_PER_CHAR = 7
_HEADER_FILL = 'D9E1F2'
_WEEKEND_FILL = 'EBEBEB'
# Excel rejects inline list validations longer than this
MAX_INLINE_LIST_LENGTH = 255
CODE_LIST_SHEET = 'Shift Codes'


def _block_ref(row: int, col: int, num_rows: int, num_cols: int) -> str:
    return (
        f"{get_column_letter(col)}{row}:"
        f"{get_column_letter(col + num_cols - 1)}{row + num_rows - 1}"
    )


class XlsxGridTable(GridTable):
    def __init__(self, ws):
        self.ws = ws

    @property
    def name(self) -> str:
        return self.ws.title

    def get_value(self, row: int, col: int) -> Any:
        return self.ws.cell(row=row, column=col).value

    def get_values(self, row: int, col: int, num_rows: int, num_cols: int) -> List[List[Any]]:
        return [
            list(r)
            for r in self.ws.iter_rows(
                min_row=row, max_row=row + num_rows - 1,
                min_col=col, max_col=col + num_cols - 1,
                values_only=True,
            )
        ]

    def set_value(self, row: int, col: int, value: Any) -> None:
        self.ws.cell(row=row, column=col).value = value

    def set_values(self, row: int, col: int, values: List[List[Any]]) -> None:
        for r_off, row_values in enumerate(values):
            for c_off, value in enumerate(row_values):
                self.ws.cell(row=row + r_off, column=col + c_off).value = value

    def set_formulas(self, row: int, col: int, formulas: List[List[Optional[str]]]) -> None:
        for r_off, row_formulas in enumerate(formulas):
            for c_off, formula in enumerate(row_formulas):
                if formula is not None and not formula.startswith('='):
                    raise ValueError(f"Not a formula: {formula!r}")
                self.ws.cell(row=row + r_off, column=col + c_off).value = formula

    def last_row(self) -> int:
        # ws.max_row also counts styled-but-empty rows, so scan for values
        last = 0
        for idx, row_values in enumerate(self.ws.iter_rows(values_only=True), start=1):
            if any(v is not None and v != '' for v in row_values):
                last = idx
        return last

    def clear_row(self, row: int, num_cols: int) -> None:
        for col in range(1, num_cols + 1):
            self.ws.cell(row=row, column=col).value = None

    def set_column_width(self, col: int, width: int) -> None:
        self.ws.column_dimensions[get_column_letter(col)].width = round(width / _PX_PER_CHAR, 1)

    def freeze(self, rows: int, cols: int) -> None:
        self.ws.freeze_panes = self.ws.cell(row=rows + 1, column=cols + 1)

    def set_list_validation(self, row: int, col: int, num_rows: int, num_cols: int,
                            allowed: List[str]) -> None:
        # A grid carries a single list rule; drop it (also when loaded from disk)
        self.ws.data_validations.dataValidation = [
            v for v in self.ws.data_validations.dataValidation if v.type != 'list'
        ]
        inline = ','.join(allowed)
        if len(inline) > MAX_INLINE_LIST_LENGTH:
            formula1 = self._code_list_range(allowed)
        else:
            formula1 = '"' + inline + '"'
        dv = DataValidation(
            type='list',
            formula1=formula1,
            allow_blank=True,
            showErrorMessage=True,
            errorTitle='Invalid shift',
            error='Pick a shift code from the list.',
        )
        dv.add(_block_ref(row, col, num_rows, num_cols))
        self.ws.add_data_validation(dv)

    def _code_list_range(self, allowed: List[str]) -> str:
        """Write allowed into column A of the hidden code sheet and return its range."""
        wb = self.ws.parent
        if CODE_LIST_SHEET in wb.sheetnames:
            codes_ws = wb[CODE_LIST_SHEET]
        else:
            codes_ws = wb.create_sheet(title=CODE_LIST_SHEET)
            codes_ws.sheet_state = 'hidden'
        for idx in range(1, codes_ws.max_row + 1):
            codes_ws.cell(row=idx, column=1).value = None
        for idx, code in enumerate(allowed, start=1):
            codes_ws.cell(row=idx, column=1).value = code
        return f"'{CODE_LIST_SHEET}'!$A$1:$A${len(allowed)}"

    def set_color_rules(self, row: int, col: int, num_rows: int, num_cols: int,
                        colors: Dict[str, str]) -> None:
        self.ws.conditional_formatting = ConditionalFormattingList()
        ref = _block_ref(row, col, num_rows, num_cols)
        for code, color in colors.items():
            argb = to_argb(color)
            fill = PatternFill(start_color=argb, end_color=argb, fill_type='solid')
            font = Font(color='FF000000' if is_light_color(color) else 'FFFFFFFF')
            self.ws.conditional_formatting.add(
                ref, CellIsRule(operator='equal', formula=[f'"{code}"'], fill=fill, font=font)
            )

    def style_header(self, num_cols: int, shaded_cols: List[int]) -> None:
        shaded = set(shaded_cols)
        for col in range(1, num_cols + 1):
            cell = self.ws.cell(row=1, column=col)
            cell.font = Font(bold=True)
            cell.alignment = Alignment(horizontal='center', vertical='center', wrap_text=True)
            cell.fill = PatternFill(
                fill_type='solid', fgColor=_WEEKEND_FILL if col in shaded else _HEADER_FILL
            )
        self.ws.row_dimensions[1].height = 30


class XlsxWorkbook(GridWorkbook):
    """An .xlsx file, or a purely in-memory workbook when path is None."""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        if path and os.path.exists(path):
            self.wb = openpyxl.load_workbook(path)
            _log.info("Loaded workbook %s (%d sheets)", path, len(self.wb.sheetnames))
        else:
            self.wb = openpyxl.Workbook()
            self.wb.remove(self.wb.active)
        self._tables: Dict[str, XlsxGridTable] = {}

    def _table(self, ws) -> XlsxGridTable:
        table = self._tables.get(ws.title)
        if table is None or table.ws is not ws:
            table = XlsxGridTable(ws)
            self._tables[ws.title] = table
        return table

    def get_sheet(self, name: str) -> Optional[XlsxGridTable]:
        if name not in self.wb.sheetnames:
            return None
        return self._table(self.wb[name])

    def insert_sheet(self, name: str) -> XlsxGridTable:
        if name in self.wb.sheetnames:
            raise ValueError(f"Sheet {name!r} already exists")
        return self._table(self.wb.create_sheet(title=name))

    def sheet_names(self) -> List[str]:
        return list(self.wb.sheetnames)

    def active_sheet(self) -> Optional[XlsxGridTable]:
        ws = self.wb.active
        return self._table(ws) if ws is not None else None

    def set_active(self, name: str) -> None:
        for ws in self.wb.worksheets:
            ws.sheet_view.tabSelected = ws.title == name
        self.wb.active = self.wb[name]

    def flush(self) -> None:
        if not self.path or not self.wb.sheetnames:
            return
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp = self.path + '.tmp'
        self.wb.save(tmp)
        os.replace(tmp, self.path)
        _log.debug("Workbook saved to %s", self.path)
