"""Schedule router: month grids and pattern application."""
from datetime import datetime
from fastapi import APIRouter, Depends, Path, Request
from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional, Union

from rotalib.constants import DEFAULT_MISSING_MONTHS, DEFAULT_ROLLING_MONTHS, MAX_PATTERN_LENGTH
from rotalib.service import RotaService
from ..dependencies import get_service, limiter, _sanitize_500

router = APIRouter()


def _check_iso_date(v: str) -> str:
    try:
        datetime.strptime(v, '%Y-%m-%d')
    except ValueError:
        raise ValueError("Date must be a valid date in YYYY-MM-DD format")
    return v


class PatternApply(BaseModel):
    staff_name: str = Field(..., min_length=1, max_length=100)
    pattern: Union[str, List[str]] = Field(..., description="Comma-separated codes or a list of codes")
    start_date: str = Field(..., pattern=r'^\d{4}-\d{2}-\d{2}$')
    end_date: str = Field(..., pattern=r'^\d{4}-\d{2}-\d{2}$')

    @field_validator('start_date', 'end_date')
    @classmethod
    def validate_date(cls, v: str) -> str:
        return _check_iso_date(v)


class NewStarterInfo(BaseModel):
    year: int = Field(..., ge=1900, le=9999)
    month: int = Field(..., ge=1, le=12)
    day: int = Field(..., ge=1, le=31)


class RollingApply(BaseModel):
    staff_name: str = Field(..., min_length=1, max_length=100)
    pattern: Union[str, List[str]] = Field(..., description="Comma-separated codes or a list of codes")
    start_day: int = Field(..., ge=1, le=31)
    end_day: int = Field(..., ge=1, le=31)
    rolling_mode: Literal['fixed', 'march_31'] = 'fixed'
    horizon: int = Field(DEFAULT_ROLLING_MONTHS, ge=1, le=24, description="Months to process, the first month included")
    new_starter: Optional[NewStarterInfo] = None
    month: Optional[int] = Field(None, ge=1, le=12, description="First month; defaults to the active grid")
    year: Optional[int] = Field(None, ge=1900, le=9999)

    @field_validator('pattern')
    @classmethod
    def pattern_length(cls, v):
        if isinstance(v, list) and len(v) > MAX_PATTERN_LENGTH:
            raise ValueError(f"Pattern may hold at most {MAX_PATTERN_LENGTH} codes")
        return v


class MonthRef(BaseModel):
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=9999)


class GridSelection(BaseModel):
    months: List[MonthRef] = Field(..., min_length=1, max_length=24)


class MissingGrids(BaseModel):
    start_month: Optional[int] = Field(None, ge=1, le=12)
    start_year: Optional[int] = Field(None, ge=1900, le=9999)
    count: int = Field(DEFAULT_MISSING_MONTHS, ge=1, le=24)


class CellEdit(BaseModel):
    row: int = Field(..., ge=2)
    day: int = Field(..., ge=1, le=31)
    value: Optional[str] = Field(None, max_length=50)


@router.post("/api/patterns/apply", tags=["Schedule"], summary="Apply a pattern to a date range",
             description=(
                 "Writes the pattern over a date range inside one month. Ranges spanning several "
                 "months are declined with `needsManualProcessing` and the list of months."
             ))
def apply_pattern(body: PatternApply, service: RotaService = Depends(get_service)):
    try:
        return service.apply_pattern(body.staff_name, body.pattern, body.start_date, body.end_date)
    except OSError as e:
        raise _sanitize_500(e, 'apply_pattern')


@router.post("/api/patterns/rolling", tags=["Schedule"], summary="Apply a rolling pattern",
             description="Continues the pattern across consecutive month grids, creating missing grids.")
@limiter.limit("30/minute")
def apply_rolling_pattern(request: Request, body: RollingApply, service: RotaService = Depends(get_service)):
    try:
        return service.apply_rolling_pattern(
            body.staff_name, body.pattern, body.start_day, body.end_day,
            rolling_mode=body.rolling_mode,
            horizon=body.horizon,
            new_starter=body.new_starter.model_dump() if body.new_starter else None,
            month=body.month,
            year=body.year,
        )
    except OSError as e:
        raise _sanitize_500(e, 'apply_rolling_pattern')


@router.post("/api/grids", tags=["Schedule"], summary="Create selected month grids",
             description="Creates each missing grid, pre-filled with every available staff member.")
@limiter.limit("30/minute")
def create_monthly_grids(request: Request, body: GridSelection, service: RotaService = Depends(get_service)):
    try:
        return service.create_monthly_grids([m.model_dump() for m in body.months])
    except OSError as e:
        raise _sanitize_500(e, 'create_monthly_grids')


@router.post("/api/grids/missing", tags=["Schedule"], summary="Create consecutive empty month grids")
@limiter.limit("30/minute")
def create_missing_grids(request: Request, body: MissingGrids, service: RotaService = Depends(get_service)):
    try:
        return service.create_missing_grids(body.start_month, body.start_year, body.count)
    except OSError as e:
        raise _sanitize_500(e, 'create_missing_grids')


@router.get("/api/grids/{year}/{month}", tags=["Schedule"], summary="Read a month grid",
            description="Staff rows with day codes and computed aggregate values.")
def read_grid(year: int = Path(..., ge=1900, le=9999), month: int = Path(..., ge=1, le=12),
              service: RotaService = Depends(get_service)):
    return service.read_grid(month, year)


@router.post("/api/grids/{year}/{month}/validate-cell", tags=["Schedule"], summary="Check a manual cell edit")
def validate_cell(body: CellEdit, year: int = Path(..., ge=1900, le=9999), month: int = Path(..., ge=1, le=12),
                  service: RotaService = Depends(get_service)):
    return service.validate_cell_edit(month, year, body.row, body.day, body.value)


@router.post("/api/grids/{year}/{month}/activate", tags=["Schedule"], summary="Open a month grid",
             description="Makes the grid the active sheet used by rolling patterns and available staff.")
def activate_grid(year: int = Path(..., ge=1900, le=9999), month: int = Path(..., ge=1, le=12),
                  service: RotaService = Depends(get_service)):
    try:
        return service.open_grid(month, year)
    except OSError as e:
        raise _sanitize_500(e, 'activate_grid')
