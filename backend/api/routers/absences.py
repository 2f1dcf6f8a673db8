"""Absences and annual leave router."""
from datetime import datetime
from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field, field_validator, model_validator

from rotalib.constants import DEFAULT_ENTITLEMENT, MAX_DAYS_RANGE
from rotalib.service import RotaService
from ..dependencies import get_service, _sanitize_500

router = APIRouter()


# ── Write: absence ───────────────────────────────────────────
class AbsenceLog(BaseModel):
    staff_name: str = Field(..., min_length=1, max_length=100)
    absence_type: str = Field(..., min_length=1, max_length=50,
                              description="'Annual Leave', 'Sick Leave', 'Training' or any other label (written as OFF)")
    start_date: str = Field(..., pattern=r'^\d{4}-\d{2}-\d{2}$')
    end_date: str = Field(..., pattern=r'^\d{4}-\d{2}-\d{2}$')
    reason: str = Field('', max_length=500)

    @field_validator('start_date', 'end_date')
    @classmethod
    def validate_date(cls, v: str) -> str:
        try:
            datetime.strptime(v, '%Y-%m-%d')
        except ValueError:
            raise ValueError("Date must be a valid date in YYYY-MM-DD format")
        return v

    @model_validator(mode='after')
    def check_order(self) -> 'AbsenceLog':
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


class AllocationUpdate(BaseModel):
    days: float = Field(..., ge=0, le=MAX_DAYS_RANGE)


class AllocationDefaults(BaseModel):
    default: float = Field(DEFAULT_ENTITLEMENT, ge=0, le=MAX_DAYS_RANGE)


@router.post("/api/absences", tags=["Absences"], summary="Log an absence",
             description="Appends the absence to the log and writes its shift code into existing grids.")
def log_absence(body: AbsenceLog, service: RotaService = Depends(get_service)):
    try:
        return service.log_absence(body.staff_name, body.absence_type, body.start_date, body.end_date, body.reason)
    except OSError as e:
        raise _sanitize_500(e, 'log_absence')


@router.get("/api/absences", tags=["Absences"], summary="List logged absences")
def list_absences(service: RotaService = Depends(get_service)):
    return service.list_absences()


@router.get("/api/absences/stats", tags=["Absences"], summary="Absence days per staff member")
def absence_stats(service: RotaService = Depends(get_service)):
    return service.absence_stats()


# ── Annual leave ──────────────────────────────────────────────

@router.get("/api/leave/allocations", tags=["Leave"], summary="All annual leave allocations")
def get_allocations(service: RotaService = Depends(get_service)):
    return service.get_all_allocations()


@router.get("/api/leave/allocations/{name}", tags=["Leave"], summary="Allocation of one staff member")
def get_allocation(name: str = Path(..., min_length=1, max_length=100), service: RotaService = Depends(get_service)):
    return service.get_annual_leave_allocation(name)


@router.put("/api/leave/allocations/{name}", tags=["Leave"], summary="Set annual leave allocation",
            description="Rebuilds the staff member's Annual Leave formulas in existing grids.")
def set_allocation(body: AllocationUpdate, name: str = Path(..., min_length=1, max_length=100),
                   service: RotaService = Depends(get_service)):
    try:
        return service.set_annual_leave_allocation(name, body.days)
    except OSError as e:
        raise _sanitize_500(e, 'set_allocation')


@router.post("/api/leave/allocations/defaults", tags=["Leave"], summary="Default allocation for unconfigured staff")
def set_default_allocations(body: AllocationDefaults, service: RotaService = Depends(get_service)):
    try:
        return service.set_all_allocations(body.default)
    except OSError as e:
        raise _sanitize_500(e, 'set_default_allocations')


@router.put("/api/leave/entitlements/{name}/{year}", tags=["Leave"], summary="Set per-year entitlement override")
def set_entitlement(body: AllocationUpdate, name: str = Path(..., min_length=1, max_length=100),
                    year: int = Path(..., ge=1900, le=9999), service: RotaService = Depends(get_service)):
    try:
        return service.set_entitlement(name, year, body.days)
    except OSError as e:
        raise _sanitize_500(e, 'set_entitlement')
