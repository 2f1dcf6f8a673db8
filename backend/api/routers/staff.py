"""Staff router: persisted staff list, available staff, removing staff rows from a grid."""
from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

from rotalib.service import RotaService
from ..dependencies import get_service, _sanitize_500

router = APIRouter()


class StaffCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    role: Optional[str] = Field(None, max_length=100)

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name must not be blank")
        return v.strip()


class StaffUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[str] = Field(None, max_length=100)


class StaffRowRef(BaseModel):
    name: str = Field(..., min_length=1)
    row: int = Field(..., ge=2)


class RemoveStaffBody(BaseModel):
    staff: List[StaffRowRef] = Field(..., min_length=1)


@router.get("/api/staff/available", tags=["Staff"], summary="Staff available for scheduling",
            description=(
                "Staff list entries first, then names only found on the grid for month/year "
                "(default: the active grid)."
            ))
def available_staff(month: Optional[int] = Query(None, ge=1, le=12),
                    year: Optional[int] = Query(None, ge=1900, le=9999),
                    service: RotaService = Depends(get_service)):
    return service.resolve_available_staff(month, year)


@router.get("/api/staff", tags=["Staff"], summary="List staff")
def list_staff(service: RotaService = Depends(get_service)):
    return service.get_staff_list()


@router.post("/api/staff", tags=["Staff"], summary="Add staff member")
def add_staff(body: StaffCreate, service: RotaService = Depends(get_service)):
    try:
        return service.add_staff_member(body.model_dump(exclude_none=True))
    except OSError as e:
        raise _sanitize_500(e, 'add_staff')


@router.put("/api/staff/{staff_id}", tags=["Staff"], summary="Update staff member")
def update_staff(body: StaffUpdate, staff_id: str = Path(..., min_length=1),
                 service: RotaService = Depends(get_service)):
    try:
        return service.update_staff_member(staff_id, body.model_dump(exclude_none=True))
    except OSError as e:
        raise _sanitize_500(e, 'update_staff')


@router.delete("/api/staff/{staff_id}", tags=["Staff"], summary="Delete staff member")
def delete_staff(staff_id: str = Path(..., min_length=1), service: RotaService = Depends(get_service)):
    try:
        return service.delete_staff_member(staff_id)
    except OSError as e:
        raise _sanitize_500(e, 'delete_staff')


@router.post("/api/grids/{year}/{month}/remove-staff", tags=["Staff"], summary="Remove staff rows from a grid",
             description="Clears each given row after checking the name at that row still matches.")
def remove_staff_rows(body: RemoveStaffBody,
                      year: int = Path(..., ge=1900, le=9999),
                      month: int = Path(..., ge=1, le=12),
                      service: RotaService = Depends(get_service)):
    try:
        return service.remove_staff_rows(month, year, [s.model_dump() for s in body.staff])
    except OSError as e:
        raise _sanitize_500(e, 'remove_staff_rows')
