"""Shift catalog router."""
from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field

from rotalib.service import RotaService
from ..dependencies import get_service, _sanitize_500

router = APIRouter()


class CustomShiftCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=16)
    label: str = Field(..., min_length=1, max_length=50)
    hours: float = Field(..., ge=0, le=24)
    color: str = Field('#4A90D9', pattern=r'^#?[0-9A-Fa-f]{6}$')


@router.get("/api/shifts", tags=["Shifts"], summary="Resolved shift catalog",
            description="Visible shift types keyed by code, plus every type with its hidden flag.")
def get_shifts(service: RotaService = Depends(get_service)):
    return service.resolve_catalog()


@router.post("/api/shifts/custom", tags=["Shifts"], summary="Create or replace a custom shift",
             description="Existing grids are resynced (validation, colors, aggregate formulas).")
def save_custom_shift(body: CustomShiftCreate, service: RotaService = Depends(get_service)):
    try:
        return service.save_custom_shift(body.code, body.label, body.hours, body.color)
    except OSError as e:
        raise _sanitize_500(e, 'save_custom_shift')


@router.delete("/api/shifts/{code}", tags=["Shifts"], summary="Delete custom shift or hide built-in")
def delete_shift(code: str = Path(..., min_length=1, max_length=16), service: RotaService = Depends(get_service)):
    try:
        return service.delete_shift(code)
    except OSError as e:
        raise _sanitize_500(e, 'delete_shift')


@router.post("/api/shifts/{code}/restore", tags=["Shifts"], summary="Restore a hidden built-in shift")
def restore_shift(code: str = Path(..., min_length=1, max_length=16), service: RotaService = Depends(get_service)):
    try:
        return service.restore_shift(code)
    except OSError as e:
        raise _sanitize_500(e, 'restore_shift')
