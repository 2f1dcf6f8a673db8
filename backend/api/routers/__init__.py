"""API Routers package."""
from . import staff, shifts, schedule, absences

__all__ = ['staff', 'shifts', 'schedule', 'absences']
