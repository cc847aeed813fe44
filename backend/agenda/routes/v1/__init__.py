# backend/agenda/routes/v1/__init__.py
"""
API v1 routes.

Mounted under /api/v1 by ``agenda.main``.
"""

from fastapi import APIRouter

from . import appointments, providers, slots

api_v1 = APIRouter()
api_v1.include_router(slots.router)
api_v1.include_router(appointments.router)
api_v1.include_router(providers.router)

__all__ = ["api_v1"]
