"""API router composition for the HirePanel application."""

from __future__ import annotations

from fastapi import APIRouter

from hirepanel.features.rbac.router import router as rbac_router

api_router = APIRouter(prefix="/v1")
api_router.include_router(rbac_router)

__all__ = ["api_router"]
