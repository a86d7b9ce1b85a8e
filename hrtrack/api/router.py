"""
Main API router
"""
from fastapi import APIRouter

from hrtrack.api.v1 import (
    health,
    auth,
    employees,
    attendance,
    leaves,
    notifications,
    version,
)
from hrtrack.api.v1.admin import admin_router

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(version.router, tags=["version"])
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(employees.router, prefix="/employees", tags=["employees"])
api_router.include_router(attendance.router, prefix="/attendance", tags=["attendance"])
api_router.include_router(admin_router)
api_router.include_router(leaves.router, prefix="/leaves", tags=["leaves"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
