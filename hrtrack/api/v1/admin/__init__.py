"""Admin API (ADMIN role only)."""
from fastapi import APIRouter
from hrtrack.api.v1.admin import attendance as admin_attendance
from hrtrack.api.v1.admin import leaves as admin_leaves

admin_router = APIRouter(prefix="/admin", tags=["admin"])
admin_router.include_router(admin_attendance.router, prefix="/attendance", tags=["admin-attendance"])
admin_router.include_router(admin_leaves.router, prefix="/leaves", tags=["admin-leaves"])
