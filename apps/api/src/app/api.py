from fastapi import APIRouter

from app.modules.activities.router import router as activities_router
from app.modules.applications.router import router as applications_router
from app.modules.attendance.router import router as attendance_router
from app.modules.audit_logs.router import router as audit_logs_router
from app.modules.auth import router as auth_router
from app.modules.notifications.router import router as notifications_router
from app.modules.users.router import router as users_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users_router, prefix="/users", tags=["Users"])
api_router.include_router(activities_router, prefix="/activities", tags=["Activities"])
api_router.include_router(applications_router, prefix="/applications", tags=["Applications"])
api_router.include_router(attendance_router, prefix="/attendance", tags=["Attendance"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(audit_logs_router, prefix="/audit-logs", tags=["Audit Logs"])
