"""API v1 routes."""

from fastapi import APIRouter

from vulnradar.api.v1 import audit, auth, companies, health, tasks, users, vendors, vulnerabilities

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(companies.router, prefix="/companies", tags=["companies"])
router.include_router(vendors.router, prefix="/vendors", tags=["vendors"])
router.include_router(vulnerabilities.router, prefix="/vulnerabilities", tags=["vulnerabilities"])
router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
router.include_router(audit.router, prefix="/audit-logs", tags=["audit"])
