"""
API router aggregating all endpoints.
"""
from fastapi import APIRouter

from requestdesk.api.endpoints import (
    auth,
    organizations,
    users,
    directory,
    requests,
    reports,
    contact,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(directory.router, tags=["Directory"])
api_router.include_router(requests.router, tags=["Requests"])
api_router.include_router(reports.router, tags=["Reports"])
api_router.include_router(contact.router, tags=["Contact"])

# Administration
api_router.include_router(organizations.admin_router, prefix="/admin/organizations", tags=["Admin"])
api_router.include_router(users.admin_router, prefix="/admin/users", tags=["Admin"])
api_router.include_router(directory.admin_router, prefix="/admin", tags=["Admin"])
api_router.include_router(contact.admin_router, prefix="/admin", tags=["Admin"])
