"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from district_events.api.routes import auth, churches, events, registrations

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(churches.router)
api_router.include_router(events.router)
api_router.include_router(registrations.router)
