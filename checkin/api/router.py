"""
Main API router for the daily check-in

Aggregates all API routes and provides the main application router.
"""

from fastapi import APIRouter

from checkin.api.endpoints import checkin, voice

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(
    checkin.router,
    prefix="/checkin",
    tags=["Check-in"]
)

api_router.include_router(
    voice.router,
    prefix="/checkin",
    tags=["Voice"]
)
