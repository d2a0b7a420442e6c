"""
API layer for the daily check-in

Contains FastAPI routers for:
- Check-in session lifecycle and event streaming
- Voice recording and spoken replies
"""

from checkin.api.router import api_router

__all__ = ["api_router"]
