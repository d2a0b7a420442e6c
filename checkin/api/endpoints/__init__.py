"""
API endpoint modules for the daily check-in
"""

from checkin.api.endpoints import checkin, voice

__all__ = ["checkin", "voice"]
