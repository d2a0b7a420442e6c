"""
Daily Check-in - guided interview conversation engine

Drives a staged check-in conversation (mood, goals, challenges, habits,
growth) over a streamed responder, with voice input and spoken replies,
before handing off to open chat.
"""

__version__ = "0.1.0"
__author__ = "Daily Check-in Team"
