"""
Data models for the daily check-in

Contains Pydantic models for:
- Interview stages
- User context snapshots
- Conversation turns and stream events
- Voice recording sessions
"""

from checkin.models.stage import Stage, STAGE_ORDER
from checkin.models.context import (
    UserContext,
    ActiveGoal,
    ChallengeSummary,
    HabitStats,
    HabitSummary,
    SurveySummary,
)
from checkin.models.conversation import (
    Turn,
    TurnRole,
    TurnOutcome,
    StreamEvent,
    TextDelta,
    StageSignal,
    StreamError,
    StreamDone,
    Discard,
)
from checkin.models.recording import (
    RecordingSession,
    RecordingState,
    InvalidRecordingTransition,
)

__all__ = [
    # Stage
    "Stage",
    "STAGE_ORDER",
    # Context
    "UserContext",
    "ActiveGoal",
    "ChallengeSummary",
    "HabitStats",
    "HabitSummary",
    "SurveySummary",
    # Conversation
    "Turn",
    "TurnRole",
    "TurnOutcome",
    "StreamEvent",
    "TextDelta",
    "StageSignal",
    "StreamError",
    "StreamDone",
    "Discard",
    # Recording
    "RecordingSession",
    "RecordingState",
    "InvalidRecordingTransition",
]
