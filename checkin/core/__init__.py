"""
Core business logic modules for the daily check-in

Contains:
- Check-in Session: Coordinates one interview conversation
- Stage Controller: Stage state machine and skip logic
- Conversation Transport: Streamed responder calls
- Context Gatherer: User context snapshot
- Message Log: Ordered turn record
- Audio Processing / Voice Recorder / Speech Player / Dictation: Voice I/O
"""

from checkin.core.checkin_session import CheckinSession, InputLockedError
from checkin.core.stage_controller import StageController
from checkin.core.conversation_transport import ConversationTransport, FALLBACK_REPLY
from checkin.core.context_gatherer import ContextGatherer
from checkin.core.message_log import MessageLog
from checkin.core.audio_processor import AudioProcessor
from checkin.core.voice_recorder import VoiceRecorder
from checkin.core.speech_player import SpeechPlayer
from checkin.core.dictation import ContinuousDictation

__all__ = [
    "CheckinSession",
    "InputLockedError",
    "StageController",
    "ConversationTransport",
    "FALLBACK_REPLY",
    "ContextGatherer",
    "MessageLog",
    "AudioProcessor",
    "VoiceRecorder",
    "SpeechPlayer",
    "ContinuousDictation",
]
