"""
API Dependencies

Provides dependency injection for API endpoints.
Manages the singleton session registry and the clients it shares.
"""

import logging

import httpx

from checkin.config.settings import Settings, get_settings
from checkin.api.media import ClipSlot, RelayedRecognizer, UploadedMicrophone, clip_factory
from checkin.core.audio_processor import AudioProcessor
from checkin.core.checkin_session import CheckinSession
from checkin.core.context_gatherer import ContextGatherer
from checkin.core.conversation_transport import ConversationTransport
from checkin.core.preferences import PreferenceStore
from checkin.models.stage import Stage

logger = logging.getLogger(__name__)


class SessionNotFoundError(Exception):
    """Raised when a session id is unknown."""
    pass


class HostedSession:
    """A check-in session plus the media adapters the browser talks to."""

    def __init__(
        self,
        session: CheckinSession,
        microphone: UploadedMicrophone,
        clips: ClipSlot,
        recognizer: RelayedRecognizer,
    ):
        self.session = session
        self.microphone = microphone
        self.clips = clips
        self.recognizer = recognizer


class SessionRegistry:
    """
    In-memory registry of hosted sessions.

    All sessions share one HTTP client to the remote collaborators and one
    durable preference store.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        preferences: PreferenceStore | None = None,
    ):
        self.settings = settings or get_settings()
        self.client = client or httpx.AsyncClient(
            base_url=self.settings.api_base_url.rstrip("/"),
            headers=self.settings.auth_headers,
        )
        self.preferences = preferences or PreferenceStore(self.settings.preferences_path)
        self.processor = AudioProcessor(client=self.client, settings=self.settings)

        self._sessions: dict[str, HostedSession] = {}

    def create(self, initial_stage: Stage | None = None) -> HostedSession:
        microphone = UploadedMicrophone()
        clips = ClipSlot()
        recognizer = RelayedRecognizer()

        session = CheckinSession(
            gatherer=ContextGatherer(client=self.client, settings=self.settings),
            transport=ConversationTransport(client=self.client, settings=self.settings),
            processor=self.processor,
            playback_factory=clip_factory(clips),
            input_factory=lambda: microphone,
            preferences=self.preferences,
            settings=self.settings,
            initial_stage=initial_stage,
            recognizer=recognizer,
        )

        hosted = HostedSession(session, microphone, clips, recognizer)
        self._sessions[session.session_id] = hosted
        logger.info(f"Created hosted session: {session.session_id}")
        return hosted

    def get(self, session_id: str) -> HostedSession:
        hosted = self._sessions.get(session_id)
        if hosted is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return hosted

    def remove(self, session_id: str) -> None:
        hosted = self._sessions.pop(session_id, None)
        if hosted is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        hosted.session.close()

    async def close(self) -> None:
        for hosted in self._sessions.values():
            hosted.session.close()
        self._sessions.clear()
        await self.client.aclose()


# ============================================================================
# SINGLETON INSTANCES
# ============================================================================

_registry: SessionRegistry | None = None


def get_registry() -> SessionRegistry:
    """Get the session registry singleton."""
    global _registry

    if _registry is None:
        _registry = SessionRegistry()

    return _registry


async def cleanup():
    """Cleanup resources on shutdown."""
    global _registry

    if _registry:
        await _registry.close()
        _registry = None
