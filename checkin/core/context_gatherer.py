"""
Context Gatherer - fetches the user's history snapshot at session start.

The snapshot personalizes the conversation and decides which interview
stages apply. It is fetched once; a failed fetch degrades to an empty
context rather than blocking the session.
"""

import logging

import httpx

from checkin.config.settings import Settings, get_settings
from checkin.models.context import UserContext

logger = logging.getLogger(__name__)


class ContextGatherer:
    """Client for the context source."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.client = client or httpx.AsyncClient(
            base_url=self.settings.api_base_url.rstrip("/"),
            headers=self.settings.auth_headers,
            timeout=30.0,
        )

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def gather(self) -> UserContext:
        """
        Fetch the user context snapshot.

        Returns:
            The snapshot, or an empty UserContext if the source is unavailable
        """
        try:
            response = await self.client.get(self.settings.context_path)
            response.raise_for_status()

            data = response.json()
            # Accept both a bare object and the {success, data} envelope
            if isinstance(data, dict) and isinstance(data.get("data"), dict):
                data = data["data"]

            context = UserContext.model_validate(data or {})
            logger.info(
                f"Loaded user context: goal={context.has_active_goal} "
                f"challenges={context.has_challenges} habits={context.has_habits}"
            )
            return context

        except Exception as e:
            # Any failure degrades; the session must still start
            logger.warning(f"Context fetch failed, continuing without personalization: {e}")
            return UserContext()
