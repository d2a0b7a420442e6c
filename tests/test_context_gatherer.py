"""
Context Gatherer — Test Suite

Run with: python -m pytest tests/test_context_gatherer.py -v
"""

import tempfile
import unittest

import httpx

from checkin.core.context_gatherer import ContextGatherer
from checkin.models.context import UserContext
from tests.fakes import make_settings, mock_client


class TestContextGatherer(unittest.IsolatedAsyncioTestCase):
    """Test fetching the context snapshot."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.settings = make_settings(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    async def gather(self, handler) -> UserContext:
        gatherer = ContextGatherer(client=mock_client(handler), settings=self.settings)
        try:
            return await gatherer.gather()
        finally:
            await gatherer.close()

    async def test_parses_camel_case_snapshot(self):
        body = {
            "displayName": "Sam",
            "activeGoal": {"title": "Run a 10k", "domain": "fitness"},
            "dayInJourney": 12,
            "todayChallenge": {"title": "Run 3km", "status": "pending"},
            "habitStats": {"totalHabits": 2, "weeklyCompletionRate": 0.8, "habits": []},
            "recentSurveys": [{"energyLevel": 7, "overallMood": 8}],
            "unexpected": True,
        }
        context = await self.gather(lambda request: httpx.Response(200, json=body))

        self.assertEqual(context.display_name, "Sam")
        self.assertEqual(context.day_in_journey, 12)
        self.assertTrue(context.has_active_goal)
        self.assertTrue(context.has_challenges)
        self.assertTrue(context.has_habits)
        self.assertEqual(context.recent_surveys[0].overall_mood, 8)
        self.assertFalse(context.is_empty)

    async def test_unwraps_envelope(self):
        body = {"success": True, "data": {"displayName": "Ana"}}
        context = await self.gather(lambda request: httpx.Response(200, json=body))
        self.assertEqual(context.display_name, "Ana")
        self.assertFalse(context.has_active_goal)

    async def test_failure_degrades_to_empty(self):
        for handler in (
            lambda request: httpx.Response(500),
            lambda request: httpx.Response(200, content=b"<html>"),
            lambda request: httpx.Response(200, json={"activeGoal": {"domain": "no title"}}),
        ):
            context = await self.gather(handler)
            self.assertTrue(context.is_empty)

    async def test_network_error_degrades_to_empty(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        self.assertTrue((await self.gather(handler)).is_empty)

    async def test_unexpected_error_degrades_to_empty(self):
        """Test failures outside the HTTP and validation errors still degrade."""

        def handler(request):
            raise RuntimeError("context source exploded")

        with self.assertLogs("checkin.core.context_gatherer", level="WARNING"):
            context = await self.gather(handler)

        self.assertTrue(context.is_empty)


if __name__ == "__main__":
    unittest.main()
