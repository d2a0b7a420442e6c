"""
Check-in API — Test Suite

Drives the FastAPI host with a registry whose collaborators are scripted.

Run with: python -m pytest tests/test_api.py -v
"""

import asyncio
import json
import tempfile
import threading
import time
import unittest
from unittest.mock import MagicMock

import httpx
from fastapi.testclient import TestClient

from checkin.api.dependencies import SessionRegistry, get_registry
from checkin.api.endpoints.checkin import encode_change, stream_events
from checkin.core.message_log import LogChange
from checkin.core.preferences import PreferenceStore
from checkin.models.conversation import Turn, TurnRole
from checkin.models.stage import Stage
from main import app
from tests.fakes import frames, make_settings, mock_client, stream_response


class ScriptedCollaborators:
    """Context source, responder, STT and TTS behind one handler."""

    def __init__(self):
        self.responder_open = threading.Event()
        self.responder_open.set()
        self.requests: list[dict] = []

    async def __call__(self, request: httpx.Request):
        path = request.url.path
        if path == "/api/interview/context":
            return httpx.Response(200, json={"displayName": "Sam"})
        if path == "/api/tts":
            return httpx.Response(200, content=b"WAVDATA")
        if path == "/api/transcribe":
            return httpx.Response(200, json={"text": "slept well"})

        self.requests.append(json.loads(request.content))
        while not self.responder_open.is_set():
            await asyncio.sleep(0.01)
        return stream_response(frames({"text": "How are you feeling today?"}))


class APITestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        settings = make_settings(self._tmp.name)
        self.collaborators = ScriptedCollaborators()
        self.registry = SessionRegistry(
            settings=settings,
            client=mock_client(self.collaborators),
            preferences=PreferenceStore(settings.preferences_path),
        )
        app.dependency_overrides[get_registry] = lambda: self.registry
        self.client = TestClient(app)
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)
        app.dependency_overrides.clear()
        self._tmp.cleanup()

    def create_session(self, **body) -> str:
        response = self.client.post("/api/checkin/sessions", json=body)
        self.assertEqual(response.status_code, 201)
        return response.json()["session_id"]

    def status(self, session_id: str) -> dict:
        response = self.client.get(f"/api/checkin/sessions/{session_id}")
        self.assertEqual(response.status_code, 200)
        return response.json()

    def wait_for(self, session_id: str, predicate, timeout: float = 3.0) -> dict:
        deadline = time.monotonic() + timeout
        while True:
            current = self.status(session_id)
            if predicate(current):
                return current
            if time.monotonic() > deadline:
                self.fail(f"Condition not reached, last status: {current}")
            time.sleep(0.02)

    def wait_until_idle(self, session_id: str) -> dict:
        return self.wait_for(
            session_id,
            lambda s: not s["loading"] and not s["busy"] and s["turns"],
        )


class TestHealth(APITestCase):

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "healthy")


class TestSessions(APITestCase):
    """Test session lifecycle endpoints."""

    def test_create_runs_opening_turn(self):
        session_id = self.create_session()
        current = self.wait_until_idle(session_id)

        self.assertEqual(current["stage"], "mood")
        self.assertEqual(current["stage_label"], "Mood")
        self.assertEqual(current["turns"][0]["role"], "assistant")
        self.assertEqual(current["turns"][0]["content"], "How are you feeling today?")
        self.assertEqual(self.collaborators.requests[0]["message"], "__START_INTERVIEW__")

    def test_create_with_unknown_stage(self):
        response = self.client.post("/api/checkin/sessions", json={"initial_stage": "lunch"})
        self.assertEqual(response.status_code, 400)

    def test_unknown_session(self):
        self.assertEqual(self.client.get("/api/checkin/sessions/nope").status_code, 404)
        self.assertEqual(self.client.delete("/api/checkin/sessions/nope").status_code, 404)

    def test_submit_and_reject_while_streaming(self):
        session_id = self.create_session()
        self.wait_until_idle(session_id)

        self.collaborators.responder_open.clear()
        first = self.client.post(f"/api/checkin/sessions/{session_id}/messages", json={"message": "Pretty good"})
        self.assertEqual(first.status_code, 202)

        second = self.client.post(f"/api/checkin/sessions/{session_id}/messages", json={"message": "Again"})
        self.assertEqual(second.status_code, 409)

        current = self.status(session_id)
        self.assertTrue(current["busy"])
        self.assertEqual(current["turns"][1]["content"], "Pretty good")

        self.collaborators.responder_open.set()
        current = self.wait_for(session_id, lambda s: not s["busy"])
        self.assertEqual(current["exchange_count"], 1)
        self.assertEqual(len(current["turns"]), 3)

    def test_pending_input_is_submitted(self):
        session_id = self.create_session()
        self.wait_until_idle(session_id)

        response = self.client.put(f"/api/checkin/sessions/{session_id}/input", json={"text": "typed"})
        self.assertEqual(response.json()["pending_input"], "typed")

        response = self.client.post(f"/api/checkin/sessions/{session_id}/messages", json={})
        self.assertEqual(response.status_code, 202)
        self.wait_for(session_id, lambda s: not s["busy"])
        self.assertEqual(self.collaborators.requests[1]["message"], "typed")

    def test_empty_message_is_rejected(self):
        session_id = self.create_session()
        self.wait_until_idle(session_id)

        response = self.client.post(f"/api/checkin/sessions/{session_id}/messages", json={"message": "  "})
        self.assertEqual(response.status_code, 400)

    def test_end_session(self):
        session_id = self.create_session()
        self.wait_until_idle(session_id)

        response = self.client.delete(f"/api/checkin/sessions/{session_id}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get(f"/api/checkin/sessions/{session_id}").status_code, 404)


class TestEventEncoding(unittest.TestCase):

    def test_change_frame(self):
        session = MagicMock(stage=Stage.MOOD)
        turn = Turn(role=TurnRole.ASSISTANT, content="Hi")

        frame = encode_change(LogChange(kind="mutated", turn=turn, autoscroll=False), session)

        self.assertTrue(frame.startswith("data: "))
        self.assertTrue(frame.endswith("\n\n"))
        data = json.loads(frame[len("data: "):])
        self.assertEqual(data["kind"], "mutated")
        self.assertEqual(data["turn"]["id"], turn.id)
        self.assertEqual(data["turn"]["content"], "Hi")
        self.assertFalse(data["autoscroll"])
        self.assertEqual(data["stage"], "mood")

    def test_closed_frame_has_no_turn(self):
        frame = encode_change(LogChange(kind="closed", autoscroll=False), MagicMock(stage=Stage.MOOD))
        data = json.loads(frame[len("data: "):])
        self.assertEqual(data["kind"], "closed")
        self.assertIsNone(data["turn"])


class TestEventStream(unittest.IsolatedAsyncioTestCase):
    """Test the lifetime of an events subscription."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        settings = make_settings(self._tmp.name)
        self.registry = SessionRegistry(
            settings=settings,
            client=mock_client(ScriptedCollaborators()),
            preferences=PreferenceStore(settings.preferences_path),
        )

    async def asyncTearDown(self):
        await self.registry.close()
        self._tmp.cleanup()

    async def test_stream_ends_when_session_is_deleted(self):
        session = self.registry.create().session
        response = await stream_events(session.session_id, self.registry)
        body = response.body_iterator

        pending = asyncio.ensure_future(body.__anext__())
        await asyncio.sleep(0)
        self.assertFalse(pending.done())
        self.assertEqual(session.log.subscriber_count, 1)

        self.registry.remove(session.session_id)

        frame = await asyncio.wait_for(pending, 1.0)
        self.assertEqual(json.loads(frame[len("data: "):])["kind"], "closed")
        with self.assertRaises(StopAsyncIteration):
            await body.__anext__()
        self.assertEqual(session.log.subscriber_count, 0)

    async def test_subscribing_to_a_closed_log_ends_immediately(self):
        session = self.registry.create().session
        session.close()

        response = await stream_events(session.session_id, self.registry)
        frames_seen = [frame async for frame in response.body_iterator]

        self.assertEqual(len(frames_seen), 1)
        self.assertEqual(json.loads(frames_seen[0][len("data: "):])["kind"], "closed")


class TestVoiceEndpoints(APITestCase):
    """Test recording, mute and playback endpoints."""

    def test_recording_flow(self):
        session_id = self.create_session()
        self.wait_until_idle(session_id)
        base = f"/api/checkin/sessions/{session_id}/recording"

        self.client.put(f"/api/checkin/sessions/{session_id}/input", json={"text": "Honestly,"})

        response = self.client.post(f"{base}/start")
        self.assertEqual(response.json()["recording_state"], "recording")

        response = self.client.post(f"{base}/chunk", files={"audio": ("c.webm", b"\x1a\x45\xdf", "audio/webm")})
        self.assertEqual(response.status_code, 200)

        response = self.client.post(f"{base}/pause")
        self.assertEqual(response.json()["recording_state"], "paused")

        response = self.client.post(f"{base}/chunk", files={"audio": ("c.webm", b"late", "audio/webm")})
        self.assertEqual(response.status_code, 409)

        self.client.post(f"{base}/resume")
        response = self.client.post(f"{base}/stop")
        body = response.json()

        self.assertEqual(body["recording_state"], "stopped")
        self.assertEqual(body["transcript"], "slept well")
        self.assertEqual(body["pending_input"], "Honestly, slept well")
        self.assertIsNone(body["error"])

    def test_invalid_recording_action(self):
        session_id = self.create_session()
        base = f"/api/checkin/sessions/{session_id}/recording"

        self.assertEqual(self.client.post(f"{base}/pause").status_code, 409)
        self.assertEqual(self.client.post(f"{base}/rewind").status_code, 422)

    def test_playback_then_mute(self):
        session_id = self.create_session()
        self.wait_for(session_id, lambda s: s["playing"])

        response = self.client.get(f"/api/checkin/sessions/{session_id}/playback")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"WAVDATA")
        clip_id = response.headers["x-clip-id"]

        response = self.client.post(f"/api/checkin/sessions/{session_id}/playback/ended", json={"clip_id": clip_id})
        self.assertEqual(response.status_code, 204)
        self.assertEqual(self.client.get(f"/api/checkin/sessions/{session_id}/playback").status_code, 204)

        response = self.client.post(f"/api/checkin/sessions/{session_id}/mute")
        self.assertTrue(response.json()["muted"])
        self.assertTrue(self.status(session_id)["muted"])

    def test_mute_stops_current_clip(self):
        session_id = self.create_session()
        self.wait_for(session_id, lambda s: s["playing"])

        self.client.post(f"/api/checkin/sessions/{session_id}/mute")

        self.assertFalse(self.status(session_id)["playing"])
        self.assertEqual(self.client.get(f"/api/checkin/sessions/{session_id}/playback").status_code, 204)

    def test_dictation_flow(self):
        session_id = self.create_session()
        self.wait_until_idle(session_id)
        base = f"/api/checkin/sessions/{session_id}/dictation"

        self.assertEqual(self.client.post(f"{base}/segments", json={"segments": ["early"]}).status_code, 409)

        response = self.client.post(f"{base}/start")
        self.assertTrue(response.json()["dictating"])
        self.assertEqual(self.client.post(f"{base}/start").status_code, 409)

        response = self.client.post(f"{base}/segments", json={"segments": ["I feel"]})
        self.assertEqual(response.status_code, 200)
        self.wait_for(session_id, lambda s: s["pending_input"] == "I feel")

        response = self.client.post(f"{base}/stop")
        body = response.json()

        self.assertFalse(body["dictating"])
        self.assertEqual(body["transcript"], "I feel")
        self.assertEqual(body["pending_input"], "I feel")
        self.assertFalse(self.status(session_id)["dictating"])


if __name__ == "__main__":
    unittest.main()
