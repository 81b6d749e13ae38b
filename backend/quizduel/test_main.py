from __future__ import annotations

import logging
from unittest import TestCase

from fastapi.testclient import TestClient

from .logging_config import setup_logging
from .main import app, get_store
from .models import UNASSIGNED
from .store import InMemoryRecordStore
from .test_generator import QUESTIONS


class MatchStoreApiTests(TestCase):
    def setUp(self) -> None:
        self.store = InMemoryRecordStore()
        app.dependency_overrides[get_store] = lambda: self.store
        self.client = TestClient(app)
        self.client.__enter__()

    def tearDown(self) -> None:
        self.client.__exit__(None, None, None)
        app.dependency_overrides.clear()

    def _create(self, player_one_id: str = "alice") -> dict:
        response = self.client.post("/api/matches", json={"player_one_id": player_one_id})
        self.assertEqual(response.status_code, 201)
        return response.json()

    def test_health(self):
        self.assertEqual(self.client.get("/api/health").json(), {"ok": True})

    def test_create_applies_defaults(self):
        body = self._create()
        self.assertTrue(body["id"])
        self.assertEqual(body["player_two_id"], UNASSIGNED)
        self.assertEqual(body["questions"], [])
        self.assertEqual(body["current_question_index"], 0)

    def test_list_filters_open_matches(self):
        open_match = self._create("alice")
        closed = self._create("carol")
        self.client.patch(f"/api/matches/{closed['id']}", json={"player_two_id": "dave"})

        response = self.client.get("/api/matches", params={"player_two_id": UNASSIGNED})

        self.assertEqual([m["id"] for m in response.json()["matches"]], [open_match["id"]])

    def test_patch_updates_only_sent_fields(self):
        match = self._create()
        self.client.patch(f"/api/matches/{match['id']}", json={"player_two_id": "bob"})

        response = self.client.patch(
            f"/api/matches/{match['id']}", json={"current_question_index": 1, "player_one_score": 10}
        )

        body = response.json()
        self.assertEqual(body["player_two_id"], "bob")
        self.assertEqual(body["player_one_score"], 10)
        self.assertEqual(body["current_question_index"], 1)

    def test_patch_questions_round_trip(self):
        match = self._create()
        self.client.patch(f"/api/matches/{match['id']}", json={"questions": QUESTIONS})

        body = self.client.get(f"/api/matches/{match['id']}").json()

        self.assertEqual([q["question"] for q in body["questions"]], [q["question"] for q in QUESTIONS])
        self.assertEqual(body["questions"][1]["correctAnswer"], "1989")

    def test_patch_rejects_invalid_question(self):
        match = self._create()
        broken = dict(QUESTIONS[0], correctAnswer="Picasso")

        response = self.client.patch(f"/api/matches/{match['id']}", json={"questions": [broken]})

        self.assertEqual(response.status_code, 422)

    def test_patch_unknown_match(self):
        response = self.client.patch("/api/matches/missing", json={"player_two_id": "bob"})
        self.assertEqual(response.status_code, 404)

    def test_get_unknown_match(self):
        self.assertEqual(self.client.get("/api/matches/missing").status_code, 404)

    def test_change_feed(self):
        match = self._create()
        self._create("carol")
        self.client.patch(f"/api/matches/{match['id']}", json={"player_two_id": "bob"})

        body = self.client.get("/api/matches/changes", params={"after": 0, "id": match["id"]}).json()

        self.assertEqual([e["seq"] for e in body["events"]], [1, 3])
        self.assertEqual(body["events"][-1]["record"]["player_two_id"], "bob")
        self.assertEqual(body["latest_seq"], 3)
        self.assertEqual(body["head_seq"], 3)

    def test_change_feed_head_only(self):
        self._create()
        body = self.client.get("/api/matches/changes", params={"limit": 0}).json()
        self.assertEqual(body["events"], [])
        self.assertEqual(body["head_seq"], 1)


class SetupLoggingTests(TestCase):
    def test_repeated_setup_keeps_one_handler(self):
        setup_logging("DEBUG")
        logger = setup_logging("WARNING")

        own = [h for h in logger.handlers if getattr(h, "_quizduel", False)]
        self.assertEqual(len(own), 1)
        self.assertEqual(logger.level, logging.WARNING)
        self.assertEqual(logger.name, "backend.quizduel")
