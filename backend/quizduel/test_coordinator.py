from __future__ import annotations

from unittest import IsolatedAsyncioTestCase, mock

from .coordinator import MatchCoordinator
from .errors import CoordinationError, StoreUnavailableError
from .models import UNASSIGNED
from .observer import MatchObserver
from .state import GamePhase, LocalGame, PlayerRole
from .store import InMemoryRecordStore


class _Player:
    def __init__(self, store, player_id: str):
        self.game = LocalGame(player_id=player_id)
        self.observer = MatchObserver(store, self.game)
        self.coordinator = MatchCoordinator(store, self.observer)


class MatchCoordinatorTests(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.store = InMemoryRecordStore()
        self.players = []

    async def asyncTearDown(self) -> None:
        for player in self.players:
            await player.observer.stop()

    def _player(self, player_id: str) -> _Player:
        player = _Player(self.store, player_id)
        self.players.append(player)
        return player

    async def test_creates_match_when_none_open(self):
        alice = self._player("alice")

        handle = await alice.coordinator.find_or_create_match("alice")

        doc = await self.store.get(handle.match_id)
        self.assertEqual(doc["player_one_id"], "alice")
        self.assertEqual(doc["player_two_id"], UNASSIGNED)
        self.assertEqual(doc["questions"], [])
        self.assertEqual(handle.role, PlayerRole.PLAYER_ONE)
        self.assertEqual(alice.game.phase, GamePhase.SEARCHING)
        self.assertEqual(alice.game.match_id, handle.match_id)

    async def test_claims_open_match(self):
        alice = self._player("alice")
        bob = self._player("bob")
        alice_handle = await alice.coordinator.find_or_create_match("alice")

        bob_handle = await bob.coordinator.find_or_create_match("bob")

        self.assertEqual(bob_handle.match_id, alice_handle.match_id)
        self.assertEqual(bob_handle.role, PlayerRole.PLAYER_TWO)
        doc = await self.store.get(alice_handle.match_id)
        self.assertEqual(doc["player_two_id"], "bob")
        self.assertEqual(bob.game.phase, GamePhase.FOUND)
        self.assertEqual(len(await self.store.list()), 1)

    async def test_hands_match_to_observer(self):
        alice = self._player("alice")

        await alice.coordinator.find_or_create_match("alice")

        self.assertTrue(alice.observer.active)

    async def test_third_player_opens_new_match(self):
        await self._player("alice").coordinator.find_or_create_match("alice")
        await self._player("bob").coordinator.find_or_create_match("bob")

        carol = self._player("carol")
        handle = await carol.coordinator.find_or_create_match("carol")

        self.assertEqual(handle.role, PlayerRole.PLAYER_ONE)
        self.assertEqual(len(await self.store.list()), 2)

    async def test_double_claim_keeps_last_writer(self):
        alice = self._player("alice")
        handle = await alice.coordinator.find_or_create_match("alice")
        bob = self._player("bob")
        carol = self._player("carol")

        # Both claimers read the open match before either claims it.
        open_matches = await self.store.list({"player_two_id": UNASSIGNED})
        with mock.patch.object(self.store, "list", mock.AsyncMock(return_value=open_matches)):
            bob_handle = await bob.coordinator.find_or_create_match("bob")
            carol_handle = await carol.coordinator.find_or_create_match("carol")

        self.assertEqual(bob_handle.match_id, handle.match_id)
        self.assertEqual(carol_handle.match_id, handle.match_id)
        self.assertEqual(bob.game.phase, GamePhase.FOUND)
        self.assertEqual(carol.game.phase, GamePhase.FOUND)
        self.assertEqual((await self.store.get(handle.match_id))["player_two_id"], "carol")

    async def test_store_failure_is_coordination_error(self):
        alice = self._player("alice")

        with mock.patch.object(self.store, "list", mock.AsyncMock(side_effect=StoreUnavailableError("down"))):
            with self.assertRaises(CoordinationError) as ctx:
                await alice.coordinator.find_or_create_match("alice")

        self.assertEqual(ctx.exception.player_id, "alice")
        self.assertEqual(alice.game.phase, GamePhase.ERROR)
        self.assertFalse(alice.observer.active)

    async def test_create_failure_moves_to_error(self):
        alice = self._player("alice")

        with mock.patch.object(self.store, "create", mock.AsyncMock(side_effect=StoreUnavailableError("down"))):
            with self.assertRaises(CoordinationError):
                await alice.coordinator.find_or_create_match("alice")

        self.assertEqual(alice.game.phase, GamePhase.ERROR)
        self.assertEqual(await self.store.list(), [])
