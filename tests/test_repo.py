import os
import tempfile
import unittest

from database.models import CoinSide, GameStatus
from database.repo import Database, InMemoryGameRepository
from game.coinflip import CoinflipEngine

from support import ALICE, BET, BOB, CAROL, HOUSE, START_TIME, make_config, make_engine, setup_committed_game


class DatabaseTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self._tmp.name, "escrow.db")
        self.repo = Database(self.db_path)
        self.engine, self.accounts, self.clock = make_engine(repo=self.repo)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_resolved_game_round_trips(self):
        setup_committed_game(self.engine)
        self.engine.reveal(ALICE, 1, CoinSide.HEADS, 123456789)
        self.engine.reveal(BOB, 1, CoinSide.TAILS, 987654321)
        game = self.engine.get_game(1)

        reloaded = Database(self.db_path).get_game(1)

        self.assertEqual(reloaded, game)
        self.assertEqual(reloaded.status, GameStatus.RESOLVED)
        self.assertEqual(reloaded.resolution.winner_payout, 18_600_000)
        self.assertEqual(reloaded.escrow.contributions, {ALICE: BET, BOB: BET})
        self.assertTrue(self.engine.verify_game(1))

    def test_large_values_survive_storage(self):
        secret = 2**64 - 2
        setup_committed_game(self.engine, game_id=2**64 - 1, secret_a=secret, secret_b=2**63 + 11)
        self.engine.reveal(ALICE, 2**64 - 1, CoinSide.HEADS, secret)

        reloaded = Database(self.db_path).get_game(2**64 - 1)
        self.assertEqual(reloaded.game_id, 2**64 - 1)
        self.assertEqual(reloaded.revelation_a.secret, secret)
        self.assertEqual(reloaded.status, GameStatus.REVEALING)

    def test_cancelled_game_round_trips(self):
        self.engine.create_game(ALICE, 1, BET, HOUSE)
        self.clock.timestamp = START_TIME + 3601
        self.engine.cancel_game(CAROL, 1)

        reloaded = self.repo.get_game(1)
        self.assertEqual(reloaded.status, GameStatus.CANCELLED)
        self.assertEqual(reloaded.cancelled_by, CAROL)
        self.assertEqual(reloaded.fees_collected, 200_000)
        self.assertTrue(reloaded.escrow.drained)

    def test_listing_queries(self):
        self.engine.create_game(ALICE, 1, BET, HOUSE)
        self.clock.advance(seconds=1)
        self.engine.create_game(ALICE, 2, BET, HOUSE)
        self.clock.advance(seconds=1)
        self.engine.create_game(CAROL, 3, BET, HOUSE)
        self.engine.join_game(BOB, 3)

        self.assertEqual([g.game_id for g in self.repo.get_open_games()], [2, 1])
        self.assertEqual([g.game_id for g in self.repo.get_player_games(BOB)], [3])
        self.assertEqual(len(self.repo.get_player_games(ALICE)), 2)

    def test_missing_game(self):
        self.assertIsNone(self.repo.get_game(12345))
        self.assertFalse(self.repo.game_exists(12345))
    def test_max_height_covers_resolution(self):
        self.assertEqual(self.repo.max_height(), 0)

        setup_committed_game(self.engine)
        self.engine.reveal(ALICE, 1, CoinSide.HEADS, 123456789)
        self.clock.advance(seconds=1, blocks=5)
        self.engine.reveal(BOB, 1, CoinSide.TAILS, 987654321)

        self.assertEqual(self.engine.get_game(1).height_created, 100)
        self.assertEqual(self.repo.max_height(), 105)

    def test_restarted_engine_continues_heights(self):
        setup_committed_game(self.engine)
        self.engine.reveal(ALICE, 1, CoinSide.HEADS, 123456789)
        self.clock.advance(seconds=1, blocks=5)
        self.engine.reveal(BOB, 1, CoinSide.TAILS, 987654321)

        restarted = CoinflipEngine(repo=Database(self.db_path), gateway=self.accounts, config=make_config())
        self.assertEqual(restarted.clock.now().height, 106)

        restarted.create_game(CAROL, 2, BET, HOUSE)
        self.assertGreater(self.repo.get_game(2).height_created, self.repo.get_game(1).resolution.height)


class InMemoryRepositoryTests(unittest.TestCase):
    def test_max_height(self):
        repo = InMemoryGameRepository()
        engine, _, clock = make_engine(repo=repo)
        self.assertEqual(repo.max_height(), 0)

        clock.height = 250
        engine.create_game(ALICE, 1, BET, HOUSE)
        clock.height = 90
        engine.create_game(ALICE, 2, BET, HOUSE)
        self.assertEqual(repo.max_height(), 250)



if __name__ == "__main__":
    unittest.main()
