import unittest

from database.models import CoinSide, GameStatus
from game import events
from game.commitment import commit
from game.cancellation import CancellationPolicy
from game.errors import TimingError, ValidationError

from support import ALICE, AUTHORITY, BET, BOB, CAROL, HOUSE, START_TIME, STARTING_BALANCE, make_engine, setup_committed_game


class CancellationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine, self.accounts, self.clock = make_engine()

    def test_lone_creator_cannot_cancel_at_deadline(self):
        self.engine.create_game(ALICE, 1, BET, HOUSE)
        self.clock.timestamp = START_TIME + 3600

        with self.assertRaises(TimingError):
            self.engine.cancel_game(CAROL, 1)
        self.assertEqual(self.engine.get_game(1).status, GameStatus.WAITING_FOR_OPPONENT)
        self.assertEqual(self.engine.escrow_balance(1), BET)

    def test_lone_creator_refund_after_deadline(self):
        self.engine.create_game(ALICE, 1, BET, HOUSE)
        self.clock.timestamp = START_TIME + 3601

        emitted = self.engine.cancel_game(CAROL, 1)

        game = self.engine.get_game(1)
        self.assertEqual(game.status, GameStatus.CANCELLED)
        self.assertEqual(game.cancelled_by, CAROL)
        self.assertEqual(game.cancelled_at, START_TIME + 3601)
        self.assertEqual(game.fees_collected, 200_000)
        self.assertEqual(game.escrow.balance, 0)
        self.assertTrue(game.escrow.drained)

        self.assertEqual(self.accounts.get_balance(ALICE), STARTING_BALANCE - BET + 9_800_000)
        self.assertEqual(self.accounts.get_balance(HOUSE), 200_000)
        self.assertEqual(self.accounts.get_balance(game.escrow.key), 0)

        self.assertEqual([e.type for e in emitted], [events.GAME_CANCELLED])
        self.assertEqual(emitted[0].payload["fees_collected"], 200_000)
        self.assertEqual(emitted[0].payload["refund_per_player"], 9_800_000)

    def test_joined_game_deadline_counts_from_join(self):
        self.engine.create_game(ALICE, 1, BET, HOUSE)
        self.clock.advance(seconds=10)
        self.engine.join_game(BOB, 1)

        self.clock.timestamp = START_TIME + 3610
        with self.assertRaises(TimingError):
            self.engine.cancel_game(ALICE, 1)

        self.clock.timestamp = START_TIME + 3611
        self.engine.cancel_game(ALICE, 1)

        self.assertEqual(self.accounts.get_balance(ALICE), STARTING_BALANCE - 200_000)
        self.assertEqual(self.accounts.get_balance(BOB), STARTING_BALANCE - 200_000)
        self.assertEqual(self.accounts.get_balance(HOUSE), 400_000)
        self.assertEqual(self.engine.get_game(1).fees_collected, 400_000)

    def test_stalled_reveal_can_be_cancelled(self):
        setup_committed_game(self.engine)
        self.engine.reveal(ALICE, 1, CoinSide.HEADS, 123456789)

        self.clock.timestamp = START_TIME + 3601
        self.engine.cancel_game(BOB, 1)

        game = self.engine.get_game(1)
        self.assertEqual(game.status, GameStatus.CANCELLED)
        self.assertIsNone(game.resolution)
        self.assertEqual(self.accounts.get_balance(HOUSE), 400_000)

    def test_cancel_twice_rejected(self):
        self.engine.create_game(ALICE, 1, BET, HOUSE)
        self.clock.timestamp = START_TIME + 3601
        self.engine.cancel_game(ALICE, 1)

        with self.assertRaises(ValidationError):
            self.engine.cancel_game(ALICE, 1)
        self.assertEqual(self.accounts.get_balance(HOUSE), 200_000)

    def test_cancel_after_resolution_rejected(self):
        setup_committed_game(self.engine)
        self.engine.reveal(ALICE, 1, CoinSide.HEADS, 123456789)
        self.engine.reveal(BOB, 1, CoinSide.TAILS, 987654321)
        balances = dict(self.accounts.balances)

        self.clock.timestamp = START_TIME + 10_000
        with self.assertRaises(ValidationError):
            self.engine.cancel_game(ALICE, 1)
        self.assertEqual(self.accounts.balances, balances)
        self.assertEqual(self.engine.get_game(1).status, GameStatus.RESOLVED)

    def test_commit_after_cancel_rejected(self):
        self.engine.create_game(ALICE, 1, BET, HOUSE)
        self.clock.advance(seconds=5)
        self.engine.join_game(BOB, 1)
        self.clock.timestamp = START_TIME + 5000
        self.engine.cancel_game(CAROL, 1)

        with self.assertRaises(ValidationError):
            self.engine.commit(ALICE, 1, commit(CoinSide.HEADS, 777))

    def test_policy_deadline_and_remaining_time(self):
        self.engine.create_game(ALICE, 1, BET, HOUSE)
        game = self.engine.get_game(1)
        policy = CancellationPolicy(open_timeout=60, play_timeout=600)

        self.assertEqual(policy.deadline(game), START_TIME + 60)
        self.assertEqual(policy.seconds_remaining(game, START_TIME), 61)
        self.assertEqual(policy.seconds_remaining(game, START_TIME + 61), 0)

        game.joined_at = START_TIME + 30
        self.assertEqual(policy.deadline(game), START_TIME + 630)

    def test_cancel_fee_frozen_at_creation(self):
        self.engine.create_game(ALICE, 1, BET, HOUSE)
        self.engine.config.update_cancellation_fee(AUTHORITY, 1000)
        self.clock.timestamp = START_TIME + 3601

        self.engine.cancel_game(ALICE, 1)
        self.assertEqual(self.accounts.get_balance(HOUSE), 200_000)


if __name__ == "__main__":
    unittest.main()
