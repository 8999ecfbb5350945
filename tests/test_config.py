import unittest

from game import events
from game.config import ProgramConfig
from game.errors import AuthorizationError, ProgramPausedError, ValidationError

from support import ALICE, AUTHORITY, BET, BOB, HOUSE, START_TIME, make_config, make_engine


class ProgramConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = make_config()

    def test_non_authority_cannot_change_anything(self):
        with self.assertRaises(AuthorizationError):
            self.config.update_house_fee(ALICE, 100)
        with self.assertRaises(AuthorizationError):
            self.config.pause(ALICE)
        with self.assertRaises(AuthorizationError):
            self.config.transfer_authority(ALICE, ALICE)
        self.assertEqual(self.config.version, 1)
        self.assertEqual(self.config.current.house_fee_bps, 700)

    def test_config_without_authority_is_frozen(self):
        config = make_config(authority="")
        with self.assertRaises(AuthorizationError):
            config.update_house_fee("", 100)

    def test_fee_bounds_enforced(self):
        with self.assertRaises(ValidationError):
            self.config.update_house_fee(AUTHORITY, 1001)
        with self.assertRaises(ValidationError):
            self.config.update_cancellation_fee(AUTHORITY, -1)
        self.assertEqual(self.config.version, 1)

        snapshot = self.config.update_house_fee(AUTHORITY, 1000)
        self.assertEqual(snapshot.house_fee_bps, 1000)

    def test_invalid_constructor_values_rejected(self):
        with self.assertRaises(ValidationError):
            ProgramConfig(authority=AUTHORITY, house_fee_bps=5000)
        with self.assertRaises(ValidationError):
            ProgramConfig(authority=AUTHORITY, min_bet=10, max_bet=5)
        with self.assertRaises(ValidationError):
            ProgramConfig(authority=AUTHORITY, min_bet=1, max_bet=2**63)

    def test_every_change_bumps_version(self):
        self.config.update_house_fee(AUTHORITY, 500)
        self.config.update_bet_limits(AUTHORITY, 1_000, 2_000_000)
        self.config.update_timeouts(AUTHORITY, 60, 120)
        self.config.set_auto_resolve(AUTHORITY, False)

        current = self.config.current
        self.assertEqual(current.version, 5)
        self.assertEqual((current.min_bet, current.max_bet), (1_000, 2_000_000))
        self.assertEqual((current.open_timeout, current.play_timeout), (60, 120))
        self.assertFalse(current.auto_resolve)

    def test_listeners_receive_config_events(self):
        received = []
        self.config.subscribe(received.append)

        self.config.update_house_fee(AUTHORITY, 300)

        self.assertEqual(len(received), 1)
        self.assertEqual(received[0].type, events.CONFIG_UPDATED)
        self.assertEqual(received[0].payload["old_value"], 700)
        self.assertEqual(received[0].payload["new_value"], 300)
        self.assertEqual(received[0].payload["version"], 2)

    def test_transfer_authority(self):
        self.config.transfer_authority(AUTHORITY, ALICE)

        with self.assertRaises(AuthorizationError):
            self.config.update_house_fee(AUTHORITY, 100)
        self.config.update_house_fee(ALICE, 100)
        self.assertEqual(self.config.current.authority, ALICE)

        with self.assertRaises(ValidationError):
            self.config.transfer_authority(ALICE, "")


class PauseTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine, self.accounts, self.clock = make_engine()

    def test_pause_blocks_create_and_join(self):
        self.engine.create_game(ALICE, 1, BET, HOUSE)
        self.engine.config.pause(AUTHORITY)

        with self.assertRaises(ProgramPausedError):
            self.engine.create_game(ALICE, 2, BET, HOUSE)
        with self.assertRaises(ProgramPausedError):
            self.engine.join_game(BOB, 1)
        self.assertFalse(self.engine.repo.game_exists(2))

        self.engine.config.unpause(AUTHORITY)
        self.engine.join_game(BOB, 1)

    def test_cancel_still_works_while_paused(self):
        self.engine.create_game(ALICE, 1, BET, HOUSE)
        self.engine.config.pause(AUTHORITY)
        self.clock.timestamp = START_TIME + 3601

        self.engine.cancel_game(ALICE, 1)
        self.assertEqual(self.accounts.get_balance(HOUSE), 200_000)

    def test_bet_limits_follow_live_config(self):
        self.engine.config.update_bet_limits(AUTHORITY, 50_000_000, 60_000_000)

        with self.assertRaises(ValidationError):
            self.engine.create_game(ALICE, 1, BET, HOUSE)
        self.engine.create_game(ALICE, 1, 50_000_000, HOUSE)


if __name__ == "__main__":
    unittest.main()
