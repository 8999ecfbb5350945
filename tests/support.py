"""Shared fixtures for the escrow tests."""
import base58

from database.models import CoinSide
from database.repo import InMemoryGameRepository
from game.clock import ManualClock
from game.commitment import commit
from game.coinflip import CoinflipEngine
from game.config import ProgramConfig
from game.transfers import InMemoryAccounts


def account(n: int) -> str:
    """Deterministic base58 account address."""
    return base58.b58encode(bytes([n]) * 32).decode()


ALICE = account(1)
BOB = account(2)
CAROL = account(3)
HOUSE = account(9)
AUTHORITY = account(42)

BET = 10_000_000
MIN_BET = 10_000_000
MAX_BET = 100_000_000_000
STARTING_BALANCE = 1_000_000_000_000
START_TIME = 1_700_000_000


def make_config(**overrides) -> ProgramConfig:
    settings = dict(
        authority=AUTHORITY,
        house_fee_bps=700,
        cancel_fee_bps=200,
        min_bet=MIN_BET,
        max_bet=MAX_BET,
        open_timeout=3600,
        play_timeout=3600,
        auto_resolve=True,
    )
    settings.update(overrides)
    return ProgramConfig(**settings)


def make_engine(repo=None, entropy_source=None, audit=None, **config_overrides):
    """Engine with funded players, in-memory storage and a manual clock."""
    accounts = InMemoryAccounts({ALICE: STARTING_BALANCE, BOB: STARTING_BALANCE, CAROL: STARTING_BALANCE})
    clock = ManualClock(timestamp=START_TIME, height=100)
    engine = CoinflipEngine(
        repo=repo or InMemoryGameRepository(),
        gateway=accounts,
        config=make_config(**config_overrides),
        clock=clock,
        entropy_source=entropy_source,
        audit=audit,
    )
    return engine, accounts, clock


def setup_committed_game(
    engine,
    game_id: int = 1,
    bet: int = BET,
    choice_a: CoinSide = CoinSide.HEADS,
    secret_a: int = 123456789,
    choice_b: CoinSide = CoinSide.TAILS,
    secret_b: int = 987654321,
):
    """Create, join and commit both players."""
    engine.create_game(ALICE, game_id, bet, HOUSE)
    engine.join_game(BOB, game_id)
    engine.commit(ALICE, game_id, commit(choice_a, secret_a))
    engine.commit(BOB, game_id, commit(choice_b, secret_b))
