"""
Coin flip resolution with provably fair randomness.

The outcome mixes both revealed secrets with entropy neither player
controls when committing (chain height, timestamp, optional oracle bytes).
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from database.models import CoinSide, Game, PlayerSlot
from .commitment import double_sha256, U64_MAX
from .errors import CoherencyError

logger = logging.getLogger(__name__)

TIEBREAK_SALT = b"coinflip-escrow/tiebreak/v1"


@dataclass(frozen=True)
class ExternalEntropy:
    """Entropy unavailable to either player in advance."""
    height: int
    timestamp: int
    extra: bytes = b""


@dataclass(frozen=True)
class FlipResult:
    """Result of resolving one game."""
    outcome: CoinSide
    winner: PlayerSlot
    tie_break: bool
    tiebreak_seed: bytes


def _u64(value: int) -> bytes:
    return (value & U64_MAX).to_bytes(8, "little")


def mix_secrets(secret_a: int, secret_b: int) -> int:
    """Multiplicative mix of both secrets, reduced to 64 bits."""
    return (secret_a * secret_b) & U64_MAX


def coin_flip(secret_a: int, secret_b: int, entropy: ExternalEntropy) -> Tuple[CoinSide, bytes]:
    """Flip the coin.

    Args:
        secret_a: Player A's revealed secret
        secret_b: Player B's revealed secret
        entropy: Height/timestamp/extra entropy at resolution time

    Returns:
        Tuple of (outcome, tiebreak_seed)
    """
    mix = mix_secrets(secret_a, secret_b)
    data = _u64(mix) + _u64(entropy.height) + _u64(entropy.timestamp) + entropy.extra
    digest = double_sha256(data)

    # Low-order bit of the first 8 bytes read little-endian
    value = int.from_bytes(digest[:8], "little")
    outcome = CoinSide.HEADS if value % 2 == 0 else CoinSide.TAILS

    tiebreak_seed = double_sha256(TIEBREAK_SALT + _u64(mix) + _u64(entropy.height))

    logger.debug(f"[FLIP] height={entropy.height} ts={entropy.timestamp} hash={digest.hex()[:16]}... -> {outcome.value}")
    return outcome, tiebreak_seed


def tiebreak_winner(tiebreak_seed: bytes) -> PlayerSlot:
    """Pick a seat from the tie-break seed, independent of the coin outcome."""
    value = int.from_bytes(tiebreak_seed[:8], "little")
    return PlayerSlot.A if value % 2 == 0 else PlayerSlot.B


def determine_winner(
    choice_a: CoinSide,
    choice_b: CoinSide,
    outcome: CoinSide,
    tiebreak_seed: bytes,
) -> Tuple[PlayerSlot, bool]:
    """Decide the winning seat.

    Returns:
        Tuple of (winner_slot, tie_break_used)

    Raises:
        CoherencyError: If correctness does not agree with the choices
    """
    a_correct = choice_a == outcome
    b_correct = choice_b == outcome
    same_choice = choice_a == choice_b

    if a_correct != b_correct:
        if same_choice:
            raise CoherencyError("Identical choices produced a single correct player", code="incoherent_outcome")
        return (PlayerSlot.A if a_correct else PlayerSlot.B), False

    # Both correct or both wrong
    if not same_choice:
        raise CoherencyError("Differing choices produced an ambiguous outcome", code="incoherent_outcome")
    return tiebreak_winner(tiebreak_seed), True


def resolve(
    choice_a: CoinSide,
    secret_a: int,
    choice_b: CoinSide,
    secret_b: int,
    entropy: ExternalEntropy,
) -> FlipResult:
    """Flip the coin and pick the winner for a fully revealed game."""
    outcome, tiebreak_seed = coin_flip(secret_a, secret_b, entropy)
    winner, tie_break = determine_winner(choice_a, choice_b, outcome, tiebreak_seed)
    return FlipResult(outcome=outcome, winner=winner, tie_break=tie_break, tiebreak_seed=tiebreak_seed)


def verify_resolution(game: Game) -> bool:
    """Recompute a resolved game's result from its stored reveals.

    Allows anyone to verify the game was fair.

    Returns:
        True if the stored outcome and winner match, False otherwise
    """
    res = game.resolution
    if res is None or not game.both_revealed:
        return False

    entropy = ExternalEntropy(height=res.height, timestamp=res.timestamp, extra=res.extra_entropy)
    try:
        result = resolve(
            game.revelation_a.choice, game.revelation_a.secret,
            game.revelation_b.choice, game.revelation_b.secret,
            entropy,
        )
    except CoherencyError:
        return False

    expected_winner: Optional[str] = game.player_in(result.winner)
    return (
        result.outcome == res.outcome
        and result.tie_break == res.tie_break
        and expected_winner == res.winner
    )
