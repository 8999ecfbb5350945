"""
Timeout-driven cancellation.

There is no background expiry: a game becomes cancellable once its phase
deadline has passed, and only when someone calls cancel.
"""
import logging
from dataclasses import dataclass

from database.models import Game
from utils.formatting import format_timestamp
from .escrow import CancellationRefund, compute_cancellation_refund
from .errors import TimingError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CancellationPolicy:
    """Deadlines for abandoning a game.

    open_timeout: seconds after creation before an unjoined game can be cancelled
    play_timeout: seconds after joining before a joined game can be cancelled
    """
    open_timeout: int
    play_timeout: int

    def deadline(self, game: Game) -> int:
        """Unix time after which the game may be cancelled."""
        if game.joined_at is None:
            return game.created_at + self.open_timeout
        return game.joined_at + self.play_timeout

    def seconds_remaining(self, game: Game, now: int) -> int:
        return max(0, self.deadline(game) - now + 1)

    def check_cancellable(self, game: Game, now: int):
        """Raise unless game can be cancelled at time now.

        Raises:
            ValidationError: If the game is already resolved or cancelled
            TimingError: If the deadline has not passed yet
        """
        if game.is_terminal:
            raise ValidationError(f"Game is already {game.status.value}", code=f"already_{game.status.value}")

        deadline = self.deadline(game)
        if now <= deadline:
            raise TimingError(
                f"Too early to cancel game {game.game_id}: {self.seconds_remaining(game, now)}s remaining "
                f"(deadline {format_timestamp(deadline)})",
                code="too_early_to_cancel",
            )

    def refund_plan(self, game: Game) -> CancellationRefund:
        """Refunds for the players who actually funded the escrow, at the fee frozen at creation."""
        plan = compute_cancellation_refund(game.bet_amount, game.escrow.funded_players, game.cancel_fee_bps)
        logger.info(
            f"[CANCEL] Game {game.game_id}: {plan.funded_players} funded player(s), "
            f"refund {plan.refund_per_player} each, fees {plan.total_fees}"
        )
        return plan
