"""
Core coinflip game lifecycle with commit-reveal fairness.

Flow: create (A escrows) -> join (B escrows) -> both commit -> both reveal
-> coin flip + payout inside the second reveal. Any caller may cancel an
abandoned game once its timeout has passed.

Every operation works on a copy of the stored game, validates everything,
moves funds last, and only then saves. A failed call changes nothing.
"""
import copy
import functools
import logging
from typing import Callable, List, Optional

from database.models import (
    CoinSide,
    Game,
    GameStatus,
    Resolution,
    Revelation,
)
from database.repo import GameRepository
from security.audit import AuditLogger
from utils.formatting import format_bps, format_lamports, truncate_address
from utils.validation import is_valid_account_id, is_valid_bet_amount, is_valid_game_id
from . import commitment, events, randomness
from .clock import Clock, SystemClock
from .config import ProgramConfig
from .errors import (
    AuthorizationError,
    CoherencyError,
    CoinflipError,
    GameNotFoundError,
    IntegrityError,
    ProgramPausedError,
    TransferError,
    ValidationError,
)
from .escrow import EscrowLedger, compute_resolution_payout, create_escrow_account
from .events import GameEvent
from .randomness import ExternalEntropy
from .transfers import TransferGateway

logger = logging.getLogger(__name__)

EventListener = Callable[[GameEvent], None]


def _guarded(operation: str):
    """Run one call as a unit of work.

    Transfers made by a call that then fails are reversed. Every rejected
    call is logged and audited before the error propagates.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, caller, game_id, *args, **kwargs):
            self.ledger.begin()
            try:
                return func(self, caller, game_id, *args, **kwargs)
            except Exception as e:
                error = e
                if self.ledger.journal:
                    try:
                        self._reverse_transfers(game_id)
                    except CoherencyError as halt:
                        error = halt
                if isinstance(error, CoinflipError):
                    self._record_rejection(operation, caller, game_id, error)
                if error is e:
                    raise
                raise error
        return wrapper
    return decorator


def _require_account(address: str, label: str):
    is_valid, error = is_valid_account_id(address)
    if not is_valid:
        raise ValidationError(f"Invalid {label}: {error}", code="invalid_account")


class CoinflipEngine:
    """Two-player coinflip escrow state machine.

    Args:
        repo: Where games are stored
        gateway: Value-transfer backend holding player, escrow and house balances
        config: Program configuration (fees, limits, timeouts, pause flag)
        clock: Height/timestamp source
        entropy_source: Optional callable returning extra oracle entropy bytes
        audit: Optional audit log for events and rejections
    """

    def __init__(
        self,
        repo: GameRepository,
        gateway: TransferGateway,
        config: Optional[ProgramConfig] = None,
        clock: Optional[Clock] = None,
        entropy_source: Optional[Callable[[], bytes]] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.repo = repo
        self.gateway = gateway
        self.ledger = EscrowLedger(gateway)
        self.config = config or ProgramConfig()
        self.clock = clock or SystemClock(start_height=repo.max_height())
        self.entropy_source = entropy_source
        self.audit = audit
        self._listeners: List[EventListener] = []

        if audit is not None:
            self.subscribe(audit.record_event)
            self.config.subscribe(audit.record_event)

    # === Plumbing ===

    def subscribe(self, listener: EventListener):
        """Receive every event emitted by a successful call."""
        self._listeners.append(listener)

    def _load(self, game_id: int) -> Game:
        game = self.repo.get_game(game_id)
        if game is None:
            raise GameNotFoundError(f"Game {game_id} not found")
        return copy.deepcopy(game)

    def _commit(self, game: Game, emitted: List[GameEvent]) -> List[GameEvent]:
        """Save the working copy, then notify listeners.

        A failed save propagates and the caller's transfers are reversed.
        Listener failures are logged and never undo a saved call.
        """
        try:
            self.repo.save_game(game)
        except Exception:
            logger.error(f"[GAME] Failed to save game {game.game_id}, reversing transfers", exc_info=True)
            raise
        # Saved: nothing below may reverse this call's transfers
        self.ledger.begin()

        for event in emitted:
            for listener in self._listeners:
                try:
                    listener(event)
                except Exception:
                    logger.error(f"[GAME] Listener failed on {event.type} for game {game.game_id}", exc_info=True)
        return emitted

    def _reverse_transfers(self, game_id: int):
        try:
            self.ledger.reverse()
        except TransferError as e:
            logger.critical(f"[GAME] Could not reverse transfers for game {game_id}: {e}")
            raise CoherencyError(
                f"Game {game_id} was not saved and its transfers could not be reversed",
                code="unsaved_transfers",
            ) from e

    def _record_rejection(self, operation: str, caller: str, game_id: int, error: CoinflipError):
        if isinstance(error, CoherencyError):
            logger.critical(f"[GAME] {operation} on game {game_id} halted: {error}")
        else:
            logger.warning(f"[GAME] {operation} on game {game_id} rejected for {caller}: {error.code} - {error}")
        if self.audit is not None:
            self.audit.log_rejection(operation, caller, game_id, error)

    # === Read accessors ===

    def get_game(self, game_id: int) -> Game:
        return self._load(game_id)

    def escrow_balance(self, game_id: int) -> int:
        return self._load(game_id).escrow.balance

    def open_games(self, limit: int = 20) -> List[Game]:
        return self.repo.get_open_games(limit)

    def verify_game(self, game_id: int) -> bool:
        """Recompute a resolved game's outcome. Anyone can call this."""
        return randomness.verify_resolution(self._load(game_id))

    # === Lifecycle ===

    @_guarded("create_game")
    def create_game(self, caller: str, game_id: int, bet_amount: int, house_account: str) -> List[GameEvent]:
        """Open a game and escrow the creator's bet."""
        cfg = self.config.current
        if cfg.paused:
            raise ProgramPausedError("Program is paused")

        is_valid, error = is_valid_game_id(game_id)
        if not is_valid:
            raise ValidationError(error, code="invalid_game_id")
        _require_account(caller, "player address")
        _require_account(house_account, "house account")

        is_valid, error = is_valid_bet_amount(bet_amount, cfg.min_bet, cfg.max_bet)
        if not is_valid:
            raise ValidationError(error, code="invalid_bet_amount")

        if self.repo.game_exists(game_id):
            raise ValidationError(f"Game {game_id} already exists", code="game_exists")

        now = self.clock.now()
        game = Game(
            game_id=game_id,
            player_a=caller,
            bet_amount=bet_amount,
            house_account=house_account,
            escrow=create_escrow_account(game_id, caller),
            status=GameStatus.WAITING_FOR_OPPONENT,
            house_fee_bps=cfg.house_fee_bps,
            cancel_fee_bps=cfg.cancel_fee_bps,
            config_version=cfg.version,
            created_at=now.timestamp,
            height_created=now.height,
        )

        game.deposit_tx_a = self.ledger.deposit(game.escrow, caller, bet_amount)

        logger.info(
            f"[GAME] Game {game_id} created by {truncate_address(caller)} - bet {format_lamports(bet_amount)}, "
            f"house fee {format_bps(game.house_fee_bps)}"
        )
        return self._commit(game, [events.game_created(game_id, caller, bet_amount, house_account)])

    @_guarded("join_game")
    def join_game(self, caller: str, game_id: int) -> List[GameEvent]:
        """Take the second seat and escrow a matching bet."""
        if self.config.paused:
            raise ProgramPausedError("Program is paused")
        _require_account(caller, "player address")

        game = self._load(game_id)
        if game.status != GameStatus.WAITING_FOR_OPPONENT:
            raise ValidationError(f"Game {game_id} is not open ({game.status.value})", code="invalid_game_status")
        if caller == game.player_a:
            raise AuthorizationError("Cannot play against yourself", code="self_play")

        game.deposit_tx_b = self.ledger.deposit(game.escrow, caller, game.bet_amount)
        game.player_b = caller
        game.joined_at = self.clock.now().timestamp
        game.status = GameStatus.PLAYERS_PRESENT

        logger.info(f"[GAME] {truncate_address(caller)} joined game {game_id}, escrow {format_lamports(game.escrow.balance)}")
        return self._commit(game, [events.player_joined(game_id, caller)])

    @_guarded("commit")
    def commit(self, caller: str, game_id: int, digest: bytes) -> List[GameEvent]:
        """Store a player's commitment digest."""
        # Zero or malformed digests are rejected in every phase
        commitment.validate_digest(digest)
        digest = bytes(digest)

        game = self._load(game_id)
        if game.status != GameStatus.PLAYERS_PRESENT:
            raise ValidationError(f"Game {game_id} is not accepting commitments ({game.status.value})", code="invalid_game_status")

        slot = game.slot_of(caller)
        if slot is None:
            raise AuthorizationError(f"{caller} is not a player in game {game_id}", code="not_a_player")
        if game.commitments.get(slot) is not None:
            raise ValidationError("Player has already made a commitment", code="already_committed")

        game.commitments.set(slot, digest)
        if game.commitments.complete:
            game.status = GameStatus.COMMITMENTS_COMPLETE
            logger.info(f"[GAME] Game {game_id} commitments complete")

        return self._commit(game, [events.commitment_made(game_id, caller, digest)])

    @_guarded("reveal")
    def reveal(self, caller: str, game_id: int, choice: CoinSide, secret: int) -> List[GameEvent]:
        """Open a commitment. The second reveal resolves the game in the same call."""
        game = self._load(game_id)
        if game.status not in (GameStatus.COMMITMENTS_COMPLETE, GameStatus.REVEALING):
            raise ValidationError(f"Game {game_id} is not in the reveal phase ({game.status.value})", code="invalid_game_status")

        slot = game.slot_of(caller)
        if slot is None:
            raise AuthorizationError(f"{caller} is not a player in game {game_id}", code="not_a_player")
        if game.revelation(slot) is not None:
            raise ValidationError("Choice already revealed", code="already_revealed")
        if not isinstance(choice, CoinSide):
            raise ValidationError("Choice must be HEADS or TAILS", code="invalid_choice")
        commitment.validate_secret(secret)

        if not commitment.verify(game.commitments.get(slot), choice, secret):
            raise IntegrityError(f"Reveal does not match commitment for {caller} in game {game_id}", code="commitment_mismatch")

        game.set_revelation(slot, Revelation(choice=choice, secret=secret))
        game.status = GameStatus.REVEALING
        emitted = [events.choice_revealed(game_id, caller, choice.value, secret)]
        logger.info(f"[GAME] {truncate_address(caller)} revealed {choice.value} in game {game_id}")

        if game.both_revealed and self.config.current.auto_resolve:
            emitted.append(self._resolve(game))

        return self._commit(game, emitted)

    @_guarded("resolve_game")
    def resolve_game(self, caller: str, game_id: int) -> List[GameEvent]:
        """Resolve a fully revealed game. Fallback when auto-resolution is off."""
        game = self._load(game_id)
        if game.status == GameStatus.RESOLVED:
            raise ValidationError("Game is already resolved", code="already_resolved")
        if game.status == GameStatus.CANCELLED:
            raise ValidationError("Game is already cancelled", code="already_cancelled")
        if not game.both_revealed:
            raise ValidationError("Game is not ready for resolution", code="not_ready_for_resolution")

        logger.info(f"[GAME] Manual resolution of game {game_id} by {truncate_address(caller)}")
        return self._commit(game, [self._resolve(game)])

    @_guarded("cancel_game")
    def cancel_game(self, caller: str, game_id: int) -> List[GameEvent]:
        """Refund an abandoned game minus cancellation fees. Any caller, after the timeout."""
        game = self._load(game_id)
        now = self.clock.now()
        policy = self.config.current.cancellation_policy
        policy.check_cancellable(game, now.timestamp)

        plan = policy.refund_plan(game)
        tx_ids = self.ledger.refund_cancellation(game.escrow, game.house_account, plan)

        game.status = GameStatus.CANCELLED
        game.cancelled_at = now.timestamp
        game.cancelled_by = caller
        game.fees_collected = plan.total_fees
        game.payout_tx = ",".join(tx_ids) or None

        logger.info(
            f"[CANCEL] Game {game_id} cancelled by {truncate_address(caller)} - refunded "
            f"{format_lamports(plan.refund_per_player)} to {plan.funded_players} player(s), "
            f"fees {format_lamports(plan.total_fees)}"
        )
        return self._commit(game, [
            events.game_cancelled(game_id, caller, now.timestamp, plan.total_fees, plan.refund_per_player)
        ])

    # === Resolution ===

    def _resolve(self, game: Game) -> GameEvent:
        """Flip, pay out and mark the working copy resolved.

        Raises before any transfer if the flip is incoherent or the payout
        math overflows.
        """
        if game.resolution is not None or game.escrow.drained:
            raise CoherencyError(f"Game {game.game_id} already has a resolution", code="already_resolved")

        now = self.clock.now()
        extra = self.entropy_source() if self.entropy_source else b""
        entropy = ExternalEntropy(height=now.height, timestamp=now.timestamp, extra=extra)

        result = randomness.resolve(
            game.revelation_a.choice, game.revelation_a.secret,
            game.revelation_b.choice, game.revelation_b.secret,
            entropy,
        )
        winner = game.player_in(result.winner)
        if winner is None:
            raise CoherencyError(f"Game {game.game_id} winner seat {result.winner.value} is empty", code="incoherent_outcome")

        plan = compute_resolution_payout(game.bet_amount, game.house_fee_bps)
        tx_ids = self.ledger.payout_resolution(game.escrow, winner, game.house_account, plan)

        game.resolution = Resolution(
            outcome=result.outcome,
            winner=winner,
            tie_break=result.tie_break,
            winner_payout=plan.winner_payout,
            house_fee=plan.house_fee,
            height=now.height,
            timestamp=now.timestamp,
            extra_entropy=extra,
            tiebreak_seed=result.tiebreak_seed,
        )
        game.status = GameStatus.RESOLVED
        game.resolved_at = now.timestamp
        game.payout_tx = ",".join(tx_ids) or None

        logger.info(
            f"[GAME] Game {game.game_id} resolved: coin {result.outcome.value}, winner {truncate_address(winner)}"
            f"{' (tie-break)' if result.tie_break else ''}, payout {format_lamports(plan.winner_payout)}, "
            f"house fee {format_lamports(plan.house_fee)}"
        )
        return events.game_resolved(
            game.game_id,
            winner,
            result.outcome.value,
            plan.winner_payout,
            plan.house_fee,
            result.tie_break,
            now.timestamp,
        )
