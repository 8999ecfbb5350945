"""
Escrow accounting for pooled game funds.

SECURITY: Each game gets its own escrow account, derived deterministically
from (game_id, creator). The ledger tracks every contribution and pays out
exactly once, for exactly the tracked balance.
"""
import hashlib
import logging
from dataclasses import dataclass
from typing import List, Tuple

from database.models import EscrowAccount
from utils.formatting import format_lamports, truncate_address
from .commitment import U64_MAX
from .errors import CoherencyError, PayoutArithmeticError, ValidationError
from .transfers import Move, TransferGateway

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = 10_000

Payout = Tuple[str, int]  # (recipient, amount)


# === Checked unsigned 64-bit arithmetic ===

def _check_operand(value: int):
    if isinstance(value, bool) or not isinstance(value, int) or value < 0 or value > U64_MAX:
        raise PayoutArithmeticError(f"Operand out of range: {value!r}", code="overflow")


def checked_add(a: int, b: int) -> int:
    _check_operand(a)
    _check_operand(b)
    result = a + b
    if result > U64_MAX:
        raise PayoutArithmeticError(f"Overflow: {a} + {b}", code="overflow")
    return result


def checked_sub(a: int, b: int) -> int:
    _check_operand(a)
    _check_operand(b)
    if b > a:
        raise PayoutArithmeticError(f"Underflow: {a} - {b}", code="underflow")
    return a - b


def checked_mul(a: int, b: int) -> int:
    _check_operand(a)
    _check_operand(b)
    result = a * b
    if result > U64_MAX:
        raise PayoutArithmeticError(f"Overflow: {a} * {b}", code="overflow")
    return result


def bps_of(amount: int, bps: int) -> int:
    """floor(amount * bps / 10000) without wrapping."""
    return checked_mul(amount, bps) // BPS_DENOMINATOR


# === Payout computation ===

@dataclass(frozen=True)
class ResolutionPayout:
    """Split of the pot for a resolved game."""
    pot: int
    house_fee: int
    winner_payout: int


@dataclass(frozen=True)
class CancellationRefund:
    """Split of the escrow for a cancelled game."""
    funded_players: int
    refund_per_player: int
    fee_per_player: int
    total_fees: int
    total_escrowed: int


def compute_resolution_payout(bet_amount: int, fee_bps: int) -> ResolutionPayout:
    """Compute winner payout and house fee.

    Example:
        bet 10_000_000 at 700 bps -> pot 20_000_000, fee 1_400_000,
        payout 18_600_000

    Raises:
        PayoutArithmeticError: On overflow/underflow
    """
    pot = checked_mul(bet_amount, 2)
    house_fee = bps_of(pot, fee_bps)
    winner_payout = checked_sub(pot, house_fee)
    if checked_add(winner_payout, house_fee) != pot:
        raise PayoutArithmeticError("Payout does not sum to pot", code="payout_mismatch")
    return ResolutionPayout(pot=pot, house_fee=house_fee, winner_payout=winner_payout)


def compute_cancellation_refund(bet_amount: int, funded_players: int, cancel_bps: int) -> CancellationRefund:
    """Compute refunds for however many players actually funded the escrow.

    Raises:
        PayoutArithmeticError: On overflow/underflow
        CoherencyError: If funded_players is not 1 or 2
    """
    if funded_players not in (1, 2):
        raise CoherencyError(f"Unexpected funded player count: {funded_players}", code="bad_contributions")

    fee_per_player = bps_of(bet_amount, cancel_bps)
    refund_per_player = checked_sub(bet_amount, fee_per_player)
    total_fees = checked_mul(fee_per_player, funded_players)
    total_refunds = checked_mul(refund_per_player, funded_players)
    total_escrowed = checked_mul(bet_amount, funded_players)
    if checked_add(total_refunds, total_fees) != total_escrowed:
        raise PayoutArithmeticError("Refunds do not sum to escrow", code="payout_mismatch")

    return CancellationRefund(
        funded_players=funded_players,
        refund_per_player=refund_per_player,
        fee_per_player=fee_per_player,
        total_fees=total_fees,
        total_escrowed=total_escrowed,
    )


# === Escrow accounts ===

def derive_escrow_key(game_id: int, creator: str) -> str:
    """Deterministic escrow handle for a game.

    Same (game_id, creator) always yields the same key; any change in either
    yields an unrelated key.
    """
    if isinstance(game_id, bool) or not isinstance(game_id, int) or game_id < 0 or game_id > U64_MAX:
        raise ValidationError(f"Invalid game id: {game_id!r}", code="invalid_game_id")
    seed = b"escrow" + creator.encode("utf-8") + game_id.to_bytes(8, "little")
    return f"escrow_{hashlib.sha256(seed).hexdigest()}"


def create_escrow_account(game_id: int, creator: str) -> EscrowAccount:
    key = derive_escrow_key(game_id, creator)
    logger.info(f"[ESCROW] Derived escrow {truncate_address(key, 11, 6)} for game {game_id}")
    return EscrowAccount(key=key)


class EscrowLedger:
    """Moves funds in and out of escrow accounts through a transfer gateway."""

    def __init__(self, gateway: TransferGateway):
        self.gateway = gateway
        # Moves applied since the last begin(), in order
        self.journal: List[Move] = []

    def begin(self):
        """Start a new unit of work. Earlier moves can no longer be reversed."""
        self.journal = []

    def _apply(self, moves: List[Move]) -> List[str]:
        tx_ids = self.gateway.transfer_batch(moves)
        self.journal.extend(moves)
        return tx_ids

    def reverse(self) -> List[str]:
        """Undo every move applied since begin(), newest first, as one batch.

        Raises:
            TransferError: If a recipient no longer holds the funds
        """
        moves = [(destination, source, amount) for source, destination, amount in reversed(self.journal)]
        self.journal = []
        if not moves:
            return []
        tx_ids = self.gateway.transfer_batch(moves)
        logger.warning(f"[ESCROW] Reversed {len(moves)} transfer(s)")
        return tx_ids

    def deposit(self, account: EscrowAccount, player: str, amount: int) -> str:
        """Collect a player's stake into escrow.

        Returns:
            Transfer ID

        Raises:
            CoherencyError: If the account is drained or the player already funded
            TransferError: If the player cannot cover the amount
        """
        if account.drained:
            raise CoherencyError(f"Escrow {account.key} already drained", code="escrow_drained")
        if player in account.contributions:
            raise CoherencyError(f"Player {player} already funded escrow {account.key}", code="double_deposit")

        new_balance = checked_add(account.balance, amount)
        tx_id = self._apply([(player, account.key, amount)])[0]

        account.balance = new_balance
        account.contributions[player] = amount
        logger.info(f"[ESCROW] Collected {format_lamports(amount)} from {truncate_address(player)} (tx: {tx_id})")
        return tx_id

    def check_escrow_balance(self, account: EscrowAccount) -> bool:
        """True if the gateway holds exactly the tracked balance for this escrow."""
        actual = self.gateway.get_balance(account.key)
        is_matching = actual == account.balance

        if is_matching:
            logger.info(f"[ESCROW CHECK] {account.key[:15]}... holds {actual} (tracked {account.balance}) ✓")
        else:
            logger.warning(f"[ESCROW CHECK] {account.key[:15]}... holds {actual} (tracked {account.balance}) ✗")

        return is_matching

    def disburse(self, account: EscrowAccount, payouts: List[Payout]) -> List[str]:
        """Drain the escrow to the given recipients in one all-or-nothing batch.

        Raises:
            CoherencyError: If already drained, amounts do not sum to the
                balance, or the gateway balance disagrees with the ledger
            TransferError: If the gateway rejects the batch
        """
        if account.drained:
            raise CoherencyError(f"Escrow {account.key} already drained", code="escrow_drained")

        total = 0
        for recipient, amount in payouts:
            total = checked_add(total, amount)
        if total != account.balance:
            raise CoherencyError(
                f"Payouts {total} do not match escrow balance {account.balance}",
                code="payout_mismatch",
            )

        if not self.check_escrow_balance(account):
            raise CoherencyError(f"Escrow {account.key} balance does not match the ledger", code="escrow_balance_mismatch")

        moves = [(account.key, recipient, amount) for recipient, amount in payouts if amount > 0]
        tx_ids = self._apply(moves) if moves else []

        account.balance = 0
        account.drained = True
        for (_, recipient, amount), tx_id in zip(moves, tx_ids):
            logger.info(f"[ESCROW] Paid {format_lamports(amount)} to {truncate_address(recipient)} (tx: {tx_id})")
        return tx_ids

    def payout_resolution(self, account: EscrowAccount, winner: str, house: str, plan: ResolutionPayout) -> List[str]:
        """Pay the winner and the house from a full pot."""
        if plan.pot != account.balance:
            raise CoherencyError(f"Pot {plan.pot} does not match escrow balance {account.balance}", code="payout_mismatch")
        return self.disburse(account, [(winner, plan.winner_payout), (house, plan.house_fee)])

    def refund_cancellation(self, account: EscrowAccount, house: str, plan: CancellationRefund) -> List[str]:
        """Refund every funded player minus the cancellation fee; fees go to the house."""
        if plan.funded_players != account.funded_players or plan.total_escrowed != account.balance:
            raise CoherencyError(
                f"Refund plan for {plan.funded_players} players does not match escrow "
                f"({account.funded_players} players, balance {account.balance})",
                code="payout_mismatch",
            )
        payouts = [(player, plan.refund_per_player) for player in account.contributions]
        payouts.append((house, plan.total_fees))
        return self.disburse(account, payouts)
