"""
Data models for the coinflip escrow.
"""
from dataclasses import dataclass, field
from typing import Optional, Dict
from enum import Enum


class GameStatus(Enum):
    """Lifecycle status of a game."""
    WAITING_FOR_OPPONENT = "waiting_for_opponent"  # Creator funded, no opponent yet
    PLAYERS_PRESENT = "players_present"            # Both funded, commitments pending
    COMMITMENTS_COMPLETE = "commitments_complete"  # Both digests stored
    REVEALING = "revealing"                        # At least one reveal recorded
    RESOLVED = "resolved"                          # Terminal
    CANCELLED = "cancelled"                        # Terminal


TERMINAL_STATUSES = (GameStatus.RESOLVED, GameStatus.CANCELLED)


class CoinSide(Enum):
    """Side of the coin."""
    HEADS = "heads"
    TAILS = "tails"

    @property
    def tag(self) -> int:
        """Byte tag used inside commitments."""
        return 0 if self is CoinSide.HEADS else 1


class PlayerSlot(Enum):
    """Which seat a participant occupies."""
    A = "a"
    B = "b"


@dataclass
class Commitments:
    """One write-once digest per player. None means not committed."""
    digest_a: Optional[bytes] = None
    digest_b: Optional[bytes] = None

    def get(self, slot: PlayerSlot) -> Optional[bytes]:
        return self.digest_a if slot is PlayerSlot.A else self.digest_b

    def set(self, slot: PlayerSlot, digest: bytes):
        if slot is PlayerSlot.A:
            self.digest_a = digest
        else:
            self.digest_b = digest

    @property
    def complete(self) -> bool:
        return self.digest_a is not None and self.digest_b is not None


@dataclass(frozen=True)
class Revelation:
    """A player's opened commitment."""
    choice: CoinSide
    secret: int


@dataclass(frozen=True)
class Resolution:
    """Outcome of a resolved game. Written once, never changed."""
    outcome: CoinSide
    winner: str
    tie_break: bool
    winner_payout: int
    house_fee: int
    height: int
    timestamp: int
    extra_entropy: bytes = b""
    tiebreak_seed: Optional[bytes] = None


@dataclass
class EscrowAccount:
    """Pooled funds held for one game.

    balance always equals the sum of contributions that have not been
    paid out yet.
    """
    key: str
    balance: int = 0
    contributions: Dict[str, int] = field(default_factory=dict)
    drained: bool = False

    @property
    def funded_players(self) -> int:
        return len(self.contributions)


@dataclass
class Game:
    """A two-player commit-reveal coinflip with pooled escrow."""
    game_id: int
    player_a: str
    bet_amount: int
    house_account: str
    escrow: EscrowAccount

    player_b: Optional[str] = None
    status: GameStatus = GameStatus.WAITING_FOR_OPPONENT

    # Fee parameters frozen at creation
    house_fee_bps: int = 0
    cancel_fee_bps: int = 0
    config_version: int = 0

    # Commit-reveal
    commitments: Commitments = field(default_factory=Commitments)
    revelation_a: Optional[Revelation] = None
    revelation_b: Optional[Revelation] = None

    # Results
    resolution: Optional[Resolution] = None
    fees_collected: int = 0  # Cancellation fees paid to the house
    cancelled_by: Optional[str] = None

    # Transactions
    deposit_tx_a: Optional[str] = None
    deposit_tx_b: Optional[str] = None
    payout_tx: Optional[str] = None  # Comma-separated when several transfers

    # Timestamps (unix seconds) and chain height
    created_at: int = 0
    height_created: int = 0
    joined_at: Optional[int] = None
    resolved_at: Optional[int] = None
    cancelled_at: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def slot_of(self, player: str) -> Optional[PlayerSlot]:
        """Seat of player, or None for non-participants."""
        if player == self.player_a:
            return PlayerSlot.A
        if self.player_b is not None and player == self.player_b:
            return PlayerSlot.B
        return None

    def player_in(self, slot: PlayerSlot) -> Optional[str]:
        return self.player_a if slot is PlayerSlot.A else self.player_b

    def revelation(self, slot: PlayerSlot) -> Optional[Revelation]:
        return self.revelation_a if slot is PlayerSlot.A else self.revelation_b

    def set_revelation(self, slot: PlayerSlot, revelation: Revelation):
        if slot is PlayerSlot.A:
            self.revelation_a = revelation
        else:
            self.revelation_b = revelation

    @property
    def both_revealed(self) -> bool:
        return self.revelation_a is not None and self.revelation_b is not None
