"""Database module for the coinflip escrow."""
from .models import (
    Game,
    GameStatus,
    CoinSide,
    PlayerSlot,
    Commitments,
    Revelation,
    Resolution,
    EscrowAccount,
    TERMINAL_STATUSES,
)
from .repo import GameRepository, InMemoryGameRepository, Database

__all__ = [
    "Game",
    "GameStatus",
    "CoinSide",
    "PlayerSlot",
    "Commitments",
    "Revelation",
    "Resolution",
    "EscrowAccount",
    "TERMINAL_STATUSES",
    "GameRepository",
    "InMemoryGameRepository",
    "Database",
]
