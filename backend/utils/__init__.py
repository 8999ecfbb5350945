"""Utility modules for the coinflip escrow."""
from .formatting import (
    format_lamports,
    format_bps,
    format_timestamp,
    truncate_address,
)
from .validation import is_valid_account_id, is_valid_bet_amount, is_valid_game_id

__all__ = [
    "format_lamports",
    "format_bps",
    "format_timestamp",
    "truncate_address",
    "is_valid_account_id",
    "is_valid_bet_amount",
    "is_valid_game_id",
]
