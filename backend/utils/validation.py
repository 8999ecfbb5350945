"""
Input validation utilities for security.
"""
from typing import Tuple

import base58

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
U64_MAX = 2**64 - 1


def is_valid_account_id(address: str) -> Tuple[bool, str]:
    """Validate an account identifier (base58-encoded 32-byte public key).

    Args:
        address: Account address to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not address:
        return False, "Account address is required"

    if not isinstance(address, str):
        return False, "Account address must be a string"

    if len(address) < 32 or len(address) > 44:
        return False, "Invalid account address length"

    # No 0, O, I, l in base58
    if not all(c in BASE58_ALPHABET for c in address):
        return False, "Account address contains invalid characters"

    try:
        decoded = base58.b58decode(address)
    except ValueError as e:
        return False, f"Failed to decode account address: {e}"
    if len(decoded) != 32:
        return False, "Invalid account address format (must be 32 bytes when decoded)"

    return True, ""


def is_valid_bet_amount(amount: int, min_amount: int, max_amount: int) -> Tuple[bool, str]:
    """Validate a bet amount in lamports.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        return False, "Bet amount must be an integer"

    if amount <= 0:
        return False, "Bet amount must be greater than 0"

    if amount < min_amount:
        return False, f"Bet amount is too low (minimum {min_amount})"

    if amount > max_amount:
        return False, f"Bet amount is too high (maximum {max_amount})"

    return True, ""


def is_valid_game_id(game_id: int) -> Tuple[bool, str]:
    """Validate a game ID (unsigned 64-bit integer)."""
    if isinstance(game_id, bool) or not isinstance(game_id, int):
        return False, "Game ID must be an integer"

    if game_id < 0 or game_id > U64_MAX:
        return False, "Game ID must fit in 64 unsigned bits"

    return True, ""
