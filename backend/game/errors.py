"""
Typed errors raised by the coinflip escrow.

Every rejection leaves the game, its escrow and all external balances
exactly as they were before the call.
"""


class CoinflipError(Exception):
    """Base class for all escrow protocol errors."""
    code = "coinflip_error"

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        if code:
            self.code = code


class ValidationError(CoinflipError):
    """Bad input or wrong phase. Retry after fixing the input."""
    code = "validation_error"


class GameNotFoundError(ValidationError):
    code = "game_not_found"


class ProgramPausedError(ValidationError):
    code = "program_paused"


class AuthorizationError(CoinflipError):
    """Caller is not a participant, plays against themselves, or lacks authority."""
    code = "authorization_error"


class IntegrityError(CoinflipError):
    """Reveal does not reproduce the stored commitment.

    The commitment is already fixed, so the player cannot recover; the game
    can only end through cancellation.
    """
    code = "integrity_error"


class PayoutArithmeticError(CoinflipError, ArithmeticError):
    """Overflow or underflow in escrow math. No funds move."""
    code = "arithmetic_error"


class TimingError(CoinflipError):
    """Cancellation window not reached yet."""
    code = "timing_error"


class CoherencyError(CoinflipError):
    """Internal inconsistency. Resolution halts with no disbursement."""
    code = "coherency_error"


class TransferError(CoinflipError):
    """The value-transfer backend refused a batch."""
    code = "transfer_error"
