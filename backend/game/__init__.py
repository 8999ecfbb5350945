"""Game logic module for the coinflip escrow."""
from .coinflip import CoinflipEngine
from .commitment import commit, verify, generate_secret, validate_secret, validate_digest
from .randomness import ExternalEntropy, FlipResult, coin_flip, determine_winner, resolve, verify_resolution
from .escrow import (
    EscrowLedger,
    ResolutionPayout,
    CancellationRefund,
    compute_resolution_payout,
    compute_cancellation_refund,
    derive_escrow_key,
    checked_add,
    checked_sub,
    checked_mul,
)
from .cancellation import CancellationPolicy
from .config import ProgramConfig, ConfigSnapshot
from .clock import Clock, ChainTime, SystemClock, ManualClock
from .transfers import TransferGateway, InMemoryAccounts
from .errors import (
    CoinflipError,
    ValidationError,
    GameNotFoundError,
    ProgramPausedError,
    AuthorizationError,
    IntegrityError,
    PayoutArithmeticError,
    TimingError,
    CoherencyError,
    TransferError,
)

__all__ = [
    "CoinflipEngine",
    "commit",
    "verify",
    "generate_secret",
    "validate_secret",
    "validate_digest",
    "ExternalEntropy",
    "FlipResult",
    "coin_flip",
    "determine_winner",
    "resolve",
    "verify_resolution",
    "EscrowLedger",
    "ResolutionPayout",
    "CancellationRefund",
    "compute_resolution_payout",
    "compute_cancellation_refund",
    "derive_escrow_key",
    "checked_add",
    "checked_sub",
    "checked_mul",
    "CancellationPolicy",
    "ProgramConfig",
    "ConfigSnapshot",
    "Clock",
    "ChainTime",
    "SystemClock",
    "ManualClock",
    "TransferGateway",
    "InMemoryAccounts",
    "CoinflipError",
    "ValidationError",
    "GameNotFoundError",
    "ProgramPausedError",
    "AuthorizationError",
    "IntegrityError",
    "PayoutArithmeticError",
    "TimingError",
    "CoherencyError",
    "TransferError",
]
