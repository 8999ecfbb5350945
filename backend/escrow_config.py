"""
Coinflip Escrow Configuration

Default economics and timeouts. Every value can be overridden from the
environment (or a .env file). Running programs change them only through
game.config.ProgramConfig, which requires the program authority.
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value.replace("_", ""))


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# =============================================================================
# FEES (basis points, 1 bps = 0.01%)
# =============================================================================

HOUSE_FEE_BPS = _env_int("HOUSE_FEE_BPS", 700)               # 7% of the pot
CANCELLATION_FEE_BPS = _env_int("CANCELLATION_FEE_BPS", 200)  # 2% of each refunded bet
MAX_HOUSE_FEE_BPS = 1000                                      # Hard cap, 10%
MAX_CANCELLATION_FEE_BPS = 1000

# =============================================================================
# BET LIMITS (lamports)
# =============================================================================

MIN_BET_AMOUNT = _env_int("MIN_BET_AMOUNT", 10_000_000)        # 0.01 SOL
MAX_BET_AMOUNT = _env_int("MAX_BET_AMOUNT", 100_000_000_000)   # 100 SOL

# =============================================================================
# TIMEOUTS (seconds)
# =============================================================================

OPEN_TIMEOUT_SECONDS = _env_int("OPEN_TIMEOUT_SECONDS", 3600)  # No opponent joined
PLAY_TIMEOUT_SECONDS = _env_int("PLAY_TIMEOUT_SECONDS", 3600)  # Joined, not resolved

# =============================================================================
# PROGRAM
# =============================================================================

PROGRAM_AUTHORITY = os.getenv("PROGRAM_AUTHORITY")
AUTO_RESOLVE = _env_bool("AUTO_RESOLVE", True)
ESCROW_DB_PATH = os.getenv("ESCROW_DB_PATH", "coinflip_escrow.db")
