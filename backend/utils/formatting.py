"""
Formatting utilities for log lines and reports.
"""
from datetime import datetime, timezone
from typing import Optional

LAMPORTS_PER_SOL = 1_000_000_000


def format_lamports(amount: int) -> str:
    """Format an integer lamport amount with its SOL equivalent."""
    sol = amount / LAMPORTS_PER_SOL
    if sol >= 1000:
        return f"{amount:,} ({sol:,.2f} SOL)"
    elif sol >= 1:
        return f"{amount:,} ({sol:.4f} SOL)"
    else:
        return f"{amount:,} ({sol:.6f} SOL)"


def format_bps(bps: int) -> str:
    """Format basis points as a percentage."""
    return f"{bps / 100:.2f}%"


def format_timestamp(ts: Optional[int]) -> str:
    """Format a unix timestamp for display."""
    if ts is None:
        return "N/A"
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def truncate_address(address: str, start: int = 4, end: int = 4) -> str:
    """Truncate account address for display."""
    if len(address) <= start + end:
        return address
    return f"{address[:start]}...{address[-end:]}"
