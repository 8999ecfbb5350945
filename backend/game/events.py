"""
Events emitted by the escrow for listeners and the audit log.
"""
from dataclasses import dataclass
from typing import Any


@dataclass
class GameEvent:
    """Base event class. All events have a type and payload."""
    type: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}


# ===== Event Type Constants =====

GAME_CREATED = "game_created"
PLAYER_JOINED = "player_joined"
COMMITMENT_MADE = "commitment_made"
CHOICE_REVEALED = "choice_revealed"
GAME_RESOLVED = "game_resolved"
GAME_CANCELLED = "game_cancelled"
CONFIG_UPDATED = "config_updated"


# ===== Event Factory Functions =====

def game_created(game_id: int, player_a: str, bet_amount: int, house_account: str) -> GameEvent:
    return GameEvent(GAME_CREATED, {
        "game_id": game_id,
        "player_a": player_a,
        "bet_amount": bet_amount,
        "house_account": house_account,
    })


def player_joined(game_id: int, player_b: str) -> GameEvent:
    return GameEvent(PLAYER_JOINED, {
        "game_id": game_id,
        "player_b": player_b,
    })


def commitment_made(game_id: int, player: str, commitment: bytes) -> GameEvent:
    return GameEvent(COMMITMENT_MADE, {
        "game_id": game_id,
        "player": player,
        "commitment": commitment.hex(),
    })


def choice_revealed(game_id: int, player: str, choice: str, secret: int) -> GameEvent:
    return GameEvent(CHOICE_REVEALED, {
        "game_id": game_id,
        "player": player,
        "choice": choice,
        "secret": secret,
    })


def game_resolved(
    game_id: int,
    winner: str,
    outcome: str,
    winner_payout: int,
    house_fee: int,
    tie_break: bool,
    resolved_at: int,
) -> GameEvent:
    return GameEvent(GAME_RESOLVED, {
        "game_id": game_id,
        "winner": winner,
        "outcome": outcome,
        "payout": winner_payout,
        "house_fee": house_fee,
        "tie_break": tie_break,
        "resolved_at": resolved_at,
    })


def game_cancelled(game_id: int, cancelled_by: str, cancelled_at: int, fees_collected: int, refund_per_player: int) -> GameEvent:
    return GameEvent(GAME_CANCELLED, {
        "game_id": game_id,
        "cancelled_by": cancelled_by,
        "cancelled_at": cancelled_at,
        "fees_collected": fees_collected,
        "refund_per_player": refund_per_player,
    })


def config_updated(version: int, field: str, old_value: Any, new_value: Any, changed_by: str) -> GameEvent:
    return GameEvent(CONFIG_UPDATED, {
        "version": version,
        "field": field,
        "old_value": old_value,
        "new_value": new_value,
        "changed_by": changed_by,
    })
