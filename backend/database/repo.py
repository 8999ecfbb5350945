"""
Game repositories for the coinflip escrow.
In-memory for tests and simulation, SQLite for persistence.
"""
import copy
import json
import sqlite3
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, List

import escrow_config
from .models import (
    CoinSide,
    Commitments,
    EscrowAccount,
    Game,
    GameStatus,
    Resolution,
    Revelation,
)

logger = logging.getLogger(__name__)


class GameRepository(ABC):
    """Storage for games. Implementations must return independent copies."""

    @abstractmethod
    def get_game(self, game_id: int) -> Optional[Game]:
        raise NotImplementedError

    @abstractmethod
    def save_game(self, game: Game) -> None:
        raise NotImplementedError

    def game_exists(self, game_id: int) -> bool:
        return self.get_game(game_id) is not None

    @abstractmethod
    def get_open_games(self, limit: int = 20) -> List[Game]:
        raise NotImplementedError

    @abstractmethod
    def get_player_games(self, player: str, limit: int = 10) -> List[Game]:
        raise NotImplementedError

    @abstractmethod
    def max_height(self) -> int:
        """Highest chain height recorded by any stored game, 0 if none."""
        raise NotImplementedError


class InMemoryGameRepository(GameRepository):
    def __init__(self):
        self.games: Dict[int, Game] = {}

    def get_game(self, game_id: int) -> Optional[Game]:
        game = self.games.get(game_id)
        return copy.deepcopy(game) if game else None

    def save_game(self, game: Game) -> None:
        self.games[game.game_id] = copy.deepcopy(game)

    def get_open_games(self, limit: int = 20) -> List[Game]:
        open_games = [g for g in self.games.values() if g.status == GameStatus.WAITING_FOR_OPPONENT]
        open_games.sort(key=lambda g: g.created_at, reverse=True)
        return [copy.deepcopy(g) for g in open_games[:limit]]

    def get_player_games(self, player: str, limit: int = 10) -> List[Game]:
        games = [g for g in self.games.values() if player in (g.player_a, g.player_b)]
        games.sort(key=lambda g: g.created_at, reverse=True)
        return [copy.deepcopy(g) for g in games[:limit]]

    def max_height(self) -> int:
        heights = [0]
        for game in self.games.values():
            heights.append(game.height_created)
            if game.resolution is not None:
                heights.append(game.resolution.height)
        return max(heights)


class Database(GameRepository):
    """SQLite game repository.

    Amounts, secrets and ids are stored as TEXT so full unsigned 64-bit
    values round-trip.
    """

    def __init__(self, db_path: str = None):
        self.db_path = db_path or escrow_config.ESCROW_DB_PATH
        self._init_db()

    def _init_db(self):
        """Initialize database schema."""
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS games (
                game_id TEXT PRIMARY KEY,
                player_a TEXT NOT NULL,
                player_b TEXT,
                bet_amount TEXT NOT NULL,
                house_account TEXT NOT NULL,
                status TEXT NOT NULL,
                house_fee_bps INTEGER NOT NULL,
                cancel_fee_bps INTEGER NOT NULL,
                config_version INTEGER NOT NULL,
                commitment_a TEXT,
                commitment_b TEXT,
                choice_a TEXT,
                secret_a TEXT,
                choice_b TEXT,
                secret_b TEXT,
                outcome TEXT,
                winner TEXT,
                tie_break INTEGER,
                winner_payout TEXT,
                house_fee TEXT,
                resolution_height TEXT,
                resolution_timestamp INTEGER,
                extra_entropy TEXT,
                tiebreak_seed TEXT,
                fees_collected TEXT DEFAULT '0',
                cancelled_by TEXT,
                escrow_key TEXT NOT NULL UNIQUE,
                escrow_balance TEXT NOT NULL,
                escrow_contributions TEXT NOT NULL,
                escrow_drained INTEGER DEFAULT 0,
                deposit_tx_a TEXT,
                deposit_tx_b TEXT,
                payout_tx TEXT,
                created_at INTEGER NOT NULL,
                height_created TEXT NOT NULL,
                joined_at INTEGER,
                resolved_at INTEGER,
                cancelled_at INTEGER
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_games_status ON games(status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_games_player_a ON games(player_a)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_games_player_b ON games(player_b)")

        conn.commit()
        conn.close()

    # === Game Operations ===

    def save_game(self, game: Game) -> None:
        """Save or update game."""
        res = game.resolution
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT OR REPLACE INTO games (
                    game_id, player_a, player_b, bet_amount, house_account, status,
                    house_fee_bps, cancel_fee_bps, config_version,
                    commitment_a, commitment_b, choice_a, secret_a, choice_b, secret_b,
                    outcome, winner, tie_break, winner_payout, house_fee,
                    resolution_height, resolution_timestamp, extra_entropy, tiebreak_seed,
                    fees_collected, cancelled_by,
                    escrow_key, escrow_balance, escrow_contributions, escrow_drained,
                    deposit_tx_a, deposit_tx_b, payout_tx,
                    created_at, height_created, joined_at, resolved_at, cancelled_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?,
                          ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                str(game.game_id), game.player_a, game.player_b, str(game.bet_amount),
                game.house_account, game.status.value,
                game.house_fee_bps, game.cancel_fee_bps, game.config_version,
                game.commitments.digest_a.hex() if game.commitments.digest_a else None,
                game.commitments.digest_b.hex() if game.commitments.digest_b else None,
                game.revelation_a.choice.value if game.revelation_a else None,
                str(game.revelation_a.secret) if game.revelation_a else None,
                game.revelation_b.choice.value if game.revelation_b else None,
                str(game.revelation_b.secret) if game.revelation_b else None,
                res.outcome.value if res else None,
                res.winner if res else None,
                int(res.tie_break) if res else None,
                str(res.winner_payout) if res else None,
                str(res.house_fee) if res else None,
                str(res.height) if res else None,
                res.timestamp if res else None,
                res.extra_entropy.hex() if res else None,
                res.tiebreak_seed.hex() if res and res.tiebreak_seed else None,
                str(game.fees_collected), game.cancelled_by,
                game.escrow.key, str(game.escrow.balance),
                json.dumps({player: str(amount) for player, amount in game.escrow.contributions.items()}),
                int(game.escrow.drained),
                game.deposit_tx_a, game.deposit_tx_b, game.payout_tx,
                game.created_at, str(game.height_created),
                game.joined_at, game.resolved_at, game.cancelled_at,
            ))
            conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to save game {game.game_id}: {e}", exc_info=True)
            conn.rollback()
            raise
        finally:
            conn.close()

    def get_game(self, game_id: int) -> Optional[Game]:
        """Get game by ID."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()

        cursor.execute("SELECT * FROM games WHERE game_id = ?", (str(game_id),))
        row = cursor.fetchone()
        conn.close()

        if not row:
            return None

        return self._row_to_game(row)

    def get_open_games(self, limit: int = 20) -> List[Game]:
        """Get games still waiting for an opponent, newest first."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()

        cursor.execute("""
            SELECT * FROM games
            WHERE status = ?
            ORDER BY created_at DESC
            LIMIT ?
        """, (GameStatus.WAITING_FOR_OPPONENT.value, limit))

        rows = cursor.fetchall()
        conn.close()

        return [self._row_to_game(row) for row in rows]

    def get_player_games(self, player: str, limit: int = 10) -> List[Game]:
        """Get a player's games, newest first."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()

        cursor.execute("""
            SELECT * FROM games
            WHERE player_a = ? OR player_b = ?
            ORDER BY created_at DESC
            LIMIT ?
        """, (player, player, limit))

        rows = cursor.fetchall()
        conn.close()

        return [self._row_to_game(row) for row in rows]

    def max_height(self) -> int:
        """Highest creation or resolution height across all games."""
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        # Heights are TEXT so full 64-bit values survive; compare as ints here
        cursor.execute("SELECT height_created, resolution_height FROM games")
        rows = cursor.fetchall()
        conn.close()

        heights = [0]
        for height_created, resolution_height in rows:
            heights.append(int(height_created))
            if resolution_height is not None:
                heights.append(int(resolution_height))
        return max(heights)

    def _row_to_game(self, row: sqlite3.Row) -> Game:
        """Convert database row to Game object."""
        revelation_a = None
        if row["choice_a"]:
            revelation_a = Revelation(choice=CoinSide(row["choice_a"]), secret=int(row["secret_a"]))
        revelation_b = None
        if row["choice_b"]:
            revelation_b = Revelation(choice=CoinSide(row["choice_b"]), secret=int(row["secret_b"]))

        resolution = None
        if row["outcome"]:
            resolution = Resolution(
                outcome=CoinSide(row["outcome"]),
                winner=row["winner"],
                tie_break=bool(row["tie_break"]),
                winner_payout=int(row["winner_payout"]),
                house_fee=int(row["house_fee"]),
                height=int(row["resolution_height"]),
                timestamp=row["resolution_timestamp"],
                extra_entropy=bytes.fromhex(row["extra_entropy"] or ""),
                tiebreak_seed=bytes.fromhex(row["tiebreak_seed"]) if row["tiebreak_seed"] else None,
            )

        contributions = json.loads(row["escrow_contributions"])
        escrow = EscrowAccount(
            key=row["escrow_key"],
            balance=int(row["escrow_balance"]),
            contributions={player: int(amount) for player, amount in contributions.items()},
            drained=bool(row["escrow_drained"]),
        )

        return Game(
            game_id=int(row["game_id"]),
            player_a=row["player_a"],
            bet_amount=int(row["bet_amount"]),
            house_account=row["house_account"],
            escrow=escrow,
            player_b=row["player_b"],
            status=GameStatus(row["status"]),
            house_fee_bps=row["house_fee_bps"],
            cancel_fee_bps=row["cancel_fee_bps"],
            config_version=row["config_version"],
            commitments=Commitments(
                digest_a=bytes.fromhex(row["commitment_a"]) if row["commitment_a"] else None,
                digest_b=bytes.fromhex(row["commitment_b"]) if row["commitment_b"] else None,
            ),
            revelation_a=revelation_a,
            revelation_b=revelation_b,
            resolution=resolution,
            fees_collected=int(row["fees_collected"] or 0),
            cancelled_by=row["cancelled_by"],
            deposit_tx_a=row["deposit_tx_a"],
            deposit_tx_b=row["deposit_tx_b"],
            payout_tx=row["payout_tx"],
            created_at=row["created_at"],
            height_created=int(row["height_created"]),
            joined_at=row["joined_at"],
            resolved_at=row["resolved_at"],
            cancelled_at=row["cancelled_at"],
        )
