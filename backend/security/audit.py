"""
Audit trail for the coinflip escrow.

Every emitted protocol event and every rejected call lands in the
audit_logs table, so disputes over a game can be replayed afterwards.
"""
import json
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Optional
from enum import Enum

import escrow_config

logger = logging.getLogger(__name__)


class AuditEventType(Enum):
    """Types of events to audit."""
    # Lifecycle
    GAME_CREATED = "game_created"
    PLAYER_JOINED = "player_joined"
    COMMITMENT_MADE = "commitment_made"
    CHOICE_REVEALED = "choice_revealed"
    GAME_RESOLVED = "game_resolved"
    GAME_CANCELLED = "game_cancelled"

    # Administration
    CONFIG_UPDATED = "config_updated"

    # Rejections
    ACTION_REJECTED = "action_rejected"
    UNAUTHORIZED_ACTION = "unauthorized_action"
    INTEGRITY_FAILURE = "integrity_failure"
    COHERENCY_FAILURE = "coherency_failure"


class AuditSeverity(Enum):
    """Severity levels for audit events."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


# Error class name -> (event type, severity)
REJECTION_TYPES = {
    "AuthorizationError": (AuditEventType.UNAUTHORIZED_ACTION, AuditSeverity.WARNING),
    "IntegrityError": (AuditEventType.INTEGRITY_FAILURE, AuditSeverity.WARNING),
    "CoherencyError": (AuditEventType.COHERENCY_FAILURE, AuditSeverity.CRITICAL),
    "PayoutArithmeticError": (AuditEventType.COHERENCY_FAILURE, AuditSeverity.CRITICAL),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditLogger:
    """Audit logging system for escrow events."""

    def __init__(self, db_path: str = None):
        self.db_path = db_path or escrow_config.ESCROW_DB_PATH
        self._init_audit_table()

    def _init_audit_table(self):
        """Initialize audit log table."""
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS audit_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_type TEXT NOT NULL,
                game_id TEXT,
                actor TEXT,
                details TEXT,
                severity TEXT NOT NULL,
                timestamp TEXT NOT NULL
            )
        """)

        # Indexes for common queries
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_logs(timestamp)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_audit_game ON audit_logs(game_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_audit_severity ON audit_logs(severity)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_audit_event_type ON audit_logs(event_type)")

        conn.commit()
        conn.close()

    def log(
        self,
        event_type: AuditEventType,
        severity: AuditSeverity = AuditSeverity.INFO,
        game_id: Optional[int] = None,
        actor: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        """Log an audit event.

        Args:
            event_type: Type of event
            severity: Severity level
            game_id: Game ID if applicable
            actor: Account that triggered the event
            details: Additional details, stored as JSON
        """
        details_json = json.dumps(details, sort_keys=True, default=str) if details else None
        try:
            conn = sqlite3.connect(self.db_path)
            cursor = conn.cursor()

            cursor.execute("""
                INSERT INTO audit_logs (
                    event_type, game_id, actor, details, severity, timestamp
                ) VALUES (?, ?, ?, ?, ?, ?)
            """, (
                event_type.value,
                str(game_id) if game_id is not None else None,
                actor,
                details_json,
                severity.value,
                _utcnow().isoformat()
            ))

            conn.commit()
            conn.close()

        except sqlite3.Error as e:
            # Auditing never blocks the escrow itself
            logger.error(f"Failed to write audit log: {e}", exc_info=True)

        # Also log to application logger
        log_msg = f"[AUDIT] {event_type.value}"
        if game_id is not None:
            log_msg += f" | game={game_id}"
        if actor:
            log_msg += f" | actor={actor}"
        if details_json:
            log_msg += f" | {details_json}"

        if severity == AuditSeverity.CRITICAL:
            logger.critical(log_msg)
        elif severity == AuditSeverity.WARNING:
            logger.warning(log_msg)
        else:
            logger.info(log_msg)

    def record_event(self, event):
        """Event listener: store an emitted protocol event."""
        event_type = AuditEventType(event.type)
        payload = dict(event.payload)
        actor = (
            payload.get("player")
            or payload.get("player_a")
            or payload.get("player_b")
            or payload.get("cancelled_by")
            or payload.get("changed_by")
        )
        self.log(event_type, AuditSeverity.INFO, game_id=payload.get("game_id"), actor=actor, details=payload)

    def log_rejection(self, operation: str, caller: Optional[str], game_id: Optional[int], error: Exception):
        """Store a rejected call with a severity matching the error type."""
        event_type, severity = REJECTION_TYPES.get(
            type(error).__name__, (AuditEventType.ACTION_REJECTED, AuditSeverity.INFO)
        )
        self.log(
            event_type,
            severity,
            game_id=game_id if isinstance(game_id, int) else None,
            actor=caller if isinstance(caller, str) else None,
            details={
                "operation": operation,
                "code": getattr(error, "code", None),
                "message": str(error),
            },
        )

    def get_recent_events(
        self,
        limit: int = 100,
        severity: Optional[AuditSeverity] = None,
        event_type: Optional[AuditEventType] = None,
        game_id: Optional[int] = None
    ) -> list:
        """Get recent audit events.

        Args:
            limit: Maximum number of events to return
            severity: Filter by severity
            event_type: Filter by event type
            game_id: Filter by game ID

        Returns:
            List of audit log dictionaries
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()

        query = "SELECT * FROM audit_logs WHERE 1=1"
        params = []

        if severity:
            query += " AND severity = ?"
            params.append(severity.value)

        if event_type:
            query += " AND event_type = ?"
            params.append(event_type.value)

        if game_id is not None:
            query += " AND game_id = ?"
            params.append(str(game_id))

        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        cursor.execute(query, params)
        rows = cursor.fetchall()
        conn.close()

        return [dict(row) for row in rows]

    def get_security_summary(self, hours: int = 24) -> dict:
        """Summarize escrow activity and rejections over the last N hours.

        Returns:
            Dict with per-severity totals, lifecycle counts, accounts with
            repeated failed reveals, and games whose resolution was halted
        """
        since = (_utcnow() - timedelta(hours=hours)).isoformat()

        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        cursor.execute(
            "SELECT severity, COUNT(*) FROM audit_logs WHERE timestamp > ? GROUP BY severity",
            (since,),
        )
        by_severity = dict(cursor.fetchall())

        cursor.execute(
            "SELECT event_type, COUNT(*) FROM audit_logs WHERE timestamp > ? GROUP BY event_type",
            (since,),
        )
        by_type = dict(cursor.fetchall())

        # Repeated reveals that did not match their commitment
        cursor.execute("""
            SELECT actor, COUNT(*) AS failures
            FROM audit_logs
            WHERE timestamp > ? AND event_type = ?
            GROUP BY actor
            HAVING failures > 1
            ORDER BY failures DESC
        """, (since, AuditEventType.INTEGRITY_FAILURE.value))
        suspicious_actors = [(actor, failures) for actor, failures in cursor.fetchall()]

        cursor.execute("""
            SELECT DISTINCT game_id
            FROM audit_logs
            WHERE timestamp > ? AND event_type = ? AND game_id IS NOT NULL
        """, (since, AuditEventType.COHERENCY_FAILURE.value))
        halted_games = sorted(int(row[0]) for row in cursor.fetchall())

        conn.close()

        return {
            "period_hours": hours,
            "games_created": by_type.get(AuditEventType.GAME_CREATED.value, 0),
            "games_resolved": by_type.get(AuditEventType.GAME_RESOLVED.value, 0),
            "games_cancelled": by_type.get(AuditEventType.GAME_CANCELLED.value, 0),
            "event_counts": by_type,
            "severity_counts": by_severity,
            "suspicious_actors": suspicious_actors,
            "halted_games": halted_games,
            "total_critical": by_severity.get(AuditSeverity.CRITICAL.value, 0),
            "total_warnings": by_severity.get(AuditSeverity.WARNING.value, 0),
        }
