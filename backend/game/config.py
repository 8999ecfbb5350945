"""
Versioned program configuration.

One resource holds the authority, fees, bet limits, timeouts and pause
flag. Every mutator checks the caller against the authority and bumps the
version; games snapshot the fees they were created with.
"""
import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

import escrow_config
from .cancellation import CancellationPolicy
from .errors import AuthorizationError, ValidationError
from .events import GameEvent, config_updated

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfigSnapshot:
    """Immutable view of the configuration at one version."""
    version: int
    authority: Optional[str]
    house_fee_bps: int
    cancel_fee_bps: int
    min_bet: int
    max_bet: int
    open_timeout: int
    play_timeout: int
    paused: bool
    auto_resolve: bool

    @property
    def cancellation_policy(self) -> CancellationPolicy:
        return CancellationPolicy(open_timeout=self.open_timeout, play_timeout=self.play_timeout)


def _validate(snapshot: ConfigSnapshot):
    if not 0 <= snapshot.house_fee_bps <= escrow_config.MAX_HOUSE_FEE_BPS:
        raise ValidationError(
            f"House fee must be between 0 and {escrow_config.MAX_HOUSE_FEE_BPS} bps",
            code="invalid_house_fee",
        )
    if not 0 <= snapshot.cancel_fee_bps <= escrow_config.MAX_CANCELLATION_FEE_BPS:
        raise ValidationError(
            f"Cancellation fee must be between 0 and {escrow_config.MAX_CANCELLATION_FEE_BPS} bps",
            code="invalid_cancel_fee",
        )
    if snapshot.min_bet <= 0 or snapshot.max_bet < snapshot.min_bet:
        raise ValidationError("Bet limits must satisfy 0 < min <= max", code="invalid_bet_limits")
    # pot = 2 * bet must stay within 64 bits
    if snapshot.max_bet > (2**64 - 1) // 2:
        raise ValidationError("Maximum bet too large", code="invalid_bet_limits")
    if snapshot.open_timeout < 0 or snapshot.play_timeout < 0:
        raise ValidationError("Timeouts cannot be negative", code="invalid_timeout")


class ProgramConfig:
    """Authority-gated, versioned configuration resource."""

    def __init__(
        self,
        authority: Optional[str] = None,
        house_fee_bps: int = None,
        cancel_fee_bps: int = None,
        min_bet: int = None,
        max_bet: int = None,
        open_timeout: int = None,
        play_timeout: int = None,
        auto_resolve: bool = None,
    ):
        snapshot = ConfigSnapshot(
            version=1,
            authority=authority if authority is not None else escrow_config.PROGRAM_AUTHORITY,
            house_fee_bps=escrow_config.HOUSE_FEE_BPS if house_fee_bps is None else house_fee_bps,
            cancel_fee_bps=escrow_config.CANCELLATION_FEE_BPS if cancel_fee_bps is None else cancel_fee_bps,
            min_bet=escrow_config.MIN_BET_AMOUNT if min_bet is None else min_bet,
            max_bet=escrow_config.MAX_BET_AMOUNT if max_bet is None else max_bet,
            open_timeout=escrow_config.OPEN_TIMEOUT_SECONDS if open_timeout is None else open_timeout,
            play_timeout=escrow_config.PLAY_TIMEOUT_SECONDS if play_timeout is None else play_timeout,
            paused=False,
            auto_resolve=escrow_config.AUTO_RESOLVE if auto_resolve is None else auto_resolve,
        )
        _validate(snapshot)
        self._current = snapshot
        self._listeners: List[Callable[[GameEvent], None]] = []

        logger.info(
            f"[CONFIG] Initialized v1 - house fee: {snapshot.house_fee_bps} bps, "
            f"cancel fee: {snapshot.cancel_fee_bps} bps, authority: {snapshot.authority}"
        )

    @property
    def current(self) -> ConfigSnapshot:
        return self._current

    @property
    def version(self) -> int:
        return self._current.version

    @property
    def paused(self) -> bool:
        return self._current.paused

    def subscribe(self, listener: Callable[[GameEvent], None]):
        self._listeners.append(listener)

    def _require_authority(self, caller: str):
        if not self._current.authority or caller != self._current.authority:
            logger.warning(f"[CONFIG] Rejected change from non-authority {caller}")
            raise AuthorizationError("Only the program authority can change the configuration", code="unauthorized")

    def _apply(self, caller: str, field: str, **changes) -> ConfigSnapshot:
        self._require_authority(caller)
        old = self._current
        new = replace(old, version=old.version + 1, **changes)
        _validate(new)
        self._current = new

        old_value = getattr(old, field)
        new_value = getattr(new, field)
        logger.info(f"[CONFIG] v{new.version}: {field} {old_value} -> {new_value} (by {caller})")

        event = config_updated(new.version, field, old_value, new_value, caller)
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.error(f"[CONFIG] Listener failed on v{new.version} change", exc_info=True)
        return new

    def update_house_fee(self, caller: str, new_fee_bps: int) -> ConfigSnapshot:
        return self._apply(caller, "house_fee_bps", house_fee_bps=new_fee_bps)

    def update_cancellation_fee(self, caller: str, new_fee_bps: int) -> ConfigSnapshot:
        return self._apply(caller, "cancel_fee_bps", cancel_fee_bps=new_fee_bps)

    def update_bet_limits(self, caller: str, min_bet: int, max_bet: int) -> ConfigSnapshot:
        return self._apply(caller, "min_bet", min_bet=min_bet, max_bet=max_bet)

    def update_timeouts(self, caller: str, open_timeout: int, play_timeout: int) -> ConfigSnapshot:
        return self._apply(caller, "open_timeout", open_timeout=open_timeout, play_timeout=play_timeout)

    def set_auto_resolve(self, caller: str, enabled: bool) -> ConfigSnapshot:
        return self._apply(caller, "auto_resolve", auto_resolve=bool(enabled))

    def pause(self, caller: str) -> ConfigSnapshot:
        """Stop new games and joins. Commit, reveal and cancel stay available."""
        return self._apply(caller, "paused", paused=True)

    def unpause(self, caller: str) -> ConfigSnapshot:
        return self._apply(caller, "paused", paused=False)

    def transfer_authority(self, caller: str, new_authority: str) -> ConfigSnapshot:
        if not new_authority:
            raise ValidationError("New authority is required", code="invalid_authority")
        return self._apply(caller, "authority", authority=new_authority)
