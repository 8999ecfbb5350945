"""
Value-transfer backends.

The escrow only needs one primitive: move a batch of (source, destination,
amount) transfers all-or-nothing. InMemoryAccounts is the reference backend
used by tests and local simulation.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Dict, List, Tuple

from .errors import TransferError

logger = logging.getLogger(__name__)

Move = Tuple[str, str, int]  # (source, destination, amount)


def generate_tx_id() -> str:
    """Generate unique transfer ID."""
    return f"tx_{uuid.uuid4().hex[:16]}"


class TransferGateway(ABC):
    """All-or-nothing value transfer between accounts."""

    @abstractmethod
    def get_balance(self, account: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def transfer_batch(self, moves: List[Move]) -> List[str]:
        """Apply every move or none of them.

        Returns:
            One transfer ID per move

        Raises:
            TransferError: If any move cannot be applied
        """
        raise NotImplementedError


class InMemoryAccounts(TransferGateway):
    """Integer balances held in a dict."""

    def __init__(self, balances: Dict[str, int] = None):
        self.balances: Dict[str, int] = dict(balances or {})
        self.history: List[Tuple[str, str, str, int]] = []

    def get_balance(self, account: str) -> int:
        return self.balances.get(account, 0)

    def fund(self, account: str, amount: int):
        """Credit an account from outside the system."""
        if amount < 0:
            raise TransferError(f"Invalid amount: {amount}")
        self.balances[account] = self.get_balance(account) + amount

    def transfer_batch(self, moves: List[Move]) -> List[str]:
        staged = dict(self.balances)
        for source, destination, amount in moves:
            if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
                raise TransferError(f"Invalid amount: {amount}")
            if source == destination:
                raise TransferError(f"Source and destination are the same account: {source}")
            available = staged.get(source, 0)
            if available < amount:
                raise TransferError(
                    f"Insufficient balance in {source}: {available} available, {amount} required"
                )
            staged[source] = available - amount
            staged[destination] = staged.get(destination, 0) + amount

        tx_ids = []
        for source, destination, amount in moves:
            tx_id = generate_tx_id()
            self.history.append((tx_id, source, destination, amount))
            tx_ids.append(tx_id)
            logger.debug(f"[TRANSFER] {amount} {source} -> {destination} (tx: {tx_id})")

        self.balances = staged
        return tx_ids
