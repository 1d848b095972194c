"""
Credits — the external balance / deduction collaborator.

The ledger itself lives outside this package (billing service, database).
The orchestrator only needs the two calls on CreditLedger; InMemoryCreditLedger
backs the CLI and the tests.
"""

from __future__ import annotations

import logging
from typing import List, Protocol, Tuple

from .errors import InsufficientCreditsError

logger = logging.getLogger(__name__)


class CreditLedger(Protocol):
    async def get_balance(self) -> float:
        ...

    async def deduct_credits(self, amount: float, generation_id: str) -> None:
        ...


class InMemoryCreditLedger:
    def __init__(self, balance: float = 0) -> None:
        self.balance = balance
        self.deductions: List[Tuple[float, str]] = []

    async def get_balance(self) -> float:
        return self.balance

    async def deduct_credits(self, amount: float, generation_id: str) -> None:
        if amount > self.balance:
            raise InsufficientCreditsError(self.balance, amount)
        self.balance -= amount
        self.deductions.append((amount, generation_id))
        logger.info("deducted %s credits for %s (balance now %s)", amount, generation_id, self.balance)


async def ensure_sufficient_credits(ledger: CreditLedger, cost: float) -> float:
    """Advisory pre-check; the authoritative deduction happens after success."""
    balance = await ledger.get_balance()
    if balance < cost:
        raise InsufficientCreditsError(balance, cost)
    return balance
