"""FIT reward granted each time the step count crosses a threshold multiple."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from .logs import NdjsonLogger
from .notify import Notifier

logger = logging.getLogger(__name__)


class Ledger(Protocol):
    """Anything that can credit a transaction, e.g. ``wallet.Wallet``."""

    def add_transaction(self, amount: int, transaction_type: str, description: str = "") -> str:
        ...


class RewardTrigger:
    """Grants a fixed reward once per threshold crossing within a process run.

    The checkpoint lives in memory only. It is seeded from the step count
    loaded at startup so that thresholds crossed in earlier runs are not
    rewarded again.
    """

    def __init__(
        self,
        ledger: Optional[Ledger],
        notifier: Optional[Notifier] = None,
        steps_threshold: int = 8000,
        amount: int = 10,
        transaction_type: str = "steps",
        description: str = "{threshold} steps completed",
        initial_steps: int = 0,
        event_log: Optional[NdjsonLogger] = None,
    ) -> None:
        if steps_threshold <= 0:
            raise ValueError(f"steps_threshold must be positive: {steps_threshold}")

        self.ledger = ledger
        self.notifier = notifier
        self.steps_threshold = steps_threshold
        self.amount = amount
        self.transaction_type = transaction_type
        self.description = description
        self.event_log = event_log

        self._last_rewarded_steps = initial_steps
        self._granted = 0
        self._failed = 0

    @property
    def last_rewarded_steps(self) -> int:
        return self._last_rewarded_steps

    @property
    def granted_count(self) -> int:
        return self._granted

    @property
    def failed_count(self) -> int:
        return self._failed

    def reset(self, steps: int = 0) -> None:
        """Move the checkpoint, e.g. after the step counter was zeroed."""
        self._last_rewarded_steps = steps

    def check(self, steps: int) -> bool:
        """Evaluate the rule for the current cumulative step count.

        Returns True when a reward was attempted. The checkpoint advances even
        when the ledger call fails; that reward opportunity is not retried.
        """
        if steps // self.steps_threshold <= self._last_rewarded_steps // self.steps_threshold:
            return False

        description = self.description.format(threshold=self.steps_threshold, steps=steps)
        try:
            if self.ledger is None:
                raise RuntimeError("No wallet available for reward")
            transaction_id = self.ledger.add_transaction(self.amount, self.transaction_type, description)
        except Exception as e:
            self._failed += 1
            logger.error(f"Reward for {steps} steps failed: {e}")
            if self.event_log:
                self.event_log.error("Reward failed", {
                    "steps": steps,
                    "error": str(e),
                    "type": type(e).__name__,
                })
        else:
            self._granted += 1
            if self.event_log:
                self.event_log.event("REWARD", steps=steps, data={
                    "amount": self.amount,
                    "transaction_id": transaction_id,
                    "description": description,
                })
            if self.notifier:
                self.notifier.success(
                    f"Congratulations! You completed {self.steps_threshold} steps! +{self.amount} FIT"
                )

        self._last_rewarded_steps = steps
        return True
