"""
Entitlement gate for batch uploads.

Free users may submit one file per request; premium users up to the
configured batch ceiling. Larger free batches are refused as a whole,
nothing in them is processed.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from pixdrop_core.config import settings
from pixdrop_core.domain.exceptions import BatchLimitExceeded
from pixdrop_core.infrastructure.postgres import get_db_connection

BATCH_LIMIT_REASON = "batch limit"


@dataclass(frozen=True)
class EntitlementDecision:
    """Outcome of an entitlement check."""

    allowed: bool
    reason: str | None = None


class EntitlementGate:
    """Pure batch-size decision function.

    Usage:
        gate = EntitlementGate()
        gate.enforce(is_premium=ctx.is_premium, batch_size=len(files))
    """

    def __init__(self, free_batch_size: int | None = None, max_batch_size: int | None = None):
        self.free_batch_size = free_batch_size or settings.FREE_BATCH_SIZE
        self.max_batch_size = max_batch_size or settings.MAX_BATCH_SIZE

    def batch_limit(self, is_premium: bool) -> int:
        return self.max_batch_size if is_premium else self.free_batch_size

    def evaluate(self, is_premium: bool, batch_size: int) -> EntitlementDecision:
        """Decide whether a batch of ``batch_size`` files is allowed."""
        if batch_size > self.batch_limit(is_premium):
            return EntitlementDecision(allowed=False, reason=BATCH_LIMIT_REASON)
        return EntitlementDecision(allowed=True)

    def enforce(self, is_premium: bool, batch_size: int) -> None:
        """Raise BatchLimitExceeded when the batch is not allowed."""
        decision = self.evaluate(is_premium, batch_size)
        if decision.allowed:
            return

        if is_premium:
            message = f"Batch processing is limited to {self.max_batch_size} files"
        else:
            message = "Batch processing requires Premium subscription"
        raise BatchLimitExceeded(message, message_debug=f"{decision.reason}: {batch_size} files")


class SubscriptionLookup:
    """Reads the premium flag maintained by the billing side."""

    def is_premium(self, user_id: str | None) -> bool:
        """
        Check whether a user currently holds a premium entitlement.

        Args:
            user_id: The user id, None for anonymous callers.

        Returns:
            bool: True only for known users flagged premium.
        """
        if not user_id:
            return False

        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT is_premium FROM users WHERE id = %s",
                (user_id,),
            )
            row = cursor.fetchone()

        if row is None:
            logger.warning(f"Entitlement lookup for unknown user {user_id}")
            return False
        return bool(row[0])
