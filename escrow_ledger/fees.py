"""Platform fee math and the administrator-controlled fee policy.

Fee math is integer-only and always rounds down, so the seller never
receives less than ``amount - fee`` and the collector never receives
more than the configured rate implies.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

import structlog

from escrow_ledger.errors import FeePercentageTooHigh, InvalidAddress, NotAuthorized
from escrow_ledger.ledger.types import is_null_address

log = structlog.get_logger()

BPS_DENOMINATOR = 10_000
MAX_FEE_BPS = 1_000  # 10%


def compute_fee(amount: int, fee_percentage_bps: int) -> int:
    """Fee for ``amount`` at ``fee_percentage_bps``, floored.

    Raises:
        ValueError: If amount is negative or the rate is outside
            [0, MAX_FEE_BPS].
    """
    if amount < 0:
        raise ValueError(f"amount must be non-negative, got {amount}")
    if not 0 <= fee_percentage_bps <= MAX_FEE_BPS:
        raise ValueError(
            f"fee_percentage_bps must be in [0, {MAX_FEE_BPS}], got {fee_percentage_bps}"
        )
    return amount * fee_percentage_bps // BPS_DENOMINATOR


@dataclass(frozen=True)
class FeeSchedule:
    """Point-in-time view of the fee policy."""

    percentage_bps: int
    collector: str


class FeePolicy:
    """Mutable fee configuration guarded by an administrator check.

    The rate and collector are published together as one immutable
    FeeSchedule; readers take a snapshot and never see a half-applied
    update.
    """

    def __init__(
        self,
        administrator: str,
        percentage_bps: int,
        collector: str,
    ) -> None:
        if is_null_address(administrator):
            raise InvalidAddress("administrator", administrator)
        _check_bps(percentage_bps)
        if is_null_address(collector):
            raise InvalidAddress("fee_collector", collector)
        self._administrator = administrator
        self._schedule = FeeSchedule(percentage_bps=percentage_bps, collector=collector)
        self._lock = threading.Lock()

    @property
    def administrator(self) -> str:
        return self._administrator

    def is_administrator(self, caller: str) -> bool:
        return caller == self._administrator

    def snapshot(self) -> FeeSchedule:
        """Current schedule. Safe to call without holding any lock."""
        return self._schedule

    @property
    def percentage_bps(self) -> int:
        return self._schedule.percentage_bps

    @property
    def collector(self) -> str:
        return self._schedule.collector

    def update_fee(self, new_percentage_bps: int, caller: str) -> FeeSchedule:
        """Set a new fee rate.

        Raises:
            NotAuthorized: If caller is not the administrator.
            FeePercentageTooHigh: If the rate exceeds MAX_FEE_BPS.
        """
        self._require_administrator(caller, "update the fee percentage")
        _check_bps(new_percentage_bps)
        with self._lock:
            self._schedule = FeeSchedule(
                percentage_bps=new_percentage_bps,
                collector=self._schedule.collector,
            )
            return self._schedule

    def update_collector(self, new_collector: str, caller: str) -> FeeSchedule:
        """Set a new fee collector.

        Raises:
            NotAuthorized: If caller is not the administrator.
            InvalidAddress: If new_collector is a null identity.
        """
        self._require_administrator(caller, "update the fee collector")
        if is_null_address(new_collector):
            raise InvalidAddress("fee_collector", new_collector)
        with self._lock:
            self._schedule = FeeSchedule(
                percentage_bps=self._schedule.percentage_bps,
                collector=new_collector,
            )
            return self._schedule

    def _require_administrator(self, caller: str, action: str) -> None:
        if not self.is_administrator(caller):
            log.warning("admin_action_rejected", caller=caller, action=action)
            raise NotAuthorized(caller, action)


def _check_bps(percentage_bps: int) -> None:
    if percentage_bps > MAX_FEE_BPS:
        raise FeePercentageTooHigh(percentage_bps, MAX_FEE_BPS)
    if percentage_bps < 0:
        raise ValueError(f"fee_percentage_bps must be non-negative, got {percentage_bps}")
