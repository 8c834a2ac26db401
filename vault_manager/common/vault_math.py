"""Canonical vault math: single source of truth for derived quantities.

All helpers operate on ``decimal.Decimal`` and never divide by zero: where a
ratio or price is undefined (no debt, no collateral, no price) they return the
``ZERO`` sentinel instead.

    collateralization ratio  = collateral * price / debt
    liquidation price        = debt * liquidation_ratio / collateral
    backing collateral       = debt * liquidation_ratio / price
    dai yield                = collateral * price / liquidation_ratio
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from web3.constants import MAX_INT


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
ZERO: Decimal = Decimal(0)
MAX_UINT256: Decimal = Decimal(int(MAX_INT, 16))


# ---------------------------------------------------------------------------
# Input helpers
# ---------------------------------------------------------------------------

def or_zero(amount: Optional[Decimal]) -> Decimal:
    """Treat an absent amount as zero."""
    return ZERO if amount is None else amount


def is_nullish(amount: Optional[Decimal]) -> bool:
    """Return *True* when no amount was entered."""
    return amount is None


def is_zero_or_empty(amount: Optional[Decimal]) -> bool:
    """Return *True* when an amount is absent or exactly zero."""
    return amount is None or amount.is_zero()


def is_positive(amount: Optional[Decimal]) -> bool:
    """Return *True* when an amount is set and strictly greater than zero."""
    return amount is not None and amount > ZERO


# ---------------------------------------------------------------------------
# Position math
# ---------------------------------------------------------------------------

def collateralization_ratio(collateral: Decimal, price: Decimal, debt: Decimal) -> Decimal:
    """Collateral value over debt; ``ZERO`` when the vault carries no debt."""
    if debt <= ZERO:
        return ZERO
    return collateral * price / debt


def liquidation_price(collateral: Decimal, debt: Decimal, liquidation_ratio: Decimal) -> Decimal:
    """Price at which the ratio equals the liquidation ratio; ``ZERO`` without collateral."""
    if collateral <= ZERO:
        return ZERO
    return debt * liquidation_ratio / collateral


def backing_collateral(debt: Decimal, price: Decimal, liquidation_ratio: Decimal) -> Decimal:
    """Collateral that must stay locked to keep *debt* at the liquidation ratio."""
    if debt <= ZERO or price <= ZERO:
        return ZERO
    return debt * liquidation_ratio / price


def free_collateral(collateral: Decimal, debt: Decimal, price: Decimal, liquidation_ratio: Decimal) -> Decimal:
    """Largest withdrawal that keeps the ratio at or above the liquidation ratio."""
    if debt > ZERO and price <= ZERO:
        # Without a price no collateral backing debt can be shown to be free.
        return ZERO
    return max(collateral - backing_collateral(debt, price, liquidation_ratio), ZERO)


def dai_yield(collateral: Decimal, price: Decimal, liquidation_ratio: Decimal) -> Decimal:
    """Total debt *collateral* can carry at the liquidation ratio."""
    if liquidation_ratio <= ZERO:
        return ZERO
    return collateral * price / liquidation_ratio


def max_generate(
    collateral: Decimal,
    debt: Decimal,
    price: Decimal,
    liquidation_ratio: Decimal,
    ilk_debt_available: Decimal,
) -> Decimal:
    """Largest additional debt keeping the ratio safe, capped by the debt ceiling headroom."""
    headroom = max(dai_yield(collateral, price, liquidation_ratio) - debt, ZERO)
    return min(headroom, max(ilk_debt_available, ZERO))


def to_usd(amount: Optional[Decimal], price: Decimal) -> Optional[Decimal]:
    """Convert a token amount to its USD value, keeping absent amounts absent."""
    if amount is None:
        return None
    return amount * price


def from_usd(amount_usd: Optional[Decimal], price: Decimal) -> Optional[Decimal]:
    """Convert a USD value back to a token amount; absent when no price is known."""
    if amount_usd is None or price <= ZERO:
        return None
    return amount_usd / price
