"""Derived-value calculator: after-action projections and safety bounds.

Pure functions only. Nothing here knows about stages; every value is a
function of the vault, ilk parameters, prices, balances and pending inputs.
"""

from decimal import Decimal
from typing import Tuple

from ..common import vault_math
from ..common.vault_math import ZERO, or_zero
from ..models.state import ManageVaultState


def _after_amounts(state: ManageVaultState) -> Tuple[Decimal, Decimal]:
    """Return (after_locked_collateral, after_debt) for the pending inputs.

    Both directions are composed when set together, so the projection stays
    deterministic even if the form sends deposit and withdraw at once.
    """
    vault = state.vault
    after_locked_collateral = (
        vault.locked_collateral + or_zero(state.deposit_amount) - or_zero(state.withdraw_amount)
    )
    payback = vault.debt if state.should_payback_all else or_zero(state.payback_amount)
    after_debt = vault.debt + or_zero(state.generate_amount) - payback
    return max(after_locked_collateral, ZERO), max(after_debt, ZERO)


def apply_manage_vault_calculations(state: ManageVaultState) -> ManageVaultState:
    """Recompute every derived field of the state.

    Args:
        state: State whose environment and input fields are authoritative.

    Returns:
        ManageVaultState: Copy with all calculation fields refreshed.
    """
    vault = state.vault
    ilk_data = state.ilk_data
    liquidation_ratio = ilk_data.liquidation_ratio
    current_price = state.price_info.current_collateral_price
    next_price = state.price_info.next_collateral_price

    after_locked_collateral, after_debt = _after_amounts(state)
    # Collateral available to back debt once the collateral side of the action lands.
    collateral_for_withdraw = vault.locked_collateral + or_zero(state.deposit_amount)

    max_withdraw_at_current_price = vault_math.free_collateral(
        collateral_for_withdraw, after_debt, current_price, liquidation_ratio
    )
    max_withdraw_at_next_price = vault_math.free_collateral(
        collateral_for_withdraw, after_debt, next_price, liquidation_ratio
    )
    max_withdraw_amount = min(max_withdraw_at_current_price, max_withdraw_at_next_price)

    max_generate_at_current_price = vault_math.max_generate(
        after_locked_collateral, vault.debt, current_price, liquidation_ratio, ilk_data.ilk_debt_available
    )
    max_generate_at_next_price = vault_math.max_generate(
        after_locked_collateral, vault.debt, next_price, liquidation_ratio, ilk_data.ilk_debt_available
    )

    max_deposit_amount = state.balance_info.collateral_balance
    max_payback_amount = min(vault.debt, state.balance_info.dai_balance)

    return state.model_copy(
        update={
            "deposit_amount_usd": vault_math.to_usd(state.deposit_amount, current_price),
            "withdraw_amount_usd": vault_math.to_usd(state.withdraw_amount, current_price),
            "max_deposit_amount": max_deposit_amount,
            "max_deposit_amount_usd": max_deposit_amount * current_price,
            "max_withdraw_amount": max_withdraw_amount,
            "max_withdraw_amount_usd": max_withdraw_amount * current_price,
            "max_withdraw_amount_at_current_price": max_withdraw_at_current_price,
            "max_withdraw_amount_at_next_price": max_withdraw_at_next_price,
            "max_generate_amount": min(max_generate_at_current_price, max_generate_at_next_price),
            "max_generate_amount_at_current_price": max_generate_at_current_price,
            "max_generate_amount_at_next_price": max_generate_at_next_price,
            "max_payback_amount": max_payback_amount,
            "collateralization_ratio": vault_math.collateralization_ratio(
                vault.locked_collateral, current_price, vault.debt
            ),
            "collateralization_ratio_at_next_price": vault_math.collateralization_ratio(
                vault.locked_collateral, next_price, vault.debt
            ),
            "liquidation_price": vault_math.liquidation_price(vault.locked_collateral, vault.debt, liquidation_ratio),
            "free_collateral": vault_math.free_collateral(
                vault.locked_collateral, vault.debt, current_price, liquidation_ratio
            ),
            "free_collateral_at_next_price": vault_math.free_collateral(
                vault.locked_collateral, vault.debt, next_price, liquidation_ratio
            ),
            "dai_yield_from_locked_collateral": max(
                vault_math.dai_yield(vault.locked_collateral, current_price, liquidation_ratio) - vault.debt,
                ZERO,
            ),
            "after_locked_collateral": after_locked_collateral,
            "after_locked_collateral_usd": after_locked_collateral * current_price,
            "after_debt": after_debt,
            "after_collateralization_ratio": vault_math.collateralization_ratio(
                after_locked_collateral, current_price, after_debt
            ),
            "after_collateralization_ratio_at_next_price": vault_math.collateralization_ratio(
                after_locked_collateral, next_price, after_debt
            ),
            "after_liquidation_price": vault_math.liquidation_price(
                after_locked_collateral, after_debt, liquidation_ratio
            ),
            "after_free_collateral": vault_math.free_collateral(
                after_locked_collateral, after_debt, current_price, liquidation_ratio
            ),
            "after_free_collateral_at_next_price": vault_math.free_collateral(
                after_locked_collateral, after_debt, next_price, liquidation_ratio
            ),
        }
    )
