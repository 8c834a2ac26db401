"""Condition evaluator: stage categories, step counters and progression flags."""

from decimal import Decimal
import logging
from typing import Dict, Optional

from ..common.addresses import same_address
from ..common.vault_math import MAX_UINT256, ZERO, is_nullish, is_positive, is_zero_or_empty, or_zero
from ..models.enums import AllowanceOption, StageGroup, StageStep
from ..models.stages import LOADING_STAGES, REGRESSABLE_STAGES, parse_stage, stage_group, stage_step
from ..models.state import ManageVaultState


logger = logging.getLogger(__name__)

_CATEGORY_FLAGS: Dict[StageGroup, str] = {
    StageGroup.EDITING: "is_editing_stage",
    StageGroup.PROXY: "is_proxy_stage",
    StageGroup.COLLATERAL_ALLOWANCE: "is_collateral_allowance_stage",
    StageGroup.DAI_ALLOWANCE: "is_dai_allowance_stage",
    StageGroup.MANAGE: "is_manage_stage",
    StageGroup.MULTIPLY_TRANSITION: "is_multiply_transition_stage",
}


def has_collateral_allowance(state: ManageVaultState) -> bool:
    """Whether the proxy may already pull the pending deposit."""
    if state.is_native_token or is_zero_or_empty(state.deposit_amount):
        return True
    allowance = state.collateral_allowance
    return allowance is not None and allowance >= state.deposit_amount


def has_dai_allowance(state: ManageVaultState) -> bool:
    """Whether the proxy may already pull the pending payback plus the debt offset."""
    if is_zero_or_empty(state.payback_amount):
        return True
    allowance = state.dai_allowance
    return allowance is not None and allowance >= state.payback_amount + state.vault.debt_offset


def _total_steps(state: ManageVaultState, collateral_allowance_ok: bool, dai_allowance_ok: bool) -> int:
    """Re-derive the step count from the allowance situation on every pass."""
    total_steps = state.initial_total_steps
    if total_steps == 2 and not (collateral_allowance_ok and dai_allowance_ok):
        total_steps = 3
    if (
        total_steps == 3
        and state.initial_total_steps == 3
        and collateral_allowance_ok
        and dai_allowance_ok
        and not is_zero_or_empty(state.payback_amount)
    ):
        total_steps = 2
    return total_steps


def apply_manage_vault_stage_categorisation(state: ManageVaultState) -> ManageVaultState:
    """Set the stage category flags, total steps and current step.

    Raises:
        UnreachableStageError: If the state carries a stage outside the closed set.
    """
    stage = parse_stage(state.stage)
    group = stage_group(stage)
    total_steps = _total_steps(state, has_collateral_allowance(state), has_dai_allowance(state))

    if group is StageGroup.EDITING:
        current_step = 1
    elif group is StageGroup.PROXY:
        current_step = total_steps - (1 if state.is_native_token else 2)
    elif group in {StageGroup.COLLATERAL_ALLOWANCE, StageGroup.DAI_ALLOWANCE}:
        current_step = total_steps - 1
    elif group is StageGroup.MANAGE:
        current_step = total_steps
    else:
        total_steps = 2
        current_step = 1 if stage_step(stage) is StageStep.EDITING else 2

    update = {flag: False for flag in _CATEGORY_FLAGS.values()}
    update[_CATEGORY_FLAGS[group]] = True
    update["total_steps"] = total_steps
    update["current_step"] = max(current_step, 1)
    return state.model_copy(update=update)


def _risk_flags(state: ManageVaultState, ratio: Decimal, inputs_empty: bool) -> Dict[str, bool]:
    """Classify a projected ratio; under-collateralized beats danger beats warning."""
    ilk_data = state.ilk_data
    if inputs_empty:
        return {"under_collateralized": False, "danger": False, "warning": False}
    under_collateralized = ratio < ilk_data.liquidation_ratio and not ratio.is_zero()
    danger = (
        not under_collateralized
        and ilk_data.liquidation_ratio <= ratio <= ilk_data.collateralization_danger_threshold
    )
    warning = (
        not under_collateralized
        and not danger
        and ilk_data.collateralization_danger_threshold < ratio <= ilk_data.collateralization_warning_threshold
    )
    return {"under_collateralized": under_collateralized, "danger": danger, "warning": warning}


def _custom_amount_flags(
    selected: AllowanceOption,
    custom_amount: Optional[Decimal],
    pending_amount: Optional[Decimal],
) -> Dict[str, bool]:
    """Flags for a custom allowance amount; all false unless CUSTOM is selected."""
    is_custom = selected is AllowanceOption.CUSTOM
    return {
        "empty": is_custom and is_zero_or_empty(custom_amount),
        "exceeds_max_uint256": is_custom and custom_amount is not None and custom_amount > MAX_UINT256,
        "less_than_pending": (
            is_custom
            and custom_amount is not None
            and pending_amount is not None
            and custom_amount < pending_amount
        ),
    }


def apply_manage_vault_conditions(state: ManageVaultState) -> ManageVaultState:
    """Derive the condition flags, including ``can_progress`` and ``can_regress``.

    Expects calculations, categorisation and validation to have run already;
    any validation error blocks progression.
    """
    vault = state.vault
    ilk_data = state.ilk_data
    stage = parse_stage(state.stage)
    deposit_amount = state.deposit_amount
    withdraw_amount = state.withdraw_amount
    generate_amount = state.generate_amount
    payback_amount = state.payback_amount

    deposit_and_withdraw_amounts_empty = is_nullish(deposit_amount) and is_nullish(withdraw_amount)
    generate_and_payback_amounts_empty = is_nullish(generate_amount) and is_nullish(payback_amount)
    input_amounts_empty = deposit_and_withdraw_amounts_empty and generate_and_payback_amounts_empty
    deposit_and_withdraw_amounts_both_set = is_positive(deposit_amount) and is_positive(withdraw_amount)
    generate_and_payback_amounts_both_set = is_positive(generate_amount) and (
        is_positive(payback_amount) or state.should_payback_all
    )

    risk = _risk_flags(state, state.after_collateralization_ratio, input_amounts_empty)
    risk_next = _risk_flags(state, state.after_collateralization_ratio_at_next_price, input_amounts_empty)

    account_is_connected = state.account is not None
    account_is_controller = same_address(state.account, vault.controller) if account_is_connected else True

    collateral_balance = state.balance_info.collateral_balance
    deposit_amount_exceeds_collateral_balance = deposit_amount is not None and deposit_amount > collateral_balance
    depositing_all_eth_balance = (
        state.is_native_token and deposit_amount is not None and deposit_amount == collateral_balance
    )

    withdraw_amount_exceeds_free_collateral = (
        withdraw_amount is not None and withdraw_amount > state.max_withdraw_amount_at_current_price
    )
    withdraw_amount_exceeds_free_collateral_at_next_price = (
        not withdraw_amount_exceeds_free_collateral
        and withdraw_amount is not None
        and withdraw_amount > state.max_withdraw_amount_at_next_price
    )

    generate_amount_exceeds_debt_ceiling = (
        generate_amount is not None and generate_amount > ilk_data.ilk_debt_available
    )
    generate_amount_exceeds_dai_yield = (
        not generate_amount_exceeds_debt_ceiling
        and generate_amount is not None
        and generate_amount > state.max_generate_amount_at_current_price
    )
    generate_amount_exceeds_dai_yield_at_next_price = (
        not generate_amount_exceeds_debt_ceiling
        and not generate_amount_exceeds_dai_yield
        and generate_amount is not None
        and generate_amount > state.max_generate_amount_at_next_price
    )
    debt_with_generate = vault.debt + or_zero(generate_amount)
    generate_amount_less_than_debt_floor = (
        generate_amount is not None
        and not debt_with_generate.is_zero()
        and debt_with_generate < ilk_data.debt_floor
    )

    payback_amount_exceeds_dai_balance = (
        payback_amount is not None and payback_amount > state.balance_info.dai_balance
    )
    payback_amount_exceeds_vault_debt = payback_amount is not None and payback_amount > vault.debt
    debt_after_payback = vault.debt - or_zero(payback_amount)
    debt_will_be_less_than_debt_floor = (
        payback_amount is not None
        and ZERO < debt_after_payback < ilk_data.debt_floor
        and not state.should_payback_all
    )

    collateral_allowance_ok = has_collateral_allowance(state)
    dai_allowance_ok = has_dai_allowance(state)
    custom_collateral = _custom_amount_flags(
        state.selected_collateral_allowance_radio, state.collateral_allowance_amount, deposit_amount
    )
    custom_dai = _custom_amount_flags(state.selected_dai_allowance_radio, state.dai_allowance_amount, payback_amount)

    is_loading_stage = stage in LOADING_STAGES

    leaves_debt_under_floor = ZERO < state.after_debt < ilk_data.debt_floor
    withdraw_collateral_on_vault_under_debt_floor = is_positive(withdraw_amount) and leaves_debt_under_floor
    deposit_collateral_on_vault_under_debt_floor = is_positive(deposit_amount) and leaves_debt_under_floor

    editing_progression_disabled = state.is_editing_stage and (
        input_amounts_empty
        or not vault.controller
        or not account_is_connected
        or risk["under_collateralized"]
        or risk_next["under_collateralized"]
        or debt_will_be_less_than_debt_floor
        or deposit_amount_exceeds_collateral_balance
        or withdraw_amount_exceeds_free_collateral
        or withdraw_amount_exceeds_free_collateral_at_next_price
        or depositing_all_eth_balance
        or generate_amount_exceeds_debt_ceiling
        or generate_amount_less_than_debt_floor
        or payback_amount_exceeds_dai_balance
        or payback_amount_exceeds_vault_debt
        or withdraw_collateral_on_vault_under_debt_floor
        or deposit_collateral_on_vault_under_debt_floor
        or deposit_and_withdraw_amounts_both_set
        or generate_and_payback_amounts_both_set
    )
    collateral_allowance_progression_disabled = state.is_collateral_allowance_stage and any(
        custom_collateral.values()
    )
    dai_allowance_progression_disabled = state.is_dai_allowance_stage and any(custom_dai.values())
    multiply_transition_disabled = state.is_multiply_transition_stage and not account_is_controller

    can_progress = not (
        is_loading_stage
        or editing_progression_disabled
        or collateral_allowance_progression_disabled
        or dai_allowance_progression_disabled
        or multiply_transition_disabled
        or bool(state.error_messages)
    )

    return state.model_copy(
        update={
            "can_progress": can_progress,
            "can_regress": stage in REGRESSABLE_STAGES,
            "deposit_and_withdraw_amounts_empty": deposit_and_withdraw_amounts_empty,
            "generate_and_payback_amounts_empty": generate_and_payback_amounts_empty,
            "input_amounts_empty": input_amounts_empty,
            "deposit_and_withdraw_amounts_both_set": deposit_and_withdraw_amounts_both_set,
            "generate_and_payback_amounts_both_set": generate_and_payback_amounts_both_set,
            "vault_will_be_under_collateralized": risk["under_collateralized"],
            "vault_will_be_at_risk_level_danger": risk["danger"],
            "vault_will_be_at_risk_level_warning": risk["warning"],
            "vault_will_be_under_collateralized_at_next_price": (
                not risk["under_collateralized"] and risk_next["under_collateralized"]
            ),
            "vault_will_be_at_risk_level_danger_at_next_price": not risk["danger"] and risk_next["danger"],
            "vault_will_be_at_risk_level_warning_at_next_price": not risk["warning"] and risk_next["warning"],
            "account_is_connected": account_is_connected,
            "account_is_controller": account_is_controller,
            "depositing_all_eth_balance": depositing_all_eth_balance,
            "deposit_amount_exceeds_collateral_balance": deposit_amount_exceeds_collateral_balance,
            "withdraw_amount_exceeds_free_collateral": withdraw_amount_exceeds_free_collateral,
            "withdraw_amount_exceeds_free_collateral_at_next_price": (
                withdraw_amount_exceeds_free_collateral_at_next_price
            ),
            "generate_amount_exceeds_dai_yield_from_total_collateral": generate_amount_exceeds_dai_yield,
            "generate_amount_exceeds_dai_yield_from_total_collateral_at_next_price": (
                generate_amount_exceeds_dai_yield_at_next_price
            ),
            "generate_amount_less_than_debt_floor": generate_amount_less_than_debt_floor,
            "generate_amount_exceeds_debt_ceiling": generate_amount_exceeds_debt_ceiling,
            "payback_amount_exceeds_vault_debt": payback_amount_exceeds_vault_debt,
            "payback_amount_exceeds_dai_balance": payback_amount_exceeds_dai_balance,
            "debt_will_be_less_than_debt_floor": debt_will_be_less_than_debt_floor,
            "is_loading_stage": is_loading_stage,
            "has_collateral_allowance": collateral_allowance_ok,
            "has_dai_allowance": dai_allowance_ok,
            "insufficient_collateral_allowance": not collateral_allowance_ok,
            "custom_collateral_allowance_amount_empty": custom_collateral["empty"],
            "custom_collateral_allowance_amount_exceeds_max_uint256": custom_collateral["exceeds_max_uint256"],
            "custom_collateral_allowance_amount_less_than_deposit_amount": custom_collateral["less_than_pending"],
            "insufficient_dai_allowance": not dai_allowance_ok,
            "custom_dai_allowance_amount_empty": custom_dai["empty"],
            "custom_dai_allowance_amount_exceeds_max_uint256": custom_dai["exceeds_max_uint256"],
            "custom_dai_allowance_amount_less_than_payback_amount": custom_dai["less_than_pending"],
            "withdraw_collateral_on_vault_under_debt_floor": withdraw_collateral_on_vault_under_debt_floor,
            "deposit_collateral_on_vault_under_debt_floor": deposit_collateral_on_vault_under_debt_floor,
        }
    )
