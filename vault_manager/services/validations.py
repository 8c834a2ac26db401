"""Validator: ordered warning and error codes for a manage vault state.

Both passes read the derived fields already present on the state, so calling
them on a hand-built fixture yields the same codes the live pipeline would.
"""

from typing import List

from ..common.vault_math import MAX_UINT256, ZERO, is_zero_or_empty, or_zero
from ..models.enums import ManageVaultErrorMessage, ManageVaultWarningMessage, StageGroup, StageStep
from ..models.stages import EDITING_STAGES, parse_stage, stage_group, stage_step
from ..models.state import ManageVaultState


Warning = ManageVaultWarningMessage
Error = ManageVaultErrorMessage

_ALLOWANCE_EDITING_STEPS = frozenset({StageStep.WAITING_FOR_CONFIRMATION, StageStep.FAILURE})


def _is_allowance_editing(state: ManageVaultState, group: StageGroup) -> bool:
    stage = parse_stage(state.stage)
    return stage_group(stage) is group and stage_step(stage) in _ALLOWANCE_EDITING_STEPS


def validate_warnings(state: ManageVaultState) -> ManageVaultState:
    """Collect non-blocking warnings.

    Args:
        state: State carrying inputs, environment and derived USD values.

    Returns:
        ManageVaultState: Copy with ``warning_messages`` replaced.
    """
    warnings: List[ManageVaultWarningMessage] = []
    is_editing = parse_stage(state.stage) in EDITING_STAGES

    if state.proxy_address is None:
        warnings.append(Warning.NO_PROXY_ADDRESS)

    if is_editing and state.deposit_amount is None:
        warnings.append(Warning.DEPOSIT_AMOUNT_EMPTY)

    if is_editing and state.generate_amount is None:
        warnings.append(Warning.GENERATE_AMOUNT_EMPTY)

    if state.deposit_amount_usd is not None and state.ilk_data.debt_floor > state.deposit_amount_usd:
        warnings.append(Warning.POTENTIAL_GENERATE_AMOUNT_LESS_THAN_DEBT_FLOOR)

    if not state.is_native_token:
        if state.collateral_allowance is None:
            warnings.append(Warning.NO_COLLATERAL_ALLOWANCE)
        elif state.deposit_amount is not None and state.deposit_amount > state.collateral_allowance:
            warnings.append(Warning.COLLATERAL_ALLOWANCE_LESS_THAN_DEPOSIT_AMOUNT)

    if state.dai_allowance is None:
        warnings.append(Warning.NO_DAI_ALLOWANCE)
    elif (
        not is_zero_or_empty(state.payback_amount)
        and state.payback_amount + state.vault.debt_offset > state.dai_allowance
    ):
        warnings.append(Warning.DAI_ALLOWANCE_LESS_THAN_PAYBACK_AMOUNT)

    return state.model_copy(update={"warning_messages": warnings})


def validate_errors(state: ManageVaultState) -> ManageVaultState:
    """Collect blocking errors; any entry prevents progression."""
    errors: List[ManageVaultErrorMessage] = []
    debt = state.vault.debt
    debt_floor = state.ilk_data.debt_floor

    if state.deposit_amount is not None and state.deposit_amount > state.max_deposit_amount:
        errors.append(Error.DEPOSIT_AMOUNT_GREATER_THAN_MAX_DEPOSIT_AMOUNT)

    if state.withdraw_amount is not None and state.withdraw_amount > state.max_withdraw_amount:
        errors.append(Error.WITHDRAW_AMOUNT_GREATER_THAN_MAX_WITHDRAW_AMOUNT)

    if state.generate_amount is not None:
        debt_with_generate = debt + state.generate_amount
        if not debt_with_generate.is_zero() and debt_with_generate < debt_floor:
            errors.append(Error.GENERATE_AMOUNT_LESS_THAN_DEBT_FLOOR)
        if state.generate_amount > state.ilk_data.ilk_debt_available:
            errors.append(Error.GENERATE_AMOUNT_GREATER_THAN_DEBT_CEILING)

    if state.payback_amount is not None:
        if state.payback_amount > state.max_payback_amount:
            errors.append(Error.PAYBACK_AMOUNT_GREATER_THAN_MAX_PAYBACK_AMOUNT)
        remaining_debt = debt - or_zero(state.payback_amount)
        if not state.should_payback_all and ZERO < remaining_debt < debt_floor:
            errors.append(Error.PAYBACK_AMOUNT_LESS_THAN_DEBT_FLOOR)

    if _is_allowance_editing(state, StageGroup.COLLATERAL_ALLOWANCE):
        amount = state.collateral_allowance_amount
        if amount is None:
            errors.append(Error.COLLATERAL_ALLOWANCE_AMOUNT_EMPTY)
        elif amount > MAX_UINT256:
            errors.append(Error.CUSTOM_COLLATERAL_ALLOWANCE_AMOUNT_GREATER_THAN_MAX_UINT256)
        elif state.deposit_amount is not None and amount < state.deposit_amount:
            errors.append(Error.CUSTOM_COLLATERAL_ALLOWANCE_AMOUNT_LESS_THAN_DEPOSIT_AMOUNT)

    if _is_allowance_editing(state, StageGroup.DAI_ALLOWANCE):
        amount = state.dai_allowance_amount
        if amount is None:
            errors.append(Error.DAI_ALLOWANCE_AMOUNT_EMPTY)
        elif amount > MAX_UINT256:
            errors.append(Error.CUSTOM_DAI_ALLOWANCE_AMOUNT_GREATER_THAN_MAX_UINT256)
        elif state.payback_amount is not None and amount < state.payback_amount:
            errors.append(Error.CUSTOM_DAI_ALLOWANCE_AMOUNT_LESS_THAN_PAYBACK_AMOUNT)

    ratio = state.after_collateralization_ratio
    if not ratio.is_zero() and ratio < state.ilk_data.liquidation_ratio:
        errors.append(Error.VAULT_UNDER_COLLATERALIZED)

    return state.model_copy(update={"error_messages": errors})
