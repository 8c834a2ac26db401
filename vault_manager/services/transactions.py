"""Transaction descriptors and the mapping of issuer updates onto stage changes."""

import logging
from typing import Literal, Optional, Union

from pydantic import Field

from ..common.vault_math import MAX_UINT256, or_zero
from ..models.base import Address, Amount, DomainModel
from ..models.changes import TransactionChange
from ..models.enums import AllowanceOption, FollowOnAction, StageGroup, TxStatus
from ..models.state import ManageVaultState


logger = logging.getLogger(__name__)


class CreateProxyAction(DomainModel):
    kind: Literal["create_proxy"] = "create_proxy"
    account: Optional[Address] = None


class ApproveAction(DomainModel):
    """Grant ``spender`` an allowance of ``amount`` on ``token``."""

    kind: Literal["approve"] = "approve"
    flow: StageGroup
    token: str
    spender: Optional[Address] = None
    amount: Amount = Field(..., ge=0)


class DepositAndGenerateAction(DomainModel):
    kind: Literal["deposit_and_generate"] = "deposit_and_generate"
    vault_id: int
    ilk: str
    token: str
    proxy_address: Optional[Address] = None
    deposit_amount: Amount = Field(..., ge=0)
    generate_amount: Amount = Field(..., ge=0)


class WithdrawAndPaybackAction(DomainModel):
    kind: Literal["withdraw_and_payback"] = "withdraw_and_payback"
    vault_id: int
    ilk: str
    token: str
    proxy_address: Optional[Address] = None
    withdraw_amount: Amount = Field(..., ge=0)
    payback_amount: Amount = Field(..., ge=0)
    should_payback_all: bool = False


class MultiplyTransitionAction(DomainModel):
    kind: Literal["multiply_transition"] = "multiply_transition"
    vault_id: int
    ilk: str
    token: str
    proxy_address: Optional[Address] = None


TransactionAction = Union[
    CreateProxyAction,
    ApproveAction,
    DepositAndGenerateAction,
    WithdrawAndPaybackAction,
    MultiplyTransitionAction,
]


class TxState(DomainModel):
    """One update pushed by the transaction issuer."""

    status: TxStatus
    tx_hash: Optional[str] = None
    confirmations: int = Field(default=0, ge=0)
    error: Optional[str] = None
    proxy_address: Optional[Address] = None


def approval_amount(
    option: AllowanceOption,
    custom_amount: Optional[Amount],
    exact_amount: Amount,
) -> Amount:
    """Resolve the allowance to request from the selected option."""
    if option is AllowanceOption.UNLIMITED:
        return MAX_UINT256
    if option is AllowanceOption.EXACT_AMOUNT:
        return exact_amount
    return or_zero(custom_amount)


def build_action(state: ManageVaultState, action: FollowOnAction) -> TransactionAction:
    """Build the descriptor handed to the transaction issuer.

    Args:
        state: State at the moment the action was requested.
        action: Follow-on action chosen by the transition engine.

    Returns:
        TransactionAction: Immutable descriptor for ``TransactionIssuer.send``.
    """
    vault = state.vault
    if action is FollowOnAction.CREATE_PROXY:
        return CreateProxyAction(account=state.account)
    if action is FollowOnAction.COLLATERAL_ALLOWANCE:
        return ApproveAction(
            flow=StageGroup.COLLATERAL_ALLOWANCE,
            token=vault.token,
            spender=state.proxy_address,
            amount=approval_amount(
                state.selected_collateral_allowance_radio,
                state.collateral_allowance_amount,
                or_zero(state.deposit_amount),
            ),
        )
    if action is FollowOnAction.DAI_ALLOWANCE:
        return ApproveAction(
            flow=StageGroup.DAI_ALLOWANCE,
            token="DAI",
            spender=state.proxy_address,
            amount=approval_amount(
                state.selected_dai_allowance_radio,
                state.dai_allowance_amount,
                or_zero(state.payback_amount) + vault.debt_offset,
            ),
        )
    if action is FollowOnAction.DEPOSIT_AND_GENERATE:
        return DepositAndGenerateAction(
            vault_id=vault.id,
            ilk=vault.ilk,
            token=vault.token,
            proxy_address=state.proxy_address,
            deposit_amount=or_zero(state.deposit_amount),
            generate_amount=or_zero(state.generate_amount),
        )
    if action is FollowOnAction.WITHDRAW_AND_PAYBACK:
        return WithdrawAndPaybackAction(
            vault_id=vault.id,
            ilk=vault.ilk,
            token=vault.token,
            proxy_address=state.proxy_address,
            withdraw_amount=or_zero(state.withdraw_amount),
            payback_amount=vault.debt if state.should_payback_all else or_zero(state.payback_amount),
            should_payback_all=state.should_payback_all,
        )
    return MultiplyTransitionAction(
        vault_id=vault.id,
        ilk=vault.ilk,
        token=vault.token,
        proxy_address=state.proxy_address,
    )


def transaction_change(
    flow: StageGroup,
    tx_state: TxState,
    safe_confirmations: int,
    approved_amount: Optional[Amount] = None,
) -> TransactionChange:
    """Translate an issuer update into the change that moves the flow's stage.

    A success with fewer than ``safe_confirmations`` confirmations keeps the
    flow in progress. The multiply flow has no approval stage, so approval
    is reported as in progress.
    """
    status = tx_state.status
    if status is TxStatus.WAITING_FOR_APPROVAL and flow is StageGroup.MULTIPLY_TRANSITION:
        status = TxStatus.IN_PROGRESS
    if status is TxStatus.SUCCESS and tx_state.confirmations < safe_confirmations:
        logger.debug(
            "Transaction %s for %s has %s/%s confirmations",
            tx_state.tx_hash,
            flow.value,
            tx_state.confirmations,
            safe_confirmations,
        )
        status = TxStatus.IN_PROGRESS
    if status is TxStatus.FAILURE:
        logger.warning("Transaction for %s failed: %s", flow.value, tx_state.error)

    is_success = status is TxStatus.SUCCESS
    is_allowance_flow = flow in {StageGroup.COLLATERAL_ALLOWANCE, StageGroup.DAI_ALLOWANCE}
    return TransactionChange(
        flow=flow,
        status=status,
        tx_hash=tx_state.tx_hash,
        confirmations=tx_state.confirmations,
        error=tx_state.error if status is TxStatus.FAILURE else None,
        proxy_address=tx_state.proxy_address if is_success and flow is StageGroup.PROXY else None,
        allowance=approved_amount if is_success and is_allowance_flow else None,
    )


def action_flow(action: FollowOnAction) -> StageGroup:
    """Stage group whose stages track the transaction of ``action``."""
    if action in {FollowOnAction.DEPOSIT_AND_GENERATE, FollowOnAction.WITHDRAW_AND_PAYBACK}:
        return StageGroup.MANAGE
    return {
        FollowOnAction.CREATE_PROXY: StageGroup.PROXY,
        FollowOnAction.COLLATERAL_ALLOWANCE: StageGroup.COLLATERAL_ALLOWANCE,
        FollowOnAction.DAI_ALLOWANCE: StageGroup.DAI_ALLOWANCE,
        FollowOnAction.MULTIPLY_TRANSITION: StageGroup.MULTIPLY_TRANSITION,
    }[action]
