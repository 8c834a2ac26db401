"""Manage vault state aggregate: environment, user inputs, stage and derived layers."""

from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from ..common.addresses import normalize_address
from ..common.vault_math import MAX_UINT256, ZERO
from .base import Address, Amount, DomainModel
from .enums import AllowanceOption, ManageVaultErrorMessage, ManageVaultStage, ManageVaultWarningMessage
from .vault import BalanceInfo, IlkData, PriceInfo, Vault


class ManageVaultCalculations(DomainModel):
    """Derived quantities; recomputed from scratch on every pipeline pass."""

    max_deposit_amount: Amount = ZERO
    max_deposit_amount_usd: Amount = ZERO
    max_withdraw_amount: Amount = ZERO
    max_withdraw_amount_usd: Amount = ZERO
    max_withdraw_amount_at_current_price: Amount = ZERO
    max_withdraw_amount_at_next_price: Amount = ZERO
    max_generate_amount: Amount = ZERO
    max_generate_amount_at_current_price: Amount = ZERO
    max_generate_amount_at_next_price: Amount = ZERO
    max_payback_amount: Amount = ZERO

    collateralization_ratio: Amount = ZERO
    collateralization_ratio_at_next_price: Amount = ZERO
    liquidation_price: Amount = ZERO
    free_collateral: Amount = ZERO
    free_collateral_at_next_price: Amount = ZERO
    dai_yield_from_locked_collateral: Amount = ZERO

    after_locked_collateral: Amount = ZERO
    after_locked_collateral_usd: Amount = ZERO
    after_debt: Amount = ZERO
    after_collateralization_ratio: Amount = ZERO
    after_collateralization_ratio_at_next_price: Amount = ZERO
    after_liquidation_price: Amount = ZERO
    after_free_collateral: Amount = ZERO
    after_free_collateral_at_next_price: Amount = ZERO


class ManageVaultStageCategories(DomainModel):
    """Which stage group is active, plus progress counters for display."""

    is_editing_stage: bool = False
    is_proxy_stage: bool = False
    is_collateral_allowance_stage: bool = False
    is_dai_allowance_stage: bool = False
    is_manage_stage: bool = False
    is_multiply_transition_stage: bool = False

    initial_total_steps: int = Field(default=3, ge=2, le=3)
    total_steps: int = Field(default=3, ge=2, le=3)
    current_step: int = Field(default=1, ge=0)


class ManageVaultConditions(DomainModel):
    """Named booleans gating progression and feeding the UI."""

    can_progress: bool = False
    can_regress: bool = False

    deposit_and_withdraw_amounts_empty: bool = True
    generate_and_payback_amounts_empty: bool = True
    input_amounts_empty: bool = True
    deposit_and_withdraw_amounts_both_set: bool = False
    generate_and_payback_amounts_both_set: bool = False

    vault_will_be_at_risk_level_warning: bool = False
    vault_will_be_at_risk_level_danger: bool = False
    vault_will_be_under_collateralized: bool = False
    vault_will_be_at_risk_level_warning_at_next_price: bool = False
    vault_will_be_at_risk_level_danger_at_next_price: bool = False
    vault_will_be_under_collateralized_at_next_price: bool = False

    account_is_connected: bool = False
    account_is_controller: bool = False

    depositing_all_eth_balance: bool = False
    deposit_amount_exceeds_collateral_balance: bool = False
    withdraw_amount_exceeds_free_collateral: bool = False
    withdraw_amount_exceeds_free_collateral_at_next_price: bool = False
    generate_amount_exceeds_dai_yield_from_total_collateral: bool = False
    generate_amount_exceeds_dai_yield_from_total_collateral_at_next_price: bool = False
    generate_amount_less_than_debt_floor: bool = False
    generate_amount_exceeds_debt_ceiling: bool = False
    payback_amount_exceeds_vault_debt: bool = False
    payback_amount_exceeds_dai_balance: bool = False
    debt_will_be_less_than_debt_floor: bool = False

    is_loading_stage: bool = False

    has_collateral_allowance: bool = True
    has_dai_allowance: bool = True
    insufficient_collateral_allowance: bool = False
    custom_collateral_allowance_amount_empty: bool = False
    custom_collateral_allowance_amount_exceeds_max_uint256: bool = False
    custom_collateral_allowance_amount_less_than_deposit_amount: bool = False

    insufficient_dai_allowance: bool = False
    custom_dai_allowance_amount_empty: bool = False
    custom_dai_allowance_amount_exceeds_max_uint256: bool = False
    custom_dai_allowance_amount_less_than_payback_amount: bool = False

    withdraw_collateral_on_vault_under_debt_floor: bool = False
    deposit_collateral_on_vault_under_debt_floor: bool = False


# Pending user inputs and the values they return to on toggle/clear.
FORM_DEFAULTS: Dict[str, Any] = {
    "deposit_amount": None,
    "deposit_amount_usd": None,
    "withdraw_amount": None,
    "withdraw_amount_usd": None,
    "generate_amount": None,
    "payback_amount": None,
    "should_payback_all": False,
    "collateral_allowance_amount": MAX_UINT256,
    "dai_allowance_amount": MAX_UINT256,
    "selected_collateral_allowance_radio": AllowanceOption.UNLIMITED,
    "selected_dai_allowance_radio": AllowanceOption.UNLIMITED,
    "show_deposit_and_generate_option": False,
    "show_payback_and_withdraw_option": False,
}


class ManageVaultState(ManageVaultCalculations, ManageVaultStageCategories, ManageVaultConditions):
    """Aggregate root of one vault management session.

    Environment and input fields are written only through changes applied by
    the session; every derived, condition and validation field is recomputed
    by the pipeline after each change.
    """

    # Environment snapshot
    vault: Vault
    ilk_data: IlkData
    price_info: PriceInfo
    balance_info: BalanceInfo = Field(default_factory=BalanceInfo)
    account: Optional[Address] = None
    proxy_address: Optional[Address] = None
    collateral_allowance: Optional[Amount] = None
    dai_allowance: Optional[Amount] = None
    safe_confirmations: int = Field(default=10, ge=0)
    native_token: str = "ETH"

    # User inputs
    deposit_amount: Optional[Amount] = Field(default=None, ge=0)
    deposit_amount_usd: Optional[Amount] = Field(default=None, ge=0)
    withdraw_amount: Optional[Amount] = Field(default=None, ge=0)
    withdraw_amount_usd: Optional[Amount] = Field(default=None, ge=0)
    generate_amount: Optional[Amount] = Field(default=None, ge=0)
    payback_amount: Optional[Amount] = Field(default=None, ge=0)
    should_payback_all: bool = False
    collateral_allowance_amount: Optional[Amount] = MAX_UINT256
    dai_allowance_amount: Optional[Amount] = MAX_UINT256
    selected_collateral_allowance_radio: AllowanceOption = AllowanceOption.UNLIMITED
    selected_dai_allowance_radio: AllowanceOption = AllowanceOption.UNLIMITED
    show_deposit_and_generate_option: bool = False
    show_payback_and_withdraw_option: bool = False
    show_ilk_details: bool = False

    # Stage
    stage: ManageVaultStage = ManageVaultStage.COLLATERAL_EDITING
    original_editing_stage: ManageVaultStage = ManageVaultStage.COLLATERAL_EDITING

    # Transaction info
    proxy_tx_hash: Optional[str] = None
    collateral_allowance_tx_hash: Optional[str] = None
    dai_allowance_tx_hash: Optional[str] = None
    manage_tx_hash: Optional[str] = None
    multiply_transition_tx_hash: Optional[str] = None
    proxy_confirmations: Optional[int] = None
    tx_error: Optional[str] = None

    # Validation
    error_messages: List[ManageVaultErrorMessage] = Field(default_factory=list)
    warning_messages: List[ManageVaultWarningMessage] = Field(default_factory=list)

    @field_validator("account", "proxy_address")
    @classmethod
    def _normalize_addresses(cls, value: Optional[str]) -> Optional[str]:
        return normalize_address(value)

    @property
    def token(self) -> str:
        """Collateral token symbol of the managed vault."""
        return self.vault.token

    @property
    def is_native_token(self) -> bool:
        """Whether the collateral is the network's native asset (no allowance needed)."""
        return self.vault.token == self.native_token.upper()
