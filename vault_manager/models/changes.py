"""Closed tagged union of the events and commands a session accepts.

Every payload carries a ``kind`` discriminator. Raw mappings are parsed with
:func:`parse_change`, which rejects unknown kinds at the boundary.
"""

import logging
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import Field, TypeAdapter, ValidationError

from .base import Address, Amount, DomainModel
from .enums import AllowanceOption, ManageVaultStage, StageGroup, TxStatus
from .exceptions import UnknownChangeKindError
from .vault import BalanceInfo, IlkData, PriceInfo, Vault


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Form changes (user input)
# ---------------------------------------------------------------------------

class AmountChange(DomainModel):
    """Set or clear one of the amount inputs."""

    kind: Literal[
        "deposit_amount",
        "deposit_amount_usd",
        "withdraw_amount",
        "withdraw_amount_usd",
        "generate_amount",
        "payback_amount",
        "collateral_allowance_amount",
        "dai_allowance_amount",
    ]
    amount: Optional[Amount] = Field(default=None, ge=0)


class FormActionChange(DomainModel):
    """Parameterless form actions resolved against the current state."""

    kind: Literal[
        "deposit_max",
        "withdraw_max",
        "generate_max",
        "payback_max",
        "payback_all",
        "clear",
        "toggle_deposit_and_generate_option",
        "toggle_payback_and_withdraw_option",
        "toggle_ilk_details",
    ]


class AllowanceOptionChange(DomainModel):
    """Select how much allowance to request for a token."""

    kind: Literal["collateral_allowance_option", "dai_allowance_option"]
    option: AllowanceOption


# ---------------------------------------------------------------------------
# Stage changes (emitted by the transition engine only)
# ---------------------------------------------------------------------------

class StageChange(DomainModel):
    """Move the workflow to another stage."""

    kind: Literal["stage"] = "stage"
    stage: ManageVaultStage


class OriginalEditingStageChange(DomainModel):
    """Remember which editing stage the user returns to."""

    kind: Literal["original_editing_stage"] = "original_editing_stage"
    stage: ManageVaultStage


# ---------------------------------------------------------------------------
# Environment changes
# ---------------------------------------------------------------------------

class PriceInfoChange(DomainModel):
    kind: Literal["price_info"] = "price_info"
    price_info: PriceInfo


class BalanceInfoChange(DomainModel):
    kind: Literal["balance_info"] = "balance_info"
    balance_info: BalanceInfo


class IlkDataChange(DomainModel):
    kind: Literal["ilk_data"] = "ilk_data"
    ilk_data: IlkData


class VaultChange(DomainModel):
    kind: Literal["vault"] = "vault"
    vault: Vault


class ProxyAddressChange(DomainModel):
    kind: Literal["proxy_address"] = "proxy_address"
    proxy_address: Optional[Address] = None


class AllowanceChange(DomainModel):
    """On-chain allowance granted to the proxy for one of the tokens."""

    kind: Literal["collateral_allowance", "dai_allowance"]
    allowance: Optional[Amount] = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Transaction updates
# ---------------------------------------------------------------------------

class TransactionChange(DomainModel):
    """Progress of the transaction driving one stage group."""

    kind: Literal["transaction"] = "transaction"
    flow: StageGroup
    status: TxStatus
    tx_hash: Optional[str] = None
    confirmations: int = Field(default=0, ge=0)
    error: Optional[str] = None
    proxy_address: Optional[Address] = None
    allowance: Optional[Amount] = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Commands (resolved by the transition engine at processing time)
# ---------------------------------------------------------------------------

class CommandChange(DomainModel):
    """User command whose effect depends on the state when it is processed."""

    kind: Literal["progress", "regress", "toggle_editing", "enter_multiply_transition"]


class StateOverrideChange(DomainModel):
    """Test-only direct state override; the session gates it behind configuration."""

    kind: Literal["inject_state_override"] = "inject_state_override"
    state_to_override: Dict[str, Any]


ManageVaultChange = Annotated[
    Union[
        AmountChange,
        FormActionChange,
        AllowanceOptionChange,
        StageChange,
        OriginalEditingStageChange,
        PriceInfoChange,
        BalanceInfoChange,
        IlkDataChange,
        VaultChange,
        ProxyAddressChange,
        AllowanceChange,
        TransactionChange,
        CommandChange,
        StateOverrideChange,
    ],
    Field(discriminator="kind"),
]

ENVIRONMENT_CHANGE_TYPES = (
    PriceInfoChange,
    BalanceInfoChange,
    IlkDataChange,
    VaultChange,
    ProxyAddressChange,
    AllowanceChange,
)

USER_CHANGE_TYPES = (
    AmountChange,
    FormActionChange,
    AllowanceOptionChange,
    CommandChange,
)

_CHANGE_ADAPTER: TypeAdapter = TypeAdapter(ManageVaultChange)


def parse_change(payload: Any) -> Any:
    """Parse a raw mapping (or pass through a model) into a typed change.

    Raises:
        UnknownChangeKindError: If the payload has no recognised ``kind``.
        ValidationError: If a recognised kind carries malformed fields.
    """
    if isinstance(payload, DomainModel) and hasattr(payload, "kind"):
        return payload
    try:
        return _CHANGE_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        if any(error.get("type") in {"union_tag_invalid", "union_tag_not_found"} for error in exc.errors()):
            kind = payload.get("kind") if isinstance(payload, dict) else None
            logger.error("Rejected change with unknown kind=%r", kind)
            raise UnknownChangeKindError("Unknown change kind: {0!r}".format(kind)) from exc
        raise
