"""Public model package exports for the vault manager."""

from .base import Address, Amount, DomainModel
from .changes import (
    AllowanceChange,
    AllowanceOptionChange,
    AmountChange,
    BalanceInfoChange,
    CommandChange,
    FormActionChange,
    IlkDataChange,
    ManageVaultChange,
    OriginalEditingStageChange,
    PriceInfoChange,
    ProxyAddressChange,
    StageChange,
    StateOverrideChange,
    TransactionChange,
    VaultChange,
    parse_change,
)
from .enums import (
    AllowanceOption,
    FollowOnAction,
    ManageVaultErrorMessage,
    ManageVaultStage,
    ManageVaultWarningMessage,
    StageGroup,
    StageStep,
    TxStatus,
)
from .exceptions import (
    EnvironmentReadError,
    ManageVaultError,
    SessionClosedError,
    StateOverrideError,
    UnknownChangeKindError,
    UnreachableStageError,
)
from .state import FORM_DEFAULTS, ManageVaultState
from .vault import BalanceInfo, IlkData, PriceInfo, Vault

__all__ = [
    "Address",
    "Amount",
    "DomainModel",
    "Vault",
    "IlkData",
    "PriceInfo",
    "BalanceInfo",
    "ManageVaultState",
    "FORM_DEFAULTS",
    "ManageVaultChange",
    "AmountChange",
    "FormActionChange",
    "AllowanceOptionChange",
    "StageChange",
    "OriginalEditingStageChange",
    "PriceInfoChange",
    "BalanceInfoChange",
    "IlkDataChange",
    "VaultChange",
    "ProxyAddressChange",
    "AllowanceChange",
    "TransactionChange",
    "CommandChange",
    "StateOverrideChange",
    "parse_change",
    "AllowanceOption",
    "FollowOnAction",
    "ManageVaultErrorMessage",
    "ManageVaultStage",
    "ManageVaultWarningMessage",
    "StageGroup",
    "StageStep",
    "TxStatus",
    "ManageVaultError",
    "UnreachableStageError",
    "UnknownChangeKindError",
    "StateOverrideError",
    "SessionClosedError",
    "EnvironmentReadError",
]
