"""Service layer: pure pipeline stages, transition engine and session orchestration."""

from .calculations import apply_manage_vault_calculations
from .conditions import apply_manage_vault_conditions, apply_manage_vault_stage_categorisation
from .environment import ChangeDebouncer, EnvironmentPoller, TransactionIssuer, VaultDataSource, read_environment
from .manage_vault import (
    ManageVaultSession,
    apply_change,
    create_environment_poller,
    create_manage_vault,
    run_pipeline,
)
from .transactions import TxState, build_action, transaction_change
from .transitions import StageTransition, progress, regress, toggle_editing
from .validations import validate_errors, validate_warnings

__all__ = [
    "apply_manage_vault_calculations",
    "apply_manage_vault_stage_categorisation",
    "apply_manage_vault_conditions",
    "validate_errors",
    "validate_warnings",
    "StageTransition",
    "progress",
    "regress",
    "toggle_editing",
    "TxState",
    "build_action",
    "transaction_change",
    "VaultDataSource",
    "TransactionIssuer",
    "ChangeDebouncer",
    "EnvironmentPoller",
    "read_environment",
    "ManageVaultSession",
    "apply_change",
    "run_pipeline",
    "create_manage_vault",
    "create_environment_poller",
]
