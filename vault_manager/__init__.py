"""Vault management core: derived values, conditions, validation and stage transitions."""

from .core.config import AppSettings, load_settings
from .core.logging_config import setup_logging
from .models import ManageVaultStage, ManageVaultState
from .services import ManageVaultSession, create_manage_vault, run_pipeline

__version__ = "0.1.0"

__all__ = [
    "AppSettings",
    "load_settings",
    "setup_logging",
    "ManageVaultStage",
    "ManageVaultState",
    "ManageVaultSession",
    "create_manage_vault",
    "run_pipeline",
]
