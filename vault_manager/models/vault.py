"""Environment models: vault, collateral type parameters, prices and balances."""

from datetime import datetime
import logging
from typing import Optional

from pydantic import Field, field_validator, model_validator

from ..common.addresses import normalize_address
from .base import Address, Amount, DomainModel


logger = logging.getLogger(__name__)

ZERO = Amount(0)


class Vault(DomainModel):
    """Snapshot of a collateralized debt position read from chain state."""

    id: int = Field(..., ge=0)
    ilk: str = Field(..., min_length=1)
    token: str = Field(..., min_length=1)
    owner: Optional[Address] = Field(default=None)
    controller: Optional[Address] = Field(default=None)

    locked_collateral: Amount = Field(default=ZERO, ge=0)
    unlocked_collateral: Amount = Field(default=ZERO, ge=0)
    debt: Amount = Field(default=ZERO, ge=0)
    # Buffer added on top of debt so a full payback covers fees accrued while the tx is mined.
    debt_offset: Amount = Field(default=ZERO, ge=0)

    @field_validator("owner", "controller")
    @classmethod
    def _normalize_addresses(cls, value: Optional[str]) -> Optional[str]:
        return normalize_address(value)

    @field_validator("token")
    @classmethod
    def _uppercase_token(cls, value: str) -> str:
        return value.upper()


class IlkData(DomainModel):
    """Risk parameters shared by every vault of one collateral type."""

    ilk: str = Field(..., min_length=1)
    token: str = Field(..., min_length=1)

    liquidation_ratio: Amount = Field(..., ge=0)
    collateralization_danger_threshold: Amount = Field(..., ge=0)
    collateralization_warning_threshold: Amount = Field(..., ge=0)

    # Remaining headroom under the ilk debt ceiling.
    ilk_debt_available: Amount = Field(default=ZERO, ge=0)
    debt_floor: Amount = Field(default=ZERO, ge=0)
    stability_fee: Amount = Field(default=ZERO, ge=0)
    liquidation_penalty: Amount = Field(default=ZERO, ge=0)

    @field_validator("token")
    @classmethod
    def _uppercase_token(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _validate_thresholds(self) -> "IlkData":
        """Ensure liquidation <= danger <= warning so risk bands do not overlap."""
        if not (
            self.liquidation_ratio
            <= self.collateralization_danger_threshold
            <= self.collateralization_warning_threshold
        ):
            logger.error(
                "Invalid risk thresholds ilk=%s liquidation=%s danger=%s warning=%s",
                self.ilk,
                self.liquidation_ratio,
                self.collateralization_danger_threshold,
                self.collateralization_warning_threshold,
            )
            raise ValueError("thresholds must satisfy liquidation_ratio <= danger <= warning")
        return self


class PriceInfo(DomainModel):
    """Oracle prices for the collateral token."""

    current_collateral_price: Amount = Field(..., ge=0)
    next_collateral_price: Amount = Field(..., ge=0)
    is_static_collateral_price: bool = Field(default=False)
    date_next_collateral_price: Optional[datetime] = Field(default=None)


class BalanceInfo(DomainModel):
    """Wallet balances of the connected account."""

    collateral_balance: Amount = Field(default=ZERO, ge=0)
    eth_balance: Amount = Field(default=ZERO, ge=0)
    dai_balance: Amount = Field(default=ZERO, ge=0)
