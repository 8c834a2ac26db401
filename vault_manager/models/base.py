"""Shared base model and common type aliases."""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


Amount = Decimal
Address = str


class DomainModel(BaseModel):
    """Immutable base schema for vault management models.

    Instances are never mutated; every update produces a copy via
    ``model_copy(update=...)``.
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        use_enum_values=False,
        extra="forbid",
    )

    @model_validator(mode="before")
    @classmethod
    def _binary_floats_to_decimal(cls, data: Any) -> Any:
        """Route float inputs through ``str`` so no binary rounding leaks into amounts."""
        if not isinstance(data, dict):
            return data
        return {key: Decimal(str(value)) if isinstance(value, float) else value for key, value in data.items()}
