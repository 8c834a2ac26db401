"""Common reusable utility exports."""

from .addresses import normalize_address, same_address
from .vault_math import MAX_UINT256, ZERO

__all__ = [
    "normalize_address",
    "same_address",
    "MAX_UINT256",
    "ZERO",
]
