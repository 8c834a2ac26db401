"""Address normalization helpers backed by web3."""

from typing import Optional

from web3 import Web3


def normalize_address(value: Optional[str]) -> Optional[str]:
    """Return the checksum form of a hex address, or the stripped value otherwise.

    Non-hex identifiers are passed through so fixtures and off-chain
    placeholders keep working.
    """
    if value is None:
        return None
    stripped = value.strip()
    if not stripped:
        return None
    if Web3.is_address(stripped):
        return Web3.to_checksum_address(stripped)
    return stripped


def same_address(left: Optional[str], right: Optional[str]) -> bool:
    """Compare two addresses ignoring checksum casing."""
    normalized_left = normalize_address(left)
    normalized_right = normalize_address(right)
    if normalized_left is None or normalized_right is None:
        return False
    return normalized_left.lower() == normalized_right.lower()
