"""Unit tests for decimal vault math and address helpers."""

from decimal import Decimal
import unittest

from vault_manager.common.addresses import normalize_address, same_address
from vault_manager.common.vault_math import (
    MAX_UINT256,
    ZERO,
    backing_collateral,
    collateralization_ratio,
    dai_yield,
    free_collateral,
    from_usd,
    is_zero_or_empty,
    liquidation_price,
    max_generate,
    to_usd,
)


D = Decimal


class VaultMathTests(unittest.TestCase):
    """Position math with zero sentinels instead of division errors."""

    def test_max_uint256(self) -> None:
        self.assertEqual(int(MAX_UINT256), 2**256 - 1)

    def test_collateralization_ratio(self) -> None:
        self.assertEqual(collateralization_ratio(D("10"), D("50000"), D("250000")), D("2"))
        self.assertEqual(collateralization_ratio(D("10"), D("50000"), ZERO), ZERO)

    def test_liquidation_price(self) -> None:
        self.assertEqual(liquidation_price(D("10"), D("3000"), D("1.5")), D("450"))
        self.assertEqual(liquidation_price(ZERO, D("3000"), D("1.5")), ZERO)

    def test_backing_and_free_collateral(self) -> None:
        self.assertEqual(backing_collateral(D("3000"), D("50000"), D("1.5")), D("0.09"))
        self.assertEqual(free_collateral(D("10"), D("3000"), D("50000"), D("1.5")), D("9.91"))
        self.assertEqual(free_collateral(D("10"), ZERO, ZERO, D("1.5")), D("10"))
        self.assertEqual(free_collateral(D("10"), D("3000"), ZERO, D("1.5")), ZERO)

    def test_free_collateral_never_negative(self) -> None:
        self.assertEqual(free_collateral(D("1"), D("1000000"), D("50000"), D("1.5")), ZERO)

    def test_max_generate_is_capped_by_debt_ceiling(self) -> None:
        self.assertEqual(dai_yield(D("3"), D("50000"), D("1.5")), D("100000"))
        self.assertEqual(max_generate(D("3"), D("0"), D("50000"), D("1.5"), D("1000000")), D("100000"))
        self.assertEqual(max_generate(D("3"), D("0"), D("50000"), D("1.5"), D("500")), D("500"))
        self.assertEqual(max_generate(D("3"), D("200000"), D("50000"), D("1.5"), D("500")), ZERO)

    def test_usd_conversion_keeps_absent_amounts(self) -> None:
        self.assertIsNone(to_usd(None, D("50000")))
        self.assertEqual(to_usd(D("2"), D("50000")), D("100000"))
        self.assertEqual(from_usd(D("100000"), D("50000")), D("2"))
        self.assertIsNone(from_usd(D("100000"), ZERO))

    def test_is_zero_or_empty(self) -> None:
        self.assertTrue(is_zero_or_empty(None))
        self.assertTrue(is_zero_or_empty(D("0.00")))
        self.assertFalse(is_zero_or_empty(D("0.01")))


class AddressTests(unittest.TestCase):
    """Checksum normalization backed by web3."""

    def test_normalize_hex_address(self) -> None:
        address = "0x" + "ab" * 20
        normalized = normalize_address("  {0}  ".format(address))
        self.assertEqual(normalized.lower(), address)
        self.assertNotEqual(normalized, address)

    def test_normalize_passes_through_identifiers(self) -> None:
        self.assertEqual(normalize_address(" proxy-1 "), "proxy-1")
        self.assertIsNone(normalize_address("   "))
        self.assertIsNone(normalize_address(None))

    def test_same_address_ignores_case(self) -> None:
        address = "0x" + "ab" * 20
        self.assertTrue(same_address(address, address.upper().replace("0X", "0x")))
        self.assertFalse(same_address(address, None))


if __name__ == "__main__":
    unittest.main()
