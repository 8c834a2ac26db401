"""Unit tests for domain model parsing and the change union."""

from decimal import Decimal
import unittest

from pydantic import ValidationError

from vault_manager.models import (
    AmountChange,
    CommandChange,
    PriceInfo,
    StateOverrideChange,
    UnknownChangeKindError,
    parse_change,
)


class DomainModelTests(unittest.TestCase):
    """Float inputs become exact decimals."""

    def test_float_amounts_become_decimals(self) -> None:
        price = PriceInfo(current_collateral_price=0.1, next_collateral_price=2)
        self.assertEqual(price.current_collateral_price, Decimal("0.1"))
        self.assertIsInstance(price.next_collateral_price, Decimal)

    def test_extra_fields_are_forbidden(self) -> None:
        with self.assertRaises(ValidationError):
            PriceInfo(current_collateral_price=1, next_collateral_price=1, source="oracle")


class ParseChangeTests(unittest.TestCase):
    """The tagged union dispatches on ``kind``."""

    def test_amount_change_with_float(self) -> None:
        change = parse_change({"kind": "deposit_amount", "amount": 0.3})
        self.assertIsInstance(change, AmountChange)
        self.assertEqual(change.amount, Decimal("0.3"))

    def test_command_and_override(self) -> None:
        self.assertIsInstance(parse_change({"kind": "progress"}), CommandChange)
        change = parse_change({"kind": "inject_state_override", "state_to_override": {"deposit_amount": 1}})
        self.assertIsInstance(change, StateOverrideChange)

    def test_models_pass_through(self) -> None:
        change = AmountChange(kind="payback_amount", amount=Decimal("5"))
        self.assertIs(parse_change(change), change)

    def test_unknown_kind(self) -> None:
        with self.assertRaises(UnknownChangeKindError):
            parse_change({"kind": "teleport"})
        with self.assertRaises(UnknownChangeKindError):
            parse_change({"amount": 1})

    def test_malformed_known_kind(self) -> None:
        with self.assertRaises(ValidationError):
            parse_change({"kind": "deposit_amount", "amount": -1})


if __name__ == "__main__":
    unittest.main()
