"""Unit tests for warning and error validation."""

from decimal import Decimal
import unittest

from factories import PROXY, WBTC_PRICE, make_ilk_data, make_state, make_vault

from vault_manager.common.vault_math import MAX_UINT256
from vault_manager.models import ManageVaultStage
from vault_manager.services.validations import validate_errors, validate_warnings


SLIGHTLY_LESS_THAN_ONE = Decimal("0.99")
SLIGHTLY_MORE_THAN_ONE = Decimal("1.01")

DEPOSIT_AMOUNT = Decimal("10")
DEPOSIT_AMOUNT_USD = DEPOSIT_AMOUNT * WBTC_PRICE
PAYBACK_AMOUNT = Decimal("10")
WITHDRAW_AMOUNT = Decimal("10")
DEBT = Decimal("3000")
DEBT_FLOOR = Decimal("2000")
# Built from int: Decimal arithmetic would round a 78 digit sum to 28 digits.
ABOVE_MAX_UINT256 = Decimal(int(MAX_UINT256) + 1)
ILK_DEBT_AVAILABLE = Decimal("50000")


def warning_state(**overrides):
    values = {
        "proxy_address": PROXY,
        "deposit_amount": DEPOSIT_AMOUNT,
        "deposit_amount_usd": DEPOSIT_AMOUNT_USD,
        "withdraw_amount": WITHDRAW_AMOUNT,
        "generate_amount": Decimal("5000"),
        "payback_amount": PAYBACK_AMOUNT,
        "collateral_allowance": DEPOSIT_AMOUNT,
        "dai_allowance": PAYBACK_AMOUNT,
    }
    values.update(overrides)
    return make_state(**values)


def error_state(**overrides):
    values = {
        "vault": make_vault(debt=DEBT),
        "ilk_data": make_ilk_data(debt_floor=DEBT_FLOOR, ilk_debt_available=ILK_DEBT_AVAILABLE),
        "proxy_address": PROXY,
        "deposit_amount": DEPOSIT_AMOUNT,
        "deposit_amount_usd": DEPOSIT_AMOUNT_USD,
        "withdraw_amount": WITHDRAW_AMOUNT,
        "generate_amount": Decimal("5000"),
        "payback_amount": PAYBACK_AMOUNT,
        "collateral_allowance": DEPOSIT_AMOUNT,
        "dai_allowance": PAYBACK_AMOUNT,
        "max_deposit_amount": DEPOSIT_AMOUNT_USD * 2,
        "max_withdraw_amount": WITHDRAW_AMOUNT,
        "max_payback_amount": Decimal("10000"),
    }
    values.update(overrides)
    return make_state(**values)


def codes(messages):
    return [message.value for message in messages]


class ValidateWarningsTests(unittest.TestCase):
    """Each warning category contributes at most one code."""

    def test_no_warnings_when_state_is_correct(self) -> None:
        self.assertEqual(validate_warnings(warning_state()).warning_messages, [])

    def test_no_proxy_address(self) -> None:
        state = validate_warnings(warning_state(proxy_address=None))
        self.assertEqual(codes(state.warning_messages), ["noProxyAddress"])

    def test_deposit_amount_empty(self) -> None:
        state = validate_warnings(warning_state(deposit_amount=None, deposit_amount_usd=None))
        self.assertEqual(codes(state.warning_messages), ["depositAmountEmpty"])

    def test_generate_amount_empty(self) -> None:
        state = validate_warnings(warning_state(generate_amount=None))
        self.assertEqual(codes(state.warning_messages), ["generateAmountEmpty"])

    def test_empty_amount_warnings_only_while_editing(self) -> None:
        state = validate_warnings(
            warning_state(
                deposit_amount=None,
                deposit_amount_usd=None,
                generate_amount=None,
                stage=ManageVaultStage.MANAGE_WAITING_FOR_CONFIRMATION,
            )
        )
        self.assertEqual(state.warning_messages, [])

    def test_potential_generate_amount_below_debt_floor(self) -> None:
        state = validate_warnings(
            warning_state(ilk_data=make_ilk_data(debt_floor=DEPOSIT_AMOUNT_USD * SLIGHTLY_MORE_THAN_ONE))
        )
        self.assertEqual(codes(state.warning_messages), ["potentialGenerateAmountLessThanDebtFloor"])

    def test_no_potential_generate_warning_when_floor_is_lower(self) -> None:
        state = validate_warnings(
            warning_state(ilk_data=make_ilk_data(debt_floor=DEPOSIT_AMOUNT_USD * SLIGHTLY_LESS_THAN_ONE))
        )
        self.assertEqual(state.warning_messages, [])

    def test_no_collateral_allowance_when_unknown(self) -> None:
        state = validate_warnings(warning_state(collateral_allowance=None))
        self.assertEqual(codes(state.warning_messages), ["noCollateralAllowance"])

    def test_collateral_allowance_less_than_deposit_when_zero(self) -> None:
        state = validate_warnings(warning_state(collateral_allowance=Decimal("0")))
        self.assertEqual(codes(state.warning_messages), ["collateralAllowanceLessThanDepositAmount"])

    def test_native_token_never_warns_about_collateral_allowance(self) -> None:
        state = validate_warnings(
            warning_state(
                vault=make_vault(token="ETH", ilk="ETH-A"),
                ilk_data=make_ilk_data(ilk="ETH-A", token="ETH"),
                collateral_allowance=None,
            )
        )
        self.assertEqual(state.warning_messages, [])

    def test_dai_allowance_less_than_payback(self) -> None:
        state = validate_warnings(warning_state(dai_allowance=PAYBACK_AMOUNT * SLIGHTLY_LESS_THAN_ONE))
        self.assertEqual(codes(state.warning_messages), ["daiAllowanceLessThanPaybackAmount"])

    def test_dai_allowance_covers_debt_offset(self) -> None:
        state = validate_warnings(warning_state(vault=make_vault(debt_offset=Decimal("1"))))
        self.assertEqual(codes(state.warning_messages), ["daiAllowanceLessThanPaybackAmount"])

    def test_no_proxy_warning_is_independent_of_other_fields(self) -> None:
        for overrides in ({}, {"deposit_amount": None}, {"dai_allowance": None}, {"stage": "daiEditing"}):
            with self.subTest(overrides=overrides):
                with_proxy = validate_warnings(warning_state(**overrides))
                without_proxy = validate_warnings(warning_state(proxy_address=None, **overrides))
                self.assertNotIn("noProxyAddress", codes(with_proxy.warning_messages))
                self.assertIn("noProxyAddress", codes(without_proxy.warning_messages))


class ValidateErrorsTests(unittest.TestCase):
    """Errors block progression and are reported in a fixed order."""

    def test_no_errors_when_state_is_correct(self) -> None:
        self.assertEqual(validate_errors(error_state()).error_messages, [])

    def test_deposit_greater_than_max_deposit(self) -> None:
        state = validate_errors(error_state(max_deposit_amount=DEPOSIT_AMOUNT * SLIGHTLY_LESS_THAN_ONE))
        self.assertEqual(codes(state.error_messages), ["depositAmountGreaterThanMaxDepositAmount"])

    def test_deposit_equal_to_max_deposit_is_allowed(self) -> None:
        state = validate_errors(error_state(max_deposit_amount=DEPOSIT_AMOUNT))
        self.assertEqual(state.error_messages, [])

    def test_withdraw_greater_than_max_withdraw(self) -> None:
        state = validate_errors(error_state(max_withdraw_amount=WITHDRAW_AMOUNT * SLIGHTLY_LESS_THAN_ONE))
        self.assertEqual(codes(state.error_messages), ["withdrawAmountGreaterThanMaxWithdrawAmount"])

    def test_generate_less_than_debt_floor(self) -> None:
        state = validate_errors(error_state(vault=make_vault(debt=Decimal("0")), generate_amount=Decimal("1")))
        self.assertEqual(codes(state.error_messages), ["generateAmountLessThanDebtFloor"])

    def test_generate_to_zero_debt_is_not_below_floor(self) -> None:
        state = validate_errors(
            error_state(vault=make_vault(debt=Decimal("0")), generate_amount=Decimal("0"), payback_amount=None)
        )
        self.assertEqual(state.error_messages, [])

    def test_generate_greater_than_debt_ceiling(self) -> None:
        state = validate_errors(error_state(generate_amount=ILK_DEBT_AVAILABLE * SLIGHTLY_MORE_THAN_ONE))
        self.assertEqual(codes(state.error_messages), ["generateAmountGreaterThanDebtCeiling"])

    def test_payback_greater_than_max_payback(self) -> None:
        state = validate_errors(error_state(max_payback_amount=PAYBACK_AMOUNT * SLIGHTLY_LESS_THAN_ONE))
        self.assertEqual(codes(state.error_messages), ["paybackAmountGreaterThanMaxPaybackAmount"])

    def test_payback_less_than_debt_floor(self) -> None:
        state = validate_errors(error_state(payback_amount=DEBT - DEBT_FLOOR + 1))
        self.assertEqual(codes(state.error_messages), ["paybackAmountLessThanDebtFloor"])

    def test_payback_all_is_never_below_debt_floor(self) -> None:
        state = validate_errors(error_state(payback_amount=DEBT - DEBT_FLOOR + 1, should_payback_all=True))
        self.assertEqual(state.error_messages, [])

    def test_dai_allowance_amount_empty(self) -> None:
        state = validate_errors(
            error_state(dai_allowance_amount=None, stage=ManageVaultStage.DAI_ALLOWANCE_WAITING_FOR_CONFIRMATION)
        )
        self.assertEqual(codes(state.error_messages), ["daiAllowanceAmountEmpty"])

    def test_custom_dai_allowance_greater_than_max_uint256(self) -> None:
        state = validate_errors(
            error_state(
                dai_allowance_amount=ABOVE_MAX_UINT256,
                stage=ManageVaultStage.DAI_ALLOWANCE_WAITING_FOR_CONFIRMATION,
            )
        )
        self.assertEqual(codes(state.error_messages), ["customDaiAllowanceAmountGreaterThanMaxUint256"])

    def test_custom_dai_allowance_less_than_payback(self) -> None:
        state = validate_errors(
            error_state(
                dai_allowance_amount=DEPOSIT_AMOUNT - 1,
                stage=ManageVaultStage.DAI_ALLOWANCE_WAITING_FOR_CONFIRMATION,
            )
        )
        self.assertEqual(codes(state.error_messages), ["customDaiAllowanceAmountLessThanPaybackAmount"])

    def test_dai_allowance_amount_ignored_outside_allowance_stage(self) -> None:
        state = validate_errors(error_state(dai_allowance_amount=None))
        self.assertEqual(state.error_messages, [])

    def test_collateral_allowance_errors(self) -> None:
        stage = ManageVaultStage.COLLATERAL_ALLOWANCE_FAILURE
        cases = [
            (None, "collateralAllowanceAmountEmpty"),
            (ABOVE_MAX_UINT256, "customCollateralAllowanceAmountGreaterThanMaxUint256"),
            (DEPOSIT_AMOUNT - 1, "customCollateralAllowanceAmountLessThanDepositAmount"),
        ]
        for amount, expected in cases:
            with self.subTest(amount=amount):
                state = validate_errors(error_state(collateral_allowance_amount=amount, stage=stage))
                self.assertEqual(codes(state.error_messages), [expected])

    def test_vault_under_collateralized(self) -> None:
        state = validate_errors(
            error_state(
                after_collateralization_ratio=Decimal("1.49"),
                ilk_data=make_ilk_data(liquidation_ratio=Decimal("1.5")),
            )
        )
        self.assertEqual(codes(state.error_messages), ["vaultUnderCollateralized"])

    def test_errors_keep_their_order(self) -> None:
        state = validate_errors(
            error_state(
                max_deposit_amount=Decimal("1"),
                max_withdraw_amount=Decimal("1"),
                after_collateralization_ratio=Decimal("1.2"),
            )
        )
        self.assertEqual(
            codes(state.error_messages),
            [
                "depositAmountGreaterThanMaxDepositAmount",
                "withdrawAmountGreaterThanMaxWithdrawAmount",
                "vaultUnderCollateralized",
            ],
        )


class ScenarioTests(unittest.TestCase):
    """End-to-end fixtures of the vault management rules."""

    def test_deposit_and_generate_with_matching_allowances(self) -> None:
        state = error_state(
            vault=make_vault(locked_collateral=Decimal("10"), debt=Decimal("1000")),
            withdraw_amount=None,
            payback_amount=None,
            deposit_amount=Decimal("10"),
            generate_amount=Decimal("5000"),
            collateral_allowance=Decimal("10"),
            dai_allowance=Decimal("0"),
        )
        warnings = codes(validate_warnings(state).warning_messages)
        self.assertNotIn("potentialGenerateAmountLessThanDebtFloor", warnings)
        self.assertEqual(validate_errors(state).error_messages, [])

    def test_only_custom_dai_allowance_error_above_max_uint256(self) -> None:
        state = validate_errors(
            error_state(
                dai_allowance_amount=Decimal(int(MAX_UINT256) + 1000),
                stage=ManageVaultStage.DAI_ALLOWANCE_WAITING_FOR_CONFIRMATION,
            )
        )
        self.assertEqual(codes(state.error_messages), ["customDaiAllowanceAmountGreaterThanMaxUint256"])


if __name__ == "__main__":
    unittest.main()
