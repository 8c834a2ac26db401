"""Unit tests for the stage transition engine."""

from decimal import Decimal
import unittest

from factories import PROXY, make_state

from vault_manager.models import (
    FollowOnAction,
    FormActionChange,
    ManageVaultErrorMessage,
    ManageVaultStage,
    UnreachableStageError,
)
from vault_manager.services import transitions
from vault_manager.services.manage_vault import apply_change, run_pipeline


Stage = ManageVaultStage


def stages(transition):
    return [change.stage for change in transition.changes if change.kind == "stage"]


class ProgressEditingTests(unittest.TestCase):
    """Leaving an editing stage routes to the first unmet requirement."""

    def test_without_proxy_goes_to_proxy_confirmation(self) -> None:
        transition = transitions.progress(make_state(deposit_amount=Decimal("1")))
        self.assertEqual(stages(transition), [Stage.PROXY_WAITING_FOR_CONFIRMATION])
        self.assertIsNone(transition.action)

    def test_missing_collateral_allowance(self) -> None:
        state = make_state(proxy_address=PROXY, deposit_amount=Decimal("1"))
        self.assertEqual(
            stages(transitions.progress(state)),
            [Stage.COLLATERAL_ALLOWANCE_WAITING_FOR_CONFIRMATION],
        )

    def test_missing_dai_allowance(self) -> None:
        state = make_state(proxy_address=PROXY, payback_amount=Decimal("10"), dai_allowance=Decimal("5"))
        self.assertEqual(stages(transitions.progress(state)), [Stage.DAI_ALLOWANCE_WAITING_FOR_CONFIRMATION])

    def test_all_requirements_met(self) -> None:
        state = make_state(proxy_address=PROXY, deposit_amount=Decimal("1"), collateral_allowance=Decimal("1"))
        self.assertEqual(stages(transitions.progress(state)), [Stage.MANAGE_WAITING_FOR_CONFIRMATION])

    def test_errors_prevent_transition(self) -> None:
        state = make_state(error_messages=[ManageVaultErrorMessage.VAULT_UNDER_COLLATERALIZED])
        self.assertIs(transitions.progress(state), transitions.NO_TRANSITION)


class ProgressAfterSuccessTests(unittest.TestCase):
    """Success stages route onwards without issuing transactions."""

    def test_proxy_success_routes_to_allowance(self) -> None:
        state = make_state(stage=Stage.PROXY_SUCCESS, proxy_address=PROXY, deposit_amount=Decimal("1"))
        self.assertEqual(
            stages(transitions.progress(state)),
            [Stage.COLLATERAL_ALLOWANCE_WAITING_FOR_CONFIRMATION],
        )

    def test_proxy_success_routes_to_manage(self) -> None:
        state = make_state(stage=Stage.PROXY_SUCCESS, proxy_address=PROXY)
        self.assertEqual(stages(transitions.progress(state)), [Stage.MANAGE_WAITING_FOR_CONFIRMATION])

    def test_collateral_allowance_success_checks_dai_allowance(self) -> None:
        state = make_state(
            stage=Stage.COLLATERAL_ALLOWANCE_SUCCESS,
            proxy_address=PROXY,
            payback_amount=Decimal("10"),
        )
        self.assertEqual(stages(transitions.progress(state)), [Stage.DAI_ALLOWANCE_WAITING_FOR_CONFIRMATION])

    def test_dai_allowance_success_goes_to_manage(self) -> None:
        state = make_state(stage=Stage.DAI_ALLOWANCE_SUCCESS, proxy_address=PROXY)
        self.assertEqual(stages(transitions.progress(state)), [Stage.MANAGE_WAITING_FOR_CONFIRMATION])

    def test_manage_success_returns_to_original_editing_stage(self) -> None:
        state = make_state(
            stage=Stage.MANAGE_SUCCESS,
            original_editing_stage=Stage.DAI_EDITING,
            generate_amount=Decimal("100"),
        )
        transition = transitions.progress(state)
        self.assertEqual(stages(transition), [Stage.DAI_EDITING])
        self.assertIn(FormActionChange(kind="clear"), transition.changes)


class ProgressTransactionTests(unittest.TestCase):
    """Confirmation and failure stages request the group's transaction."""

    def test_actions_per_group(self) -> None:
        cases = [
            (Stage.PROXY_WAITING_FOR_CONFIRMATION, None, FollowOnAction.CREATE_PROXY),
            (Stage.COLLATERAL_ALLOWANCE_FAILURE, PROXY, FollowOnAction.COLLATERAL_ALLOWANCE),
            (Stage.DAI_ALLOWANCE_WAITING_FOR_CONFIRMATION, PROXY, FollowOnAction.DAI_ALLOWANCE),
            (Stage.MULTIPLY_TRANSITION_FAILURE, PROXY, FollowOnAction.MULTIPLY_TRANSITION),
        ]
        for stage, proxy, action in cases:
            with self.subTest(stage=stage):
                transition = transitions.progress(make_state(stage=stage, proxy_address=proxy))
                self.assertEqual(transition.changes, ())
                self.assertIs(transition.action, action)

    def test_existing_proxy_skips_creation(self) -> None:
        state = make_state(stage=Stage.PROXY_WAITING_FOR_CONFIRMATION, proxy_address=PROXY)
        transition = transitions.progress(state)
        self.assertIsNone(transition.action)
        self.assertEqual(stages(transition), [Stage.MANAGE_WAITING_FOR_CONFIRMATION])

    def test_manage_deposit_and_generate(self) -> None:
        state = make_state(stage=Stage.MANAGE_WAITING_FOR_CONFIRMATION, generate_amount=Decimal("100"))
        self.assertIs(transitions.progress(state).action, FollowOnAction.DEPOSIT_AND_GENERATE)

    def test_manage_withdraw_and_payback(self) -> None:
        state = make_state(stage=Stage.MANAGE_FAILURE, withdraw_amount=Decimal("1"))
        self.assertIs(transitions.progress(state).action, FollowOnAction.WITHDRAW_AND_PAYBACK)

    def test_multiply_editing_moves_to_confirmation(self) -> None:
        state = make_state(stage=Stage.MULTIPLY_TRANSITION_EDITING)
        self.assertEqual(
            stages(transitions.progress(state)),
            [Stage.MULTIPLY_TRANSITION_WAITING_FOR_CONFIRMATION],
        )

    def test_loading_stage_is_a_no_op(self) -> None:
        state = make_state(stage=Stage.MANAGE_IN_PROGRESS)
        self.assertIs(transitions.progress(state), transitions.NO_TRANSITION)


class RegressTests(unittest.TestCase):
    """Regress steps back only from confirmation and failure stages."""

    def test_confirmation_returns_to_original_editing_stage(self) -> None:
        state = make_state(stage=Stage.MANAGE_WAITING_FOR_CONFIRMATION, original_editing_stage=Stage.DAI_EDITING)
        self.assertEqual(stages(transitions.regress(state)), [Stage.DAI_EDITING])

    def test_failure_returns_to_confirmation(self) -> None:
        state = make_state(stage=Stage.DAI_ALLOWANCE_FAILURE)
        self.assertEqual(stages(transitions.regress(state)), [Stage.DAI_ALLOWANCE_WAITING_FOR_CONFIRMATION])

    def test_multiply_branch(self) -> None:
        cases = [
            (Stage.MULTIPLY_TRANSITION_EDITING, Stage.COLLATERAL_EDITING),
            (Stage.MULTIPLY_TRANSITION_WAITING_FOR_CONFIRMATION, Stage.MULTIPLY_TRANSITION_EDITING),
            (Stage.MULTIPLY_TRANSITION_FAILURE, Stage.MULTIPLY_TRANSITION_WAITING_FOR_CONFIRMATION),
        ]
        for stage, expected in cases:
            with self.subTest(stage=stage):
                self.assertEqual(stages(transitions.regress(make_state(stage=stage))), [expected])

    def test_ignored_outside_regressable_stages(self) -> None:
        for stage in (Stage.COLLATERAL_EDITING, Stage.PROXY_IN_PROGRESS, Stage.MANAGE_SUCCESS):
            with self.subTest(stage=stage):
                self.assertIs(transitions.regress(make_state(stage=stage)), transitions.NO_TRANSITION)


class ToggleEditingTests(unittest.TestCase):
    """Toggling switches editing stage and resets the form."""

    def test_toggle_twice_round_trips(self) -> None:
        state = run_pipeline(make_state(deposit_amount=Decimal("1"), should_payback_all=True))
        for expected in (Stage.DAI_EDITING, Stage.COLLATERAL_EDITING):
            state = run_pipeline(apply_change(state, {"kind": "toggle_editing"}))
            self.assertEqual(state.stage, expected)
            self.assertEqual(state.original_editing_stage, expected)
            self.assertIsNone(state.deposit_amount)
            self.assertFalse(state.should_payback_all)

    def test_toggle_available_with_errors(self) -> None:
        state = make_state(error_messages=[ManageVaultErrorMessage.VAULT_UNDER_COLLATERALIZED])
        self.assertEqual(stages(transitions.toggle_editing(state)), [Stage.DAI_EDITING])

    def test_enter_multiply_transition_from_editing_only(self) -> None:
        self.assertEqual(
            stages(transitions.enter_multiply_transition(make_state())),
            [Stage.MULTIPLY_TRANSITION_EDITING],
        )
        manage = make_state(stage=Stage.MANAGE_IN_PROGRESS)
        self.assertIs(transitions.enter_multiply_transition(manage), transitions.NO_TRANSITION)


class UnreachableStageTests(unittest.TestCase):

    def test_unknown_stage_raises(self) -> None:
        state = make_state().model_copy(update={"stage": "notAStage"})
        for command in (transitions.progress, transitions.regress):
            with self.subTest(command=command.__name__):
                with self.assertRaises(UnreachableStageError):
                    command(state)


if __name__ == "__main__":
    unittest.main()
