"""Stage transition engine.

Every function is pure: it inspects a state and returns the changes to apply
plus the follow-on action the session must perform, if any.
"""

from dataclasses import dataclass, field
import logging
from typing import Callable, Dict, Optional, Tuple

from ..common.vault_math import is_positive
from ..models.changes import CommandChange, FormActionChange, OriginalEditingStageChange, StageChange
from ..models.enums import FollowOnAction, ManageVaultStage, StageGroup, StageStep
from ..models.stages import EDITING_STAGES, REGRESSABLE_STAGES, parse_stage, stage_for, stage_group, stage_step
from ..models.state import ManageVaultState
from .conditions import has_collateral_allowance, has_dai_allowance


logger = logging.getLogger(__name__)

Stage = ManageVaultStage

_TX_ACTIONS: Dict[StageGroup, FollowOnAction] = {
    StageGroup.PROXY: FollowOnAction.CREATE_PROXY,
    StageGroup.COLLATERAL_ALLOWANCE: FollowOnAction.COLLATERAL_ALLOWANCE,
    StageGroup.DAI_ALLOWANCE: FollowOnAction.DAI_ALLOWANCE,
    StageGroup.MULTIPLY_TRANSITION: FollowOnAction.MULTIPLY_TRANSITION,
}
_TX_READY_STEPS = frozenset({StageStep.WAITING_FOR_CONFIRMATION, StageStep.FAILURE})


@dataclass(frozen=True)
class StageTransition:
    """Changes produced by a command and the side effect it requests."""

    changes: Tuple = field(default_factory=tuple)
    action: Optional[FollowOnAction] = None


NO_TRANSITION = StageTransition()


def _move_to(stage: ManageVaultStage) -> StageTransition:
    return StageTransition(changes=(StageChange(stage=stage),))


def _next_requirement(state: ManageVaultState) -> ManageVaultStage:
    """First unmet allowance requirement, or the manage confirmation stage."""
    if not has_collateral_allowance(state):
        return Stage.COLLATERAL_ALLOWANCE_WAITING_FOR_CONFIRMATION
    if not has_dai_allowance(state):
        return Stage.DAI_ALLOWANCE_WAITING_FOR_CONFIRMATION
    return Stage.MANAGE_WAITING_FOR_CONFIRMATION


def _reset_to_editing(stage: ManageVaultStage) -> StageTransition:
    return StageTransition(
        changes=(
            StageChange(stage=stage),
            OriginalEditingStageChange(stage=stage),
            FormActionChange(kind="clear"),
        )
    )


def manage_action(state: ManageVaultState) -> FollowOnAction:
    """Pick the manage transaction from the pending inputs."""
    if is_positive(state.deposit_amount) or is_positive(state.generate_amount):
        return FollowOnAction.DEPOSIT_AND_GENERATE
    return FollowOnAction.WITHDRAW_AND_PAYBACK


def progress_editing(state: ManageVaultState) -> StageTransition:
    """Leave an editing stage towards the first unmet requirement.

    No transition happens while validation errors are present.
    """
    if state.error_messages:
        logger.info("Progress from %s ignored: errors=%s", state.stage.value, state.error_messages)
        return NO_TRANSITION
    if state.proxy_address is None:
        return _move_to(Stage.PROXY_WAITING_FOR_CONFIRMATION)
    return _move_to(_next_requirement(state))


def progress_proxy(state: ManageVaultState) -> StageTransition:
    """Route a freshly deployed proxy to the next unmet allowance or to manage."""
    return _move_to(_next_requirement(state))


def progress_collateral_allowance(state: ManageVaultState) -> StageTransition:
    if not has_dai_allowance(state):
        return _move_to(Stage.DAI_ALLOWANCE_WAITING_FOR_CONFIRMATION)
    return _move_to(Stage.MANAGE_WAITING_FOR_CONFIRMATION)


def progress_dai_allowance(state: ManageVaultState) -> StageTransition:
    return _move_to(Stage.MANAGE_WAITING_FOR_CONFIRMATION)


def progress_transaction(state: ManageVaultState, group: StageGroup) -> StageTransition:
    """Request the transaction that drives ``group`` from its confirmation or failure stage."""
    if state.error_messages:
        logger.info("Transaction for %s withheld: errors=%s", group.value, state.error_messages)
        return NO_TRANSITION
    if group is StageGroup.PROXY and state.proxy_address is not None:
        logger.info("Proxy %s already deployed; skipping creation", state.proxy_address)
        return progress_proxy(state)
    if group is StageGroup.MANAGE:
        return StageTransition(action=manage_action(state))
    return StageTransition(action=_TX_ACTIONS[group])


_SUCCESS_HANDLERS: Dict[StageGroup, Callable[[ManageVaultState], StageTransition]] = {
    StageGroup.PROXY: progress_proxy,
    StageGroup.COLLATERAL_ALLOWANCE: progress_collateral_allowance,
    StageGroup.DAI_ALLOWANCE: progress_dai_allowance,
    StageGroup.MANAGE: lambda state: _reset_to_editing(state.original_editing_stage),
}


def progress(state: ManageVaultState) -> StageTransition:
    """Resolve ``progress`` against the stage the state is in.

    Raises:
        UnreachableStageError: If the stage is outside the closed set.
    """
    stage = parse_stage(state.stage)
    group = stage_group(stage)
    step = stage_step(stage)

    if group is StageGroup.EDITING:
        return progress_editing(state)
    if group is StageGroup.MULTIPLY_TRANSITION and step is StageStep.EDITING:
        return _move_to(Stage.MULTIPLY_TRANSITION_WAITING_FOR_CONFIRMATION)
    if step in _TX_READY_STEPS:
        return progress_transaction(state, group)
    if step is StageStep.SUCCESS and group in _SUCCESS_HANDLERS:
        return _SUCCESS_HANDLERS[group](state)

    logger.debug("Progress ignored while stage=%s", stage.value)
    return NO_TRANSITION


def regress(state: ManageVaultState) -> StageTransition:
    """Step back from a confirmation or failure stage."""
    stage = parse_stage(state.stage)
    if stage not in REGRESSABLE_STAGES:
        logger.debug("Regress ignored while stage=%s", stage.value)
        return NO_TRANSITION

    group = stage_group(stage)
    step = stage_step(stage)
    if step is StageStep.FAILURE:
        return _move_to(stage_for(group, StageStep.WAITING_FOR_CONFIRMATION))
    if group is StageGroup.MULTIPLY_TRANSITION and step is StageStep.WAITING_FOR_CONFIRMATION:
        return _move_to(Stage.MULTIPLY_TRANSITION_EDITING)
    return _move_to(state.original_editing_stage)


def toggle_editing(state: ManageVaultState) -> StageTransition:
    """Switch to the other editing stage and reset the form."""
    stage = parse_stage(state.stage)
    current = stage if stage in EDITING_STAGES else state.original_editing_stage
    other = Stage.DAI_EDITING if current is Stage.COLLATERAL_EDITING else Stage.COLLATERAL_EDITING
    return _reset_to_editing(other)


def enter_multiply_transition(state: ManageVaultState) -> StageTransition:
    stage = parse_stage(state.stage)
    if stage not in EDITING_STAGES:
        logger.debug("Multiply transition unavailable while stage=%s", stage.value)
        return NO_TRANSITION
    return _move_to(Stage.MULTIPLY_TRANSITION_EDITING)


_COMMANDS: Dict[str, Callable[[ManageVaultState], StageTransition]] = {
    "progress": progress,
    "regress": regress,
    "toggle_editing": toggle_editing,
    "enter_multiply_transition": enter_multiply_transition,
}


def resolve_command(state: ManageVaultState, command: CommandChange) -> StageTransition:
    """Dispatch a command to its transition function."""
    return _COMMANDS[command.kind](state)
