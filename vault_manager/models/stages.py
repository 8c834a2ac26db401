"""Stage lookup tables shared by the condition evaluator and transition engine."""

from typing import Dict, FrozenSet, Tuple

from .enums import ManageVaultStage, StageGroup, StageStep
from .exceptions import UnreachableStageError


Stage = ManageVaultStage

_STAGE_TABLE: Dict[ManageVaultStage, Tuple[StageGroup, StageStep]] = {
    Stage.COLLATERAL_EDITING: (StageGroup.EDITING, StageStep.EDITING),
    Stage.DAI_EDITING: (StageGroup.EDITING, StageStep.EDITING),
    Stage.PROXY_WAITING_FOR_CONFIRMATION: (StageGroup.PROXY, StageStep.WAITING_FOR_CONFIRMATION),
    Stage.PROXY_WAITING_FOR_APPROVAL: (StageGroup.PROXY, StageStep.WAITING_FOR_APPROVAL),
    Stage.PROXY_IN_PROGRESS: (StageGroup.PROXY, StageStep.IN_PROGRESS),
    Stage.PROXY_FAILURE: (StageGroup.PROXY, StageStep.FAILURE),
    Stage.PROXY_SUCCESS: (StageGroup.PROXY, StageStep.SUCCESS),
    Stage.COLLATERAL_ALLOWANCE_WAITING_FOR_CONFIRMATION: (
        StageGroup.COLLATERAL_ALLOWANCE,
        StageStep.WAITING_FOR_CONFIRMATION,
    ),
    Stage.COLLATERAL_ALLOWANCE_WAITING_FOR_APPROVAL: (
        StageGroup.COLLATERAL_ALLOWANCE,
        StageStep.WAITING_FOR_APPROVAL,
    ),
    Stage.COLLATERAL_ALLOWANCE_IN_PROGRESS: (StageGroup.COLLATERAL_ALLOWANCE, StageStep.IN_PROGRESS),
    Stage.COLLATERAL_ALLOWANCE_FAILURE: (StageGroup.COLLATERAL_ALLOWANCE, StageStep.FAILURE),
    Stage.COLLATERAL_ALLOWANCE_SUCCESS: (StageGroup.COLLATERAL_ALLOWANCE, StageStep.SUCCESS),
    Stage.DAI_ALLOWANCE_WAITING_FOR_CONFIRMATION: (StageGroup.DAI_ALLOWANCE, StageStep.WAITING_FOR_CONFIRMATION),
    Stage.DAI_ALLOWANCE_WAITING_FOR_APPROVAL: (StageGroup.DAI_ALLOWANCE, StageStep.WAITING_FOR_APPROVAL),
    Stage.DAI_ALLOWANCE_IN_PROGRESS: (StageGroup.DAI_ALLOWANCE, StageStep.IN_PROGRESS),
    Stage.DAI_ALLOWANCE_FAILURE: (StageGroup.DAI_ALLOWANCE, StageStep.FAILURE),
    Stage.DAI_ALLOWANCE_SUCCESS: (StageGroup.DAI_ALLOWANCE, StageStep.SUCCESS),
    Stage.MANAGE_WAITING_FOR_CONFIRMATION: (StageGroup.MANAGE, StageStep.WAITING_FOR_CONFIRMATION),
    Stage.MANAGE_WAITING_FOR_APPROVAL: (StageGroup.MANAGE, StageStep.WAITING_FOR_APPROVAL),
    Stage.MANAGE_IN_PROGRESS: (StageGroup.MANAGE, StageStep.IN_PROGRESS),
    Stage.MANAGE_FAILURE: (StageGroup.MANAGE, StageStep.FAILURE),
    Stage.MANAGE_SUCCESS: (StageGroup.MANAGE, StageStep.SUCCESS),
    Stage.MULTIPLY_TRANSITION_EDITING: (StageGroup.MULTIPLY_TRANSITION, StageStep.EDITING),
    Stage.MULTIPLY_TRANSITION_WAITING_FOR_CONFIRMATION: (
        StageGroup.MULTIPLY_TRANSITION,
        StageStep.WAITING_FOR_CONFIRMATION,
    ),
    Stage.MULTIPLY_TRANSITION_IN_PROGRESS: (StageGroup.MULTIPLY_TRANSITION, StageStep.IN_PROGRESS),
    Stage.MULTIPLY_TRANSITION_FAILURE: (StageGroup.MULTIPLY_TRANSITION, StageStep.FAILURE),
    Stage.MULTIPLY_TRANSITION_SUCCESS: (StageGroup.MULTIPLY_TRANSITION, StageStep.SUCCESS),
}

_STAGE_BY_GROUP_AND_STEP: Dict[Tuple[StageGroup, StageStep], ManageVaultStage] = {
    value: stage for stage, value in _STAGE_TABLE.items() if value[0] is not StageGroup.EDITING
}

EDITING_STAGES: FrozenSet[ManageVaultStage] = frozenset({Stage.COLLATERAL_EDITING, Stage.DAI_EDITING})

# Stages awaiting wallet approval or on-chain confirmation.
LOADING_STAGES: FrozenSet[ManageVaultStage] = frozenset(
    {
        Stage.PROXY_IN_PROGRESS,
        Stage.PROXY_WAITING_FOR_APPROVAL,
        Stage.COLLATERAL_ALLOWANCE_WAITING_FOR_APPROVAL,
        Stage.COLLATERAL_ALLOWANCE_IN_PROGRESS,
        Stage.DAI_ALLOWANCE_WAITING_FOR_APPROVAL,
        Stage.DAI_ALLOWANCE_IN_PROGRESS,
        Stage.MANAGE_IN_PROGRESS,
        Stage.MANAGE_WAITING_FOR_APPROVAL,
        Stage.MULTIPLY_TRANSITION_IN_PROGRESS,
        Stage.MULTIPLY_TRANSITION_SUCCESS,
    }
)

REGRESSABLE_STAGES: FrozenSet[ManageVaultStage] = frozenset(
    {
        Stage.PROXY_WAITING_FOR_CONFIRMATION,
        Stage.PROXY_FAILURE,
        Stage.COLLATERAL_ALLOWANCE_WAITING_FOR_CONFIRMATION,
        Stage.COLLATERAL_ALLOWANCE_FAILURE,
        Stage.DAI_ALLOWANCE_WAITING_FOR_CONFIRMATION,
        Stage.DAI_ALLOWANCE_FAILURE,
        Stage.MANAGE_WAITING_FOR_CONFIRMATION,
        Stage.MANAGE_FAILURE,
        Stage.MULTIPLY_TRANSITION_EDITING,
        Stage.MULTIPLY_TRANSITION_WAITING_FOR_CONFIRMATION,
        Stage.MULTIPLY_TRANSITION_FAILURE,
    }
)


def parse_stage(value: object) -> ManageVaultStage:
    """Coerce an external stage value, failing fast on anything outside the closed set."""
    if isinstance(value, ManageVaultStage):
        return value
    try:
        return ManageVaultStage(value)
    except ValueError:
        raise UnreachableStageError(value) from None


def stage_group(stage: object) -> StageGroup:
    """Return the category a stage belongs to."""
    return _STAGE_TABLE[parse_stage(stage)][0]


def stage_step(stage: object) -> StageStep:
    """Return the position of a stage inside its category."""
    return _STAGE_TABLE[parse_stage(stage)][1]


def stage_for(group: StageGroup, step: StageStep) -> ManageVaultStage:
    """Compose the stage identifier for a non-editing group and step."""
    try:
        return _STAGE_BY_GROUP_AND_STEP[(group, step)]
    except KeyError:
        raise UnreachableStageError("{0}{1}".format(group.value, step.value)) from None
