"""Reusable enums for the vault management domain."""

from enum import Enum


class StringEnum(str, Enum):
    """Base enum class with string behavior for JSON serialization."""


class ManageVaultStage(StringEnum):
    """Closed set of stages of the vault management workflow."""

    COLLATERAL_EDITING = "collateralEditing"
    DAI_EDITING = "daiEditing"

    PROXY_WAITING_FOR_CONFIRMATION = "proxyWaitingForConfirmation"
    PROXY_WAITING_FOR_APPROVAL = "proxyWaitingForApproval"
    PROXY_IN_PROGRESS = "proxyInProgress"
    PROXY_FAILURE = "proxyFailure"
    PROXY_SUCCESS = "proxySuccess"

    COLLATERAL_ALLOWANCE_WAITING_FOR_CONFIRMATION = "collateralAllowanceWaitingForConfirmation"
    COLLATERAL_ALLOWANCE_WAITING_FOR_APPROVAL = "collateralAllowanceWaitingForApproval"
    COLLATERAL_ALLOWANCE_IN_PROGRESS = "collateralAllowanceInProgress"
    COLLATERAL_ALLOWANCE_FAILURE = "collateralAllowanceFailure"
    COLLATERAL_ALLOWANCE_SUCCESS = "collateralAllowanceSuccess"

    DAI_ALLOWANCE_WAITING_FOR_CONFIRMATION = "daiAllowanceWaitingForConfirmation"
    DAI_ALLOWANCE_WAITING_FOR_APPROVAL = "daiAllowanceWaitingForApproval"
    DAI_ALLOWANCE_IN_PROGRESS = "daiAllowanceInProgress"
    DAI_ALLOWANCE_FAILURE = "daiAllowanceFailure"
    DAI_ALLOWANCE_SUCCESS = "daiAllowanceSuccess"

    MANAGE_WAITING_FOR_CONFIRMATION = "manageWaitingForConfirmation"
    MANAGE_WAITING_FOR_APPROVAL = "manageWaitingForApproval"
    MANAGE_IN_PROGRESS = "manageInProgress"
    MANAGE_FAILURE = "manageFailure"
    MANAGE_SUCCESS = "manageSuccess"

    MULTIPLY_TRANSITION_EDITING = "multiplyTransitionEditing"
    MULTIPLY_TRANSITION_WAITING_FOR_CONFIRMATION = "multiplyTransitionWaitingForConfirmation"
    MULTIPLY_TRANSITION_IN_PROGRESS = "multiplyTransitionInProgress"
    MULTIPLY_TRANSITION_FAILURE = "multiplyTransitionFailure"
    MULTIPLY_TRANSITION_SUCCESS = "multiplyTransitionSuccess"


class StageGroup(StringEnum):
    """Stage categories; every non-editing group is driven by one transaction flow."""

    EDITING = "editing"
    PROXY = "proxy"
    COLLATERAL_ALLOWANCE = "collateralAllowance"
    DAI_ALLOWANCE = "daiAllowance"
    MANAGE = "manage"
    MULTIPLY_TRANSITION = "multiplyTransition"


class StageStep(StringEnum):
    """Position of a stage inside its group."""

    EDITING = "Editing"
    WAITING_FOR_CONFIRMATION = "WaitingForConfirmation"
    WAITING_FOR_APPROVAL = "WaitingForApproval"
    IN_PROGRESS = "InProgress"
    FAILURE = "Failure"
    SUCCESS = "Success"


class AllowanceOption(StringEnum):
    """Allowance amount choices offered on the allowance stages."""

    UNLIMITED = "unlimited"
    EXACT_AMOUNT = "exactAmount"
    CUSTOM = "custom"


class FollowOnAction(StringEnum):
    """Side effect the session must perform after a transition."""

    CREATE_PROXY = "createProxy"
    COLLATERAL_ALLOWANCE = "collateralAllowance"
    DAI_ALLOWANCE = "daiAllowance"
    DEPOSIT_AND_GENERATE = "depositAndGenerate"
    WITHDRAW_AND_PAYBACK = "withdrawAndPayback"
    MULTIPLY_TRANSITION = "multiplyTransition"


class TxStatus(StringEnum):
    """Transaction lifecycle states reported by the transaction issuer."""

    WAITING_FOR_APPROVAL = "WAITING_FOR_APPROVAL"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class ManageVaultWarningMessage(StringEnum):
    """Machine-readable warning codes. Warnings never block progression."""

    NO_PROXY_ADDRESS = "noProxyAddress"
    DEPOSIT_AMOUNT_EMPTY = "depositAmountEmpty"
    GENERATE_AMOUNT_EMPTY = "generateAmountEmpty"
    POTENTIAL_GENERATE_AMOUNT_LESS_THAN_DEBT_FLOOR = "potentialGenerateAmountLessThanDebtFloor"
    NO_COLLATERAL_ALLOWANCE = "noCollateralAllowance"
    COLLATERAL_ALLOWANCE_LESS_THAN_DEPOSIT_AMOUNT = "collateralAllowanceLessThanDepositAmount"
    NO_DAI_ALLOWANCE = "noDaiAllowance"
    DAI_ALLOWANCE_LESS_THAN_PAYBACK_AMOUNT = "daiAllowanceLessThanPaybackAmount"


class ManageVaultErrorMessage(StringEnum):
    """Machine-readable error codes. Any error blocks progression."""

    DEPOSIT_AMOUNT_GREATER_THAN_MAX_DEPOSIT_AMOUNT = "depositAmountGreaterThanMaxDepositAmount"
    WITHDRAW_AMOUNT_GREATER_THAN_MAX_WITHDRAW_AMOUNT = "withdrawAmountGreaterThanMaxWithdrawAmount"
    GENERATE_AMOUNT_LESS_THAN_DEBT_FLOOR = "generateAmountLessThanDebtFloor"
    GENERATE_AMOUNT_GREATER_THAN_DEBT_CEILING = "generateAmountGreaterThanDebtCeiling"
    PAYBACK_AMOUNT_GREATER_THAN_MAX_PAYBACK_AMOUNT = "paybackAmountGreaterThanMaxPaybackAmount"
    PAYBACK_AMOUNT_LESS_THAN_DEBT_FLOOR = "paybackAmountLessThanDebtFloor"
    COLLATERAL_ALLOWANCE_AMOUNT_EMPTY = "collateralAllowanceAmountEmpty"
    CUSTOM_COLLATERAL_ALLOWANCE_AMOUNT_GREATER_THAN_MAX_UINT256 = (
        "customCollateralAllowanceAmountGreaterThanMaxUint256"
    )
    CUSTOM_COLLATERAL_ALLOWANCE_AMOUNT_LESS_THAN_DEPOSIT_AMOUNT = (
        "customCollateralAllowanceAmountLessThanDepositAmount"
    )
    DAI_ALLOWANCE_AMOUNT_EMPTY = "daiAllowanceAmountEmpty"
    CUSTOM_DAI_ALLOWANCE_AMOUNT_GREATER_THAN_MAX_UINT256 = "customDaiAllowanceAmountGreaterThanMaxUint256"
    CUSTOM_DAI_ALLOWANCE_AMOUNT_LESS_THAN_PAYBACK_AMOUNT = "customDaiAllowanceAmountLessThanPaybackAmount"
    VAULT_UNDER_COLLATERALIZED = "vaultUnderCollateralized"
