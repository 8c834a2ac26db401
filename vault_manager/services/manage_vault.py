"""Vault management session: single-writer state machine over a FIFO mailbox.

Every user mutation, environment tick and transaction update becomes a change
in the mailbox. One drain loop applies changes in arrival order, runs the pure
pipeline and publishes the snapshot before handling the next change.
"""

from collections import deque
from decimal import Decimal
import logging
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from ..common.addresses import normalize_address
from ..common.vault_math import MAX_UINT256, from_usd, or_zero
from ..core.config import AppSettings, load_settings
from ..core.logging_config import setup_logging
from ..models.base import Address
from ..models.changes import (
    ENVIRONMENT_CHANGE_TYPES,
    USER_CHANGE_TYPES,
    AllowanceChange,
    AllowanceOptionChange,
    AmountChange,
    BalanceInfoChange,
    CommandChange,
    FormActionChange,
    IlkDataChange,
    OriginalEditingStageChange,
    PriceInfoChange,
    ProxyAddressChange,
    StageChange,
    StateOverrideChange,
    TransactionChange,
    VaultChange,
    parse_change,
)
from ..models.enums import AllowanceOption, FollowOnAction, StageGroup, StageStep, TxStatus
from ..models.exceptions import SessionClosedError, StateOverrideError, UnknownChangeKindError
from ..models.stages import stage_for
from ..models.state import FORM_DEFAULTS, ManageVaultState
from .calculations import apply_manage_vault_calculations
from .conditions import apply_manage_vault_conditions, apply_manage_vault_stage_categorisation
from .environment import EnvironmentPoller, TransactionIssuer, VaultDataSource, read_environment
from .transactions import ApproveAction, TxState, action_flow, build_action, transaction_change
from .transitions import resolve_command
from .validations import validate_errors, validate_warnings


logger = logging.getLogger(__name__)

_TX_HASH_FIELDS: Dict[StageGroup, str] = {
    StageGroup.PROXY: "proxy_tx_hash",
    StageGroup.COLLATERAL_ALLOWANCE: "collateral_allowance_tx_hash",
    StageGroup.DAI_ALLOWANCE: "dai_allowance_tx_hash",
    StageGroup.MANAGE: "manage_tx_hash",
    StageGroup.MULTIPLY_TRANSITION: "multiply_transition_tx_hash",
}
_TX_STEPS: Dict[TxStatus, StageStep] = {
    TxStatus.WAITING_FOR_APPROVAL: StageStep.WAITING_FOR_APPROVAL,
    TxStatus.IN_PROGRESS: StageStep.IN_PROGRESS,
    TxStatus.SUCCESS: StageStep.SUCCESS,
    TxStatus.FAILURE: StageStep.FAILURE,
}


# ---------------------------------------------------------------------------
# Pure state functions
# ---------------------------------------------------------------------------

def run_pipeline(state: ManageVaultState) -> ManageVaultState:
    """Recompute every derived layer: calculations, categories, errors, warnings, conditions."""
    state = apply_manage_vault_calculations(state)
    state = apply_manage_vault_stage_categorisation(state)
    state = validate_errors(state)
    state = validate_warnings(state)
    return apply_manage_vault_conditions(state)


def _apply_amount(state: ManageVaultState, change: AmountChange) -> Dict[str, Any]:
    price = state.price_info.current_collateral_price
    amount = change.amount
    if change.kind == "deposit_amount_usd":
        return {"deposit_amount": from_usd(amount, price)}
    if change.kind == "withdraw_amount_usd":
        return {"withdraw_amount": from_usd(amount, price)}
    if change.kind == "payback_amount":
        return {"payback_amount": amount, "should_payback_all": False}
    return {change.kind: amount}


def _apply_form_action(state: ManageVaultState, change: FormActionChange) -> Dict[str, Any]:
    kind = change.kind
    if kind == "deposit_max":
        return {"deposit_amount": state.max_deposit_amount}
    if kind == "withdraw_max":
        return {"withdraw_amount": state.max_withdraw_amount}
    if kind == "generate_max":
        return {"generate_amount": state.max_generate_amount}
    if kind == "payback_max":
        return {"payback_amount": state.max_payback_amount, "should_payback_all": False}
    if kind == "payback_all":
        return {"payback_amount": state.vault.debt, "should_payback_all": True}
    if kind == "clear":
        return dict(FORM_DEFAULTS)
    # Hiding a secondary option drops the amount it carried.
    if kind == "toggle_deposit_and_generate_option":
        return {
            "show_deposit_and_generate_option": not state.show_deposit_and_generate_option,
            "generate_amount": None,
        }
    if kind == "toggle_payback_and_withdraw_option":
        return {
            "show_payback_and_withdraw_option": not state.show_payback_and_withdraw_option,
            "withdraw_amount": None,
        }
    return {"show_ilk_details": not state.show_ilk_details}


def _exact_collateral_allowance(state: ManageVaultState) -> Optional[Decimal]:
    return state.deposit_amount


def _exact_dai_allowance(state: ManageVaultState) -> Decimal:
    return or_zero(state.payback_amount) + state.vault.debt_offset


def _sync_exact_allowances(state: ManageVaultState) -> ManageVaultState:
    """Keep EXACT allowance amounts equal to the amounts they approve."""
    update: Dict[str, Any] = {}
    if state.selected_collateral_allowance_radio is AllowanceOption.EXACT_AMOUNT:
        update["collateral_allowance_amount"] = _exact_collateral_allowance(state)
    if state.selected_dai_allowance_radio is AllowanceOption.EXACT_AMOUNT:
        update["dai_allowance_amount"] = _exact_dai_allowance(state)
    return state.model_copy(update=update) if update else state


def _apply_allowance_option(state: ManageVaultState, change: AllowanceOptionChange) -> Dict[str, Any]:
    if change.kind == "collateral_allowance_option":
        exact_amount = _exact_collateral_allowance(state)
        radio_field, amount_field = "selected_collateral_allowance_radio", "collateral_allowance_amount"
    else:
        exact_amount = _exact_dai_allowance(state)
        radio_field, amount_field = "selected_dai_allowance_radio", "dai_allowance_amount"

    if change.option is AllowanceOption.UNLIMITED:
        amount: Optional[Decimal] = MAX_UINT256
    elif change.option is AllowanceOption.EXACT_AMOUNT:
        amount = exact_amount
    else:
        amount = None
    return {radio_field: change.option, amount_field: amount}


def _apply_transaction(state: ManageVaultState, change: TransactionChange) -> Dict[str, Any]:
    update: Dict[str, Any] = {"stage": stage_for(change.flow, _TX_STEPS[change.status])}
    if change.tx_hash is not None:
        update[_TX_HASH_FIELDS[change.flow]] = change.tx_hash
    if change.flow is StageGroup.PROXY:
        update["proxy_confirmations"] = change.confirmations
    if change.status is TxStatus.FAILURE:
        update["tx_error"] = change.error
    elif change.status is TxStatus.WAITING_FOR_APPROVAL:
        update["tx_error"] = None
    if change.status is TxStatus.SUCCESS:
        if change.flow is StageGroup.PROXY and change.proxy_address is not None:
            update["proxy_address"] = normalize_address(change.proxy_address)
        elif change.flow is StageGroup.COLLATERAL_ALLOWANCE and change.allowance is not None:
            update["collateral_allowance"] = change.allowance
        elif change.flow is StageGroup.DAI_ALLOWANCE and change.allowance is not None:
            update["dai_allowance"] = change.allowance
    return update


def override_state(state: ManageVaultState, state_to_override: Dict[str, Any]) -> ManageVaultState:
    """Merge a partial state and re-validate it as a whole.

    Raises:
        StateOverrideError: If a key is not a state field.
        ValidationError: If the merged values are malformed.
    """
    unknown = sorted(set(state_to_override) - set(ManageVaultState.model_fields))
    if unknown:
        raise StateOverrideError("Unknown state fields: {0}".format(", ".join(unknown)))
    merged = state.model_dump()
    merged.update(state_to_override)
    return ManageVaultState.model_validate(merged)


def apply_change(state: ManageVaultState, change: Any) -> ManageVaultState:
    """Apply one change to the authoritative fields of ``state``.

    Derived fields are left stale; callers run :func:`run_pipeline` afterwards.
    Commands are resolved against ``state`` and their stage changes applied,
    without performing any follow-on action.

    Raises:
        UnknownChangeKindError: If ``change`` is not a recognised change.
    """
    change = parse_change(change)
    if isinstance(change, CommandChange):
        for resolved in resolve_command(state, change).changes:
            state = apply_change(state, resolved)
        return state
    if isinstance(change, StateOverrideChange):
        return override_state(state, change.state_to_override)

    if isinstance(change, AmountChange):
        update = _apply_amount(state, change)
    elif isinstance(change, FormActionChange):
        update = _apply_form_action(state, change)
    elif isinstance(change, AllowanceOptionChange):
        update = _apply_allowance_option(state, change)
    elif isinstance(change, StageChange):
        update = {"stage": change.stage}
    elif isinstance(change, OriginalEditingStageChange):
        update = {"original_editing_stage": change.stage}
    elif isinstance(change, PriceInfoChange):
        update = {"price_info": change.price_info}
    elif isinstance(change, BalanceInfoChange):
        update = {"balance_info": change.balance_info}
    elif isinstance(change, IlkDataChange):
        update = {"ilk_data": change.ilk_data}
    elif isinstance(change, VaultChange):
        update = {"vault": change.vault}
    elif isinstance(change, ProxyAddressChange):
        update = {"proxy_address": normalize_address(change.proxy_address)}
    elif isinstance(change, AllowanceChange):
        update = {change.kind: change.allowance}
    elif isinstance(change, TransactionChange):
        update = _apply_transaction(state, change)
    else:
        raise UnknownChangeKindError("Unsupported change: {0!r}".format(change))
    return _sync_exact_allowances(state.model_copy(update=update))


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

_Subscriber = Tuple[Callable[[ManageVaultState], None], Optional[Callable[[Exception], None]]]


class ManageVaultSession:
    """Owns one vault management state and serialises every change to it."""

    def __init__(
        self,
        state: ManageVaultState,
        tx_issuer: TransactionIssuer,
        settings: AppSettings,
    ) -> None:
        self._state = run_pipeline(state)
        self._tx_issuer = tx_issuer
        self._settings = settings
        self._mailbox: Deque[Any] = deque()
        self._draining = False
        self._subscribers: List[_Subscriber] = []
        self._closed = False
        self._error: Optional[Exception] = None

    @property
    def state(self) -> ManageVaultState:
        """Latest published snapshot."""
        return self._state

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def error(self) -> Optional[Exception]:
        """Error that terminated the session, if any."""
        return self._error

    # -- subscription -------------------------------------------------------

    def subscribe(
        self,
        on_next: Callable[[ManageVaultState], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> Callable[[], None]:
        """Receive every published snapshot, starting with the current one.

        Returns:
            Callable: Unsubscribe function.
        """
        subscriber: _Subscriber = (on_next, on_error)
        if self._error is not None:
            if on_error is not None:
                on_error(self._error)
            return lambda: None
        self._subscribers.append(subscriber)
        on_next(self._state)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def _publish(self) -> None:
        for on_next, _ in list(self._subscribers):
            try:
                on_next(self._state)
            except Exception:
                logger.exception("Subscriber failed vault=%s", self._state.vault.id)

    # -- mailbox ------------------------------------------------------------

    def dispatch(self, change: Any) -> None:
        """Queue a user change or command and process the mailbox.

        Stage, transaction, environment and override changes are produced
        only by the session itself and are rejected here.

        Raises:
            SessionClosedError: If the session was closed or failed.
            UnknownChangeKindError: If ``change`` is not a user change or command.
        """
        if self._closed:
            raise SessionClosedError("Session for vault {0} is closed".format(self._state.vault.id))
        change = parse_change(change)
        if not isinstance(change, USER_CHANGE_TYPES):
            logger.warning("Rejected non-user change kind=%s vault=%s", change.kind, self._state.vault.id)
            raise UnknownChangeKindError("Not a user change: {0!r}".format(change.kind))
        self._enqueue(change)

    def _dispatch_external(self, change: Any) -> None:
        if self._closed:
            logger.warning("Dropped %s on closed session vault=%s", change.kind, self._state.vault.id)
            return
        self._enqueue(change)

    def _enqueue(self, change: Any) -> None:
        self._mailbox.append(change)
        if self._draining:
            return
        self._draining = True
        try:
            while self._mailbox and not self._closed:
                self._process(self._mailbox.popleft())
        finally:
            self._draining = False

    def _process(self, change: Any) -> None:
        previous = self._state
        action: Optional[FollowOnAction] = None
        if isinstance(change, CommandChange):
            if change.kind == "progress" and not previous.can_progress:
                logger.info("Progress blocked stage=%s errors=%s", previous.stage.value, previous.error_messages)
                return
            transition = resolve_command(previous, change)
            state = previous
            for resolved in transition.changes:
                state = apply_change(state, resolved)
            action = transition.action
        else:
            state = apply_change(previous, change)

        self._state = run_pipeline(state)
        if self._state.stage is not previous.stage:
            logger.info(
                "Stage transition vault=%s %s -> %s",
                self._state.vault.id,
                previous.stage.value,
                self._state.stage.value,
            )
        self._publish()
        if action is not None:
            self._send(action)

    def _send(self, action: FollowOnAction) -> None:
        descriptor = build_action(self._state, action)
        flow = action_flow(action)
        approved = descriptor.amount if isinstance(descriptor, ApproveAction) else None
        safe_confirmations = self._state.safe_confirmations
        logger.info("Issuing %s transaction vault=%s", action.value, self._state.vault.id)

        def on_update(tx_state: TxState) -> None:
            self._dispatch_external(transaction_change(flow, tx_state, safe_confirmations, approved))

        try:
            self._tx_issuer.send(descriptor, on_update)
        except Exception as exc:
            logger.exception("Transaction issuer failed action=%s vault=%s", action.value, self._state.vault.id)
            on_update(TxState(status=TxStatus.FAILURE, error=str(exc)))

    # -- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        """Tear the session down; later external events are dropped."""
        if self._closed:
            return
        self._closed = True
        self._mailbox.clear()
        self._subscribers.clear()
        logger.info("Session closed vault=%s", self._state.vault.id)

    def fail(self, error: Exception) -> None:
        """Terminate the stream with ``error`` and notify subscribers."""
        if self._closed:
            return
        logger.error("Session failed vault=%s error=%s", self._state.vault.id, error)
        self._error = error
        subscribers = list(self._subscribers)
        self.close()
        for _, on_error in subscribers:
            if on_error is not None:
                on_error(error)

    # -- environment and testing hooks ---------------------------------------

    def update_environment(self, change: Any) -> None:
        """Apply an environment change delivered by a collaborator."""
        change = parse_change(change)
        if not isinstance(change, ENVIRONMENT_CHANGE_TYPES):
            raise UnknownChangeKindError("Not an environment change: {0!r}".format(change.kind))
        self._dispatch_external(change)

    def inject_state_override(self, state_to_override: Dict[str, Any]) -> None:
        """Overwrite state fields directly; only for test harnesses.

        Raises:
            StateOverrideError: If overrides are disabled or a key is unknown.
        """
        if not self._settings.allow_state_override:
            raise StateOverrideError("State override is disabled (testing.allow_state_override=false)")
        unknown = sorted(set(state_to_override) - set(ManageVaultState.model_fields))
        if unknown:
            raise StateOverrideError("Unknown state fields: {0}".format(", ".join(unknown)))
        if self._closed:
            raise SessionClosedError("Session for vault {0} is closed".format(self._state.vault.id))
        self._enqueue(StateOverrideChange(state_to_override=dict(state_to_override)))

    # -- user mutations -----------------------------------------------------

    def update_deposit(self, amount: Optional[Decimal] = None) -> None:
        self.dispatch(AmountChange(kind="deposit_amount", amount=amount))

    def update_deposit_usd(self, amount: Optional[Decimal] = None) -> None:
        self.dispatch(AmountChange(kind="deposit_amount_usd", amount=amount))

    def update_deposit_max(self) -> None:
        self.dispatch(FormActionChange(kind="deposit_max"))

    def update_withdraw(self, amount: Optional[Decimal] = None) -> None:
        self.dispatch(AmountChange(kind="withdraw_amount", amount=amount))

    def update_withdraw_usd(self, amount: Optional[Decimal] = None) -> None:
        self.dispatch(AmountChange(kind="withdraw_amount_usd", amount=amount))

    def update_withdraw_max(self) -> None:
        self.dispatch(FormActionChange(kind="withdraw_max"))

    def update_generate(self, amount: Optional[Decimal] = None) -> None:
        self.dispatch(AmountChange(kind="generate_amount", amount=amount))

    def update_generate_max(self) -> None:
        self.dispatch(FormActionChange(kind="generate_max"))

    def update_payback(self, amount: Optional[Decimal] = None) -> None:
        self.dispatch(AmountChange(kind="payback_amount", amount=amount))

    def update_payback_max(self) -> None:
        self.dispatch(FormActionChange(kind="payback_max"))

    def set_payback_all(self) -> None:
        """Pay back the whole debt, including interest accrued until mining."""
        self.dispatch(FormActionChange(kind="payback_all"))

    def set_collateral_allowance_option(self, option: AllowanceOption) -> None:
        self.dispatch(AllowanceOptionChange(kind="collateral_allowance_option", option=option))

    def update_collateral_allowance_amount(self, amount: Optional[Decimal] = None) -> None:
        self.dispatch(AmountChange(kind="collateral_allowance_amount", amount=amount))

    def set_dai_allowance_option(self, option: AllowanceOption) -> None:
        self.dispatch(AllowanceOptionChange(kind="dai_allowance_option", option=option))

    def update_dai_allowance_amount(self, amount: Optional[Decimal] = None) -> None:
        self.dispatch(AmountChange(kind="dai_allowance_amount", amount=amount))

    def toggle_deposit_and_generate_option(self) -> None:
        self.dispatch(FormActionChange(kind="toggle_deposit_and_generate_option"))

    def toggle_payback_and_withdraw_option(self) -> None:
        self.dispatch(FormActionChange(kind="toggle_payback_and_withdraw_option"))

    def toggle_ilk_details(self) -> None:
        self.dispatch(FormActionChange(kind="toggle_ilk_details"))

    def toggle_editing(self) -> None:
        self.dispatch(CommandChange(kind="toggle_editing"))

    def enter_multiply_transition(self) -> None:
        self.dispatch(CommandChange(kind="enter_multiply_transition"))

    def progress(self) -> None:
        self.dispatch(CommandChange(kind="progress"))

    def regress(self) -> None:
        self.dispatch(CommandChange(kind="regress"))

    def clear(self) -> None:
        """Reset pending inputs to their defaults without changing stage."""
        self.dispatch(FormActionChange(kind="clear"))


def initial_state(
    changes: List[Any],
    account: Optional[Address],
    settings: AppSettings,
) -> ManageVaultState:
    """Build the first state of a session from freshly read environment changes."""
    fields: Dict[str, Any] = {
        "account": account,
        "safe_confirmations": settings.safe_confirmations,
        "native_token": settings.native_token,
    }
    for change in changes:
        if isinstance(change, VaultChange):
            fields["vault"] = change.vault
        elif isinstance(change, IlkDataChange):
            fields["ilk_data"] = change.ilk_data
        elif isinstance(change, PriceInfoChange):
            fields["price_info"] = change.price_info
        elif isinstance(change, BalanceInfoChange):
            fields["balance_info"] = change.balance_info
        elif isinstance(change, ProxyAddressChange):
            fields["proxy_address"] = change.proxy_address
        elif isinstance(change, AllowanceChange):
            fields[change.kind] = change.allowance
    fields["initial_total_steps"] = 2 if fields.get("proxy_address") else 3
    return ManageVaultState(**fields)


def create_manage_vault(
    vault_id: int,
    data_source: VaultDataSource,
    tx_issuer: TransactionIssuer,
    account: Optional[Address] = None,
    settings: Optional[AppSettings] = None,
) -> ManageVaultSession:
    """Load the environment of a vault and open a session on it.

    Args:
        vault_id: Identifier of the vault to manage.
        data_source: Read collaborator.
        tx_issuer: Write collaborator.
        account: Connected wallet, if any.
        settings: Settings; loaded from YAML when omitted.

    Returns:
        ManageVaultSession: Session positioned on ``collateralEditing``.

    Raises:
        EnvironmentReadError: If the initial environment cannot be read.
    """
    settings = settings or load_settings()
    setup_logging(settings.log_level)
    changes = read_environment(data_source, vault_id, normalize_address(account), settings.native_token)
    session = ManageVaultSession(initial_state(changes, account, settings), tx_issuer, settings)
    logger.info(
        "Manage vault session opened vault=%s account=%s proxy=%s",
        vault_id,
        session.state.account,
        session.state.proxy_address,
    )
    return session


def create_environment_poller(session: ManageVaultSession, data_source: VaultDataSource) -> EnvironmentPoller:
    """Poller that keeps ``session`` in sync with ``data_source``."""
    return EnvironmentPoller(session, data_source, session.settings)
