"""Environment collaborators and the background poller feeding a session.

The core never talks to a chain directly. It consumes a ``VaultDataSource``
for reads and a ``TransactionIssuer`` for writes; both are abstract so a web3
adapter, a subgraph client or an in-memory fake can be plugged in.
"""

from abc import ABC, abstractmethod
import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..core.config import AppSettings
from ..models.base import Address, Amount
from ..models.changes import (
    AllowanceChange,
    BalanceInfoChange,
    IlkDataChange,
    PriceInfoChange,
    ProxyAddressChange,
    VaultChange,
)
from ..models.exceptions import EnvironmentReadError
from ..models.vault import BalanceInfo, IlkData, PriceInfo, Vault


logger = logging.getLogger(__name__)

DEBT_TOKEN = "DAI"


class VaultDataSource(ABC):
    """Read side of the chain as seen by one session."""

    @abstractmethod
    def proxy_address(self, account: Address) -> Optional[Address]:
        """Return the proxy owned by ``account``, if deployed."""

    @abstractmethod
    def allowance(self, token: str, owner: Address, spender: Address) -> Amount:
        """Return how much of ``token`` ``spender`` may move for ``owner``."""

    @abstractmethod
    def price_info(self, token: str) -> PriceInfo:
        """Return current and next oracle prices."""

    @abstractmethod
    def balance_info(self, token: str, account: Address) -> BalanceInfo:
        """Return wallet balances of ``account``."""

    @abstractmethod
    def ilk_data(self, ilk: str) -> IlkData:
        """Return the risk parameters of a collateral type."""

    @abstractmethod
    def vault(self, vault_id: int) -> Vault:
        """Return the latest snapshot of a vault."""


class TransactionIssuer(ABC):
    """Write side: signs, sends and tracks transactions."""

    @abstractmethod
    def send(self, action: Any, on_update: Callable[[Any], None]) -> None:
        """Submit ``action`` and report each ``TxState`` through ``on_update``.

        Updates may be delivered synchronously from inside ``send`` or later
        from another callback; the session queues them either way.
        """


def _read(label: str, reader: Callable[[], Any]) -> Any:
    try:
        return reader()
    except Exception as exc:
        logger.exception("Environment read failed source=%s", label)
        raise EnvironmentReadError("Failed to read {0}".format(label)) from exc


def read_environment(
    data_source: VaultDataSource,
    vault_id: int,
    account: Optional[Address],
    native_token: str,
) -> List[Any]:
    """Read every environment value of a session as a list of changes.

    Raises:
        EnvironmentReadError: If any collaborator call fails.
    """
    vault = _read("vault", lambda: data_source.vault(vault_id))
    changes: List[Any] = [
        VaultChange(vault=vault),
        IlkDataChange(ilk_data=_read("ilk_data", lambda: data_source.ilk_data(vault.ilk))),
        PriceInfoChange(price_info=_read("price_info", lambda: data_source.price_info(vault.token))),
    ]
    if account is None:
        return changes

    changes.append(
        BalanceInfoChange(balance_info=_read("balance_info", lambda: data_source.balance_info(vault.token, account)))
    )
    proxy_address = _read("proxy_address", lambda: data_source.proxy_address(account))
    changes.append(ProxyAddressChange(proxy_address=proxy_address))
    if proxy_address is None:
        return changes

    if vault.token != native_token.upper():
        changes.append(
            AllowanceChange(
                kind="collateral_allowance",
                allowance=_read(
                    "collateral_allowance", lambda: data_source.allowance(vault.token, account, proxy_address)
                ),
            )
        )
    changes.append(
        AllowanceChange(
            kind="dai_allowance",
            allowance=_read("dai_allowance", lambda: data_source.allowance(DEBT_TOKEN, account, proxy_address)),
        )
    )
    return changes


class ChangeDebouncer:
    """Coalesce environment changes per kind.

    A change is released once its kind has been quiet for the kind's window;
    the latest value wins. Values equal to the last released one are dropped.
    """

    def __init__(
        self,
        windows: Optional[Dict[str, float]] = None,
        default_window: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._windows = dict(windows or {})
        self._default_window = default_window
        self._clock = clock
        self._pending: Dict[str, Tuple[Any, float]] = {}
        self._released: Dict[str, Any] = {}

    def _window(self, kind: str) -> float:
        return self._windows.get(kind, self._default_window)

    def offer(self, change: Any, now: Optional[float] = None) -> None:
        """Queue ``change``; restarts the quiet period of its kind."""
        now = self._clock() if now is None else now
        kind = change.kind
        if self._released.get(kind) == change:
            self._pending.pop(kind, None)
            return
        self._pending[kind] = (change, now + self._window(kind))

    def flush(self, now: Optional[float] = None) -> List[Any]:
        """Return the changes whose quiet period has elapsed, in offer order."""
        now = self._clock() if now is None else now
        ready = [kind for kind, (_, deadline) in self._pending.items() if deadline <= now]
        released = []
        for kind in ready:
            change, _ = self._pending.pop(kind)
            self._released[kind] = change
            released.append(change)
        return released

    def next_deadline(self) -> Optional[float]:
        if not self._pending:
            return None
        return min(deadline for _, deadline in self._pending.values())


class EnvironmentPoller:
    """Poll a data source in the background and feed a session."""

    def __init__(
        self,
        session: Any,
        data_source: VaultDataSource,
        settings: AppSettings,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Create a poller bound to one session."""
        self._session = session
        self._data_source = data_source
        self._settings = settings
        self._clock = clock
        self._debouncer = ChangeDebouncer(windows={"price_info": settings.price_debounce_sec}, clock=clock)
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the polling loop unless it is already running."""
        if self.running:
            logger.info("Environment poller already running.")
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name="environment-poller")
        logger.info("Environment poller started vault=%s", self._session.state.vault.id)

    async def stop(self) -> None:
        """Gracefully stop the background task."""
        if not self._task:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            logger.info("Environment poller task cancelled.")
        finally:
            self._task = None

    async def _run_loop(self) -> None:
        """Poll on a fixed interval and release debounced changes when due."""
        next_poll_at = self._clock()
        while not self._stop_event.is_set() and not self._session.closed:
            now = self._clock()
            if now >= next_poll_at:
                try:
                    self.poll_once(now)
                except EnvironmentReadError as exc:
                    self._session.fail(exc)
                    return
                next_poll_at = now + self._settings.environment_poll_interval_sec
            self.deliver(self._clock())

            wake_at = next_poll_at
            deadline = self._debouncer.next_deadline()
            if deadline is not None:
                wake_at = min(wake_at, deadline)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=max(wake_at - self._clock(), 0.0))
            except asyncio.TimeoutError:
                continue

    def poll_once(self, now: Optional[float] = None) -> None:
        """Read the environment once and queue the results for delivery.

        Raises:
            EnvironmentReadError: If the data source fails.
        """
        state = self._session.state
        changes = read_environment(self._data_source, state.vault.id, state.account, state.native_token)
        logger.debug("Environment polled vault=%s changes=%d", state.vault.id, len(changes))
        for change in changes:
            self._debouncer.offer(change, now)

    def deliver(self, now: Optional[float] = None) -> int:
        """Dispatch every change whose debounce window has elapsed."""
        released = self._debouncer.flush(now)
        for change in released:
            self._session.update_environment(change)
        return len(released)
