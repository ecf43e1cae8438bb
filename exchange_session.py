"""
Swap wallet session runtime.

Hosts one exchange-pair state for the lifetime of a UI session:
- reducer-driven state transitions, one dispatch at a time
- rate feed subscription acquired on mount, released on teardown
- pending-transaction flag and block explorer link
- wallet balances from the extension's balance updates
- action log for deterministic replay
"""

from __future__ import annotations

import logging
import math
import signal
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

import config
import exchange_state as es
from rate_feed import RateFeed


logger = logging.getLogger(__name__)

Observer = Callable[[es.ExchangePairState, es.Action], None]


def setup_logging() -> None:
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )


def _now() -> float:
    return time.time()


def parse_amount(text: Any) -> float:
    """
    Turn an amount field into a number for SetAlphaAmount.

    Empty input reads as zero. Anything else that is not a finite,
    non-negative number raises ValueError for the input handler to show.
    """
    raw = str(text if text is not None else "").strip().replace(",", ".")
    if not raw:
        return 0.0
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"not a number: {text!r}") from None
    if not math.isfinite(value):
        raise ValueError(f"not a finite number: {text!r}")
    if value < 0:
        raise ValueError(f"amount must not be negative: {text!r}")
    return value


@dataclass
class Wallet:
    balances: dict[es.AssetType, float] = field(default_factory=dict)

    def balance_of(self, asset: es.AssetType) -> float:
        return self.balances.get(asset, 0.0)

    @property
    def btc_balance(self) -> float:
        return self.balance_of(es.AssetType.BTC)

    @property
    def usdt_balance(self) -> float:
        return self.balance_of(es.AssetType.USDT)

    def to_dict(self) -> dict[str, float]:
        return {asset.value: self.balance_of(asset) for asset in es.AssetType}


def initial_state_from_config() -> es.ExchangePairState:
    return es.initial_state(
        alpha_type=config.INITIAL_ALPHA_ASSET,
        alpha_amount=config.INITIAL_ALPHA_AMOUNT,
        beta_type=config.INITIAL_BETA_ASSET,
        beta_amount=config.INITIAL_BETA_AMOUNT,
        rate=config.INITIAL_RATE,
    )


class ExchangeSession:
    def __init__(
        self,
        state: es.ExchangePairState | None = None,
        feed: RateFeed | None = None,
        *,
        pending_display_sec: float | None = None,
        explorer_url_template: str | None = None,
    ) -> None:
        self.lock = threading.RLock()
        self.started_at = _now()

        st = state if state is not None else initial_state_from_config()
        violations = es.check_invariants(st)
        if violations:
            raise es.ExchangeStateError("invalid session state: " + "; ".join(violations))
        self.initial_state = st
        self._state = st

        self.feed = feed
        self._subscription: int | None = None

        self.action_log: list[es.Action] = []
        self._observers: list[Observer] = []

        self.wallet = Wallet()

        self.tx_pending = False
        self.tx_pending_since: float | None = None
        self.pending_display_sec = float(
            config.TX_PENDING_DISPLAY_SEC if pending_display_sec is None else pending_display_sec
        )
        self.explorer_url_template = str(
            config.BLOCK_EXPLORER_TX_URL if explorer_url_template is None else explorer_url_template
        )

    # ------------------ State ------------------

    @property
    def state(self) -> es.ExchangePairState:
        return self._state

    def add_observer(self, observer: Observer) -> None:
        with self.lock:
            self._observers.append(observer)

    def remove_observer(self, observer: Observer) -> None:
        with self.lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def dispatch(self, action: es.Action) -> es.ExchangePairState:
        """
        Apply one action. Dispatches from any thread are applied one at a time.

        A rejected action leaves the state and the action log untouched and
        the reducer error propagates to the caller.
        """
        with self.lock:
            try:
                nxt = es.reduce(self._state, action)
            except es.ExchangeStateError as exc:
                logger.error("Rejected action %r: %s", action, exc)
                raise
            self._state = nxt
            self.action_log.append(action)
            observers = list(self._observers)
        logger.debug("Applied %r -> %s", action, es.to_dict(nxt))

        # Observers run outside the lock so they may call back into the session.
        for observer in observers:
            try:
                observer(nxt, action)
            except Exception:
                logger.exception("session observer failed after %r", action)
        return nxt

    def dispatch_dict(self, data: dict) -> es.ExchangePairState:
        return self.dispatch(es.action_from_dict(data))

    def replay_log(self) -> es.ExchangePairState:
        with self.lock:
            return es.replay(self.initial_state, list(self.action_log))

    def export_log(self) -> list[dict]:
        with self.lock:
            return [es.action_to_dict(a) for a in self.action_log]

    # ------------------ UI input handlers ------------------

    def set_alpha_amount(self, value: float) -> es.ExchangePairState:
        return self.dispatch(es.SetAlphaAmount(value))

    def set_alpha_amount_from_text(self, text: Any) -> es.ExchangePairState:
        return self.set_alpha_amount(parse_amount(text))

    def set_alpha_type(self, asset: Any) -> es.ExchangePairState:
        return self.dispatch(es.SetAlphaType(es.coerce_asset(asset)))

    def set_beta_type(self, asset: Any) -> es.ExchangePairState:
        return self.dispatch(es.SetBetaType(es.coerce_asset(asset)))

    def swap_sides(self) -> es.ExchangePairState:
        return self.dispatch(es.SwapSides())

    # ------------------ Rate feed lifecycle ------------------

    def _on_rate(self, rate: float) -> None:
        self.dispatch(es.SetRate(rate))

    @property
    def mounted(self) -> bool:
        return self._subscription is not None

    def mount(self) -> None:
        with self.lock:
            if self.feed is None or self._subscription is not None:
                return
            sub_id = self.feed.subscribe(self._on_rate)
            self._subscription = sub_id
        logger.info("session mounted (rate subscription %d)", sub_id)

    def teardown(self) -> None:
        with self.lock:
            sub_id = self._subscription
            self._subscription = None
        if sub_id is None or self.feed is None:
            return
        self.feed.unsubscribe(sub_id)
        logger.info("session torn down (rate subscription %d released)", sub_id)

    def __enter__(self) -> "ExchangeSession":
        self.mount()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()

    # ------------------ Transactions ------------------

    def begin_submission(self) -> None:
        with self.lock:
            self.tx_pending = True
            self.tx_pending_since = _now()

    def on_transaction_published(self, tx_id: str) -> es.ExchangePairState:
        """
        Record a broadcast transaction. The pending flag only drops once the
        reducer has accepted the id.
        """
        st = self.dispatch(es.PublishTransaction(tx_id))
        with self.lock:
            self.tx_pending = False
            self.tx_pending_since = None
        logger.info("transaction published: %s", tx_id)
        return st

    def pending_display_active(self, now: float | None = None) -> bool:
        with self.lock:
            if not self.tx_pending or self.tx_pending_since is None:
                return False
            ts = _now() if now is None else float(now)
            return ts - self.tx_pending_since < self.pending_display_sec

    def explorer_url(self) -> str:
        tx_id = self._state.tx_id
        if not tx_id:
            return ""
        return self.explorer_url_template.format(txid=tx_id)

    # ------------------ Wallet ------------------

    def apply_balance_update(self, entries: Iterable[dict]) -> Wallet:
        """
        Apply a wallet balance update: a list of {assetId, ticker, value}.
        """
        with self.lock:
            for entry in entries:
                ticker = str(entry.get("ticker") or "")
                asset = es.asset_for_ticker(ticker)
                if asset is None:
                    logger.debug("ignoring balance for unknown ticker %r", ticker)
                    continue
                try:
                    value = float(entry.get("value", 0.0))
                except (TypeError, ValueError):
                    value = math.nan
                if not math.isfinite(value) or value < 0:
                    logger.warning("ignoring invalid balance %r for %s", entry.get("value"), ticker)
                    continue
                self.wallet.balances[asset] = value
            return self.wallet

    def alpha_covered_by_balance(self) -> bool:
        with self.lock:
            return self.wallet.balance_of(self._state.alpha.type) >= self._state.alpha.amount

    # ------------------ Snapshot ------------------

    def snapshot(self) -> dict:
        with self.lock:
            return {
                **es.to_dict(self._state),
                "tx_pending": self.tx_pending,
                "wallet": self.wallet.to_dict(),
                "mounted": self.mounted,
                "actions_applied": len(self.action_log),
                "started_at": self.started_at,
            }


def run() -> None:
    """
    Host a session against the mock rate feed until SIGINT/SIGTERM.
    """
    setup_logging()
    config.print_banner()

    feed = RateFeed()
    session = ExchangeSession(feed=feed)
    stop = threading.Event()

    def _handle_signal(signum, _frame):
        logger.info("Signal %s received", signum)
        stop.set()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    def _log_state(st: es.ExchangePairState, action: es.Action) -> None:
        if isinstance(action, es.SetRate):
            logger.info(
                "1 %s = %.8f %s | %s %.8f -> %s %.8f",
                st.alpha.type.value,
                st.rate,
                st.beta.type.value,
                st.alpha.type.value,
                st.alpha.amount,
                st.beta.type.value,
                st.beta.amount,
            )

    session.add_observer(_log_state)
    try:
        with session:
            feed.start()
            logger.info("Session running (rate tick every %.2fs)", feed.interval_sec)
            while not stop.wait(0.5):
                pass
    finally:
        feed.stop()
        logger.info("Session closed after %d actions", len(session.action_log))


if __name__ == "__main__":
    run()
