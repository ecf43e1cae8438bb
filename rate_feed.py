"""
rate_feed.py

Exchange-rate feed for the swap session.

Subscribers receive sanity-checked rates (beta units per alpha unit). The
mock source is a geometric random walk; a real source only needs to call
publish() with whatever it receives.
"""

from __future__ import annotations

import logging
import math
import threading
from typing import Callable

import numpy as np

import config


logger = logging.getLogger(__name__)

RateCallback = Callable[[float], None]


class RateFeed:
    """
    Subscription fan-out with a corrupt-tick filter in front of it.
    """

    def __init__(
        self,
        *,
        initial_rate: float | None = None,
        volatility_pct: float | None = None,
        max_jump_pct: float | None = None,
        interval_sec: float | None = None,
        seed: int | None = None,
    ) -> None:
        self.initial_rate = float(config.INITIAL_RATE if initial_rate is None else initial_rate)
        self.volatility_pct = max(0.0, float(config.RATE_FEED_VOLATILITY_PCT if volatility_pct is None else volatility_pct))
        self.max_jump_pct = float(config.RATE_FEED_MAX_JUMP_PCT if max_jump_pct is None else max_jump_pct)
        self.interval_sec = max(0.01, float(config.RATE_FEED_INTERVAL_SEC if interval_sec is None else interval_sec))

        if seed is None and config.RATE_FEED_SEED >= 0:
            seed = config.RATE_FEED_SEED
        self._rng = np.random.default_rng(seed)

        self._lock = threading.RLock()
        self._subscribers: dict[int, RateCallback] = {}
        self._next_subscription_id = 1
        self._walk_rate = self.initial_rate
        self._last_rate: float | None = None
        self._dropped = 0

        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    # ------------------ Subscriptions ------------------

    def subscribe(self, callback: RateCallback) -> int:
        with self._lock:
            sub_id = self._next_subscription_id
            self._next_subscription_id += 1
            self._subscribers[sub_id] = callback
        logger.debug("rate feed subscription %d added", sub_id)
        return sub_id

    def unsubscribe(self, subscription_id: int) -> None:
        with self._lock:
            removed = self._subscribers.pop(int(subscription_id), None)
        if removed is not None:
            logger.debug("rate feed subscription %d removed", subscription_id)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    @property
    def last_rate(self) -> float | None:
        return self._last_rate

    @property
    def dropped_ticks(self) -> int:
        return self._dropped

    # ------------------ Publishing ------------------

    def _is_sane(self, rate: float) -> bool:
        if not math.isfinite(rate) or rate <= 0:
            return False
        prev = self._last_rate
        if prev is None or self.max_jump_pct <= 0:
            return True
        jump_pct = abs(rate - prev) / prev * 100.0
        return jump_pct <= self.max_jump_pct

    def publish(self, rate: float) -> bool:
        """
        Forward one rate to every subscriber, in subscription order.

        Returns False (and forwards nothing) when the tick fails the sanity
        filter. A failing subscriber is logged and does not stop the fan-out.
        """
        try:
            value = float(rate)
        except (TypeError, ValueError):
            value = math.nan

        with self._lock:
            if not self._is_sane(value):
                self._dropped += 1
                logger.warning("Dropping corrupt rate tick %r (last accepted: %r)", rate, self._last_rate)
                return False
            self._last_rate = value
            subscribers = list(self._subscribers.items())

        for sub_id, callback in subscribers:
            try:
                callback(value)
            except Exception:
                logger.exception("rate feed subscriber %d failed on rate %.8f", sub_id, value)
        return True

    def next_rate(self) -> float:
        """
        Advance the mock random walk by one step.
        """
        sigma = self.volatility_pct / 100.0
        with self._lock:
            step = float(self._rng.normal(0.0, sigma)) if sigma > 0 else 0.0
            self._walk_rate = float(self._walk_rate * np.exp(step))
            return self._walk_rate

    def tick(self) -> bool:
        return self.publish(self.next_rate())

    # ------------------ Background ticker ------------------

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="rate-feed")
        self._thread.start()
        logger.info("rate feed started (every %.2fs)", self.interval_sec)

    def stop(self, timeout: float = 1.0) -> None:
        thread = self._thread
        self._thread = None
        if thread is None:
            return
        self._stop_event.set()
        thread.join(timeout=timeout)
        logger.info("rate feed stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_sec):
            self.tick()
