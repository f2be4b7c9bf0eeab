from __future__ import annotations

import logging
from typing import Callable

from .background import BackgroundSummary, summarize_background
from .clock import Clock
from .logging_utils import debug_enabled
from .prompts import ChangeReason, PromptSet, PromptStore, WeightsChanged
from .throttle import Throttle
from .visuals import VisualFieldSimulator

_LOGGER = logging.getLogger("promptdj.notifier")

WeightsConsumer = Callable[[WeightsChanged], None]
BackgroundConsumer = Callable[[BackgroundSummary], None]


class ChangeNotifier:
    """Fans each new prompt snapshot out to the visual field and audio consumers.

    Halo reconciliation and the weight-vector emission run synchronously on
    every change. The background summary goes through a throttle, which never
    holds back the emission.
    """

    def __init__(
        self,
        store: PromptStore,
        simulator: VisualFieldSimulator,
        clock: Clock,
        *,
        background_interval: float = 0.03,
        on_background: BackgroundConsumer | None = None,
    ) -> None:
        self._store = store
        self._simulator = simulator
        self._consumers: list[WeightsConsumer] = []
        self._on_background = on_background
        self._background = Throttle(self._publish_background, background_interval, clock)
        self._emitted = 0
        self._unsubscribe: Callable[[], None] | None = None
        self._simulator.reconcile(store.prompts)
        self.open()

    @property
    def emitted(self) -> int:
        return self._emitted

    @property
    def background(self) -> BackgroundSummary | None:
        return self._background.last_result

    @property
    def subscribed(self) -> bool:
        return self._unsubscribe is not None

    def add_consumer(self, consumer: WeightsConsumer) -> Callable[[], None]:
        self._consumers.append(consumer)

        def _remove() -> None:
            if consumer in self._consumers:
                self._consumers.remove(consumer)

        return _remove

    def sync(self, reason: ChangeReason = "init") -> None:
        """Push the current snapshot without a store mutation (startup)."""
        self._on_change(self._store.prompts, reason)

    def open(self) -> None:
        """Subscribe to the store again after `close`; a no-op while subscribed."""
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self._on_change)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._background.cancel()

    def _on_change(self, prompts: PromptSet, reason: ChangeReason) -> None:
        result = self._simulator.reconcile(prompts)
        if result.added or result.removed:
            _LOGGER.debug(
                "Halos +%s -%s (%s)", sorted(result.added), sorted(result.removed), reason
            )

        event = WeightsChanged(prompts=prompts.payload(), reason=reason)
        self._emitted += 1
        for consumer in list(self._consumers):
            try:
                consumer(event)
            except Exception as exc:
                _LOGGER.warning("Weights consumer failed: %s", exc, exc_info=debug_enabled())

        self._background(prompts)

    def _publish_background(self, prompts: PromptSet) -> BackgroundSummary:
        summary = summarize_background(prompts)
        if self._on_background is not None:
            self._on_background(summary)
        return summary
