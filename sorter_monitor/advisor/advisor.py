"""
Imbalance advisor — hold-or-move recommendation for the two sorters.

Decision
--------
  1. ``detect_imbalances(state)``; nothing above threshold → HOLD.
  2. Otherwise MOVE the top-priority SKU from the sorter with the larger
     share to the other one.
  3. If a text generator is enabled, ask it to confirm or improve the move:
       - service failure          → local advice unchanged
       - text is an Advice JSON   → that advice (fresh ``issued_at``)
       - any other text           → local advice, text appended to reason

The advisor is a pure function of its input state plus the clock; it keeps
no history between passes.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from sorter_monitor.advisor.enrichment import (
    DisabledTextGenerator,
    TextGenerator,
    build_prompt,
    parse_advice_text,
)
from sorter_monitor.advisor.imbalance import DEFAULT_THRESHOLD_PCT, detect_imbalances
from sorter_monitor.errors import EnrichmentError
from sorter_monitor.models.advice import Advice, AdviceAction, AdvisorState, Imbalance
from sorter_monitor.utils.time_utils import now_local

logger = logging.getLogger(__name__)


def balanced_reason(threshold: float) -> str:
    return f"System balanced - all differences <= {threshold:.1f}%"


def move_reason(imbalance: Imbalance, from_sorter: int, to_sorter: int) -> str:
    """``"Critical imbalance: 20.0% difference (S1:60.0% vs S2:40.0%)"``."""
    pct = {1: imbalance.pct1, 2: imbalance.pct2}
    return (
        f"Critical imbalance: {imbalance.difference:.1f}% difference "
        f"(S{from_sorter}:{pct[from_sorter]:.1f}% vs S{to_sorter}:{pct[to_sorter]:.1f}%)"
    )


class ImbalanceAdvisor:
    """Produces one ``Advice`` per call.

    Args:
        threshold: Minimum (exclusive) percentage-point gap worth acting on.
        text_generator: Enrichment capability; disabled by default.
        clock: Returns "now"; injectable for tests.
    """

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD_PCT,
        text_generator: Optional[TextGenerator] = None,
        clock: Callable[[], datetime] = now_local,
    ) -> None:
        self.threshold = threshold
        self.text_generator = text_generator or DisabledTextGenerator()
        self.clock = clock

    def advise(self, state: AdvisorState) -> Advice:
        imbalances = detect_imbalances(state, self.threshold)

        if not imbalances:
            return Advice(
                action=AdviceAction.HOLD,
                reason=balanced_reason(self.threshold),
                issued_at=self.clock(),
            )

        worst = imbalances[0]
        from_sorter, to_sorter = (1, 2) if worst.pct1 > worst.pct2 else (2, 1)
        logger.info(
            "Top imbalance: %s (%.1f%% difference, priority %.2f)",
            worst.sku, worst.difference, worst.priority,
        )

        advice = Advice(
            action=AdviceAction.MOVE,
            sku=worst.sku,
            from_sorter=from_sorter,
            to_sorter=to_sorter,
            reason=move_reason(worst, from_sorter, to_sorter),
            issued_at=self.clock(),
        )

        if not self.text_generator.enabled:
            return advice
        return self._enrich(state, imbalances, advice)

    def _enrich(
        self,
        state: AdvisorState,
        imbalances: list[Imbalance],
        advice: Advice,
    ) -> Advice:
        prompt = build_prompt(state, imbalances, advice.reason)
        try:
            text = self.text_generator.generate(prompt)
        except EnrichmentError as exc:
            logger.warning("Advice enrichment unavailable: %s", exc)
            return advice

        enriched = parse_advice_text(text, self.clock())
        if enriched is not None:
            return enriched

        text = text.strip()
        if not text:
            return advice
        return advice.model_copy(update={"reason": f"{advice.reason}. Analysis: {text}"})
