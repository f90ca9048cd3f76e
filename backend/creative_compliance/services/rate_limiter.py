"""Rate limiter — AI phase credits for full evaluations, per client.

A full evaluation is charged one credit for each AI phase it will actually
reach: semantic when the creative carries user copy long enough to check,
vision when it carries a canvas render or a background image. Creatives that
only exercise the deterministic phases cost nothing. Credits refill
continuously so that ``max_evaluations`` image-bearing full evaluations fit
in each window.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional

from creative_compliance.compliance.creative import CreativeSnapshot
from creative_compliance.compliance.detectors.semantic import MIN_TEXT_LENGTH
from creative_compliance.config import get_settings

AI_PHASES = 2


def ai_phase_cost(snapshot: CreativeSnapshot) -> int:
    """Number of paid AI phases a full evaluation of this snapshot will run."""
    cost = 0
    if any(
        not e.is_system and len((e.text or "").strip()) > MIN_TEXT_LENGTH
        for e in snapshot.text_elements()
    ):
        cost += 1
    if snapshot.context.canvas_data_url or snapshot.context.background_image_url:
        cost += 1
    return cost


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    cost: int
    remaining: int
    retry_after_seconds: float


class PhaseCreditLimiter:
    """In-memory credit bucket per client key; one instance per app."""

    def __init__(
        self,
        max_evaluations: Optional[int] = None,
        window_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings()
        self.max_evaluations = max_evaluations or settings.RATE_LIMIT_MAX_FULL_EVALUATIONS
        self.window_seconds = window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS
        self.capacity = float(self.max_evaluations * AI_PHASES)
        self._refill_per_second = self.capacity / self.window_seconds
        self._clock = clock
        # client -> (credits, stamp)
        self._credits: dict[str, tuple[float, float]] = {}

    def _level(self, client: str, now: float) -> float:
        credits, stamp = self._credits.get(client, (self.capacity, now))
        return min(self.capacity, credits + (now - stamp) * self._refill_per_second)

    def charge(self, client: str, snapshot: CreativeSnapshot) -> RateDecision:
        """Spend the snapshot's AI phase credits, or refuse without spending any."""
        cost = ai_phase_cost(snapshot)
        now = self._clock()
        level = self._level(client, now)

        if level >= cost:
            level -= cost
            self._credits[client] = (level, now)
            return RateDecision(allowed=True, cost=cost, remaining=int(level), retry_after_seconds=0.0)

        self._credits[client] = (level, now)
        return RateDecision(
            allowed=False,
            cost=cost,
            remaining=int(level),
            retry_after_seconds=(cost - level) / self._refill_per_second,
        )

    def remaining(self, client: str) -> int:
        return int(self._level(client, self._clock()))
