"""Rate-limited notices about poor or excellent living conditions."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class AlertKind(str, Enum):
    poor = "poor"
    excellent = "excellent"


@dataclass(frozen=True, slots=True)
class Alert:
    kind: AlertKind
    score: float
    message: str
    raised_at: float


class AlertThrottle:
    """Emit at most one poor alert per minute and one excellent notice per five.

    Both kinds share a single last-notification clock, so a recent alert of
    either kind delays the next one.
    """

    POOR_THRESHOLD = 4.0
    EXCELLENT_THRESHOLD = 8.0
    POOR_INTERVAL_SECONDS = 60.0
    EXCELLENT_INTERVAL_SECONDS = 300.0

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last_raised: Optional[float] = None

    def evaluate(self, score: float) -> Optional[Alert]:
        now = self._clock()
        elapsed = None if self._last_raised is None else now - self._last_raised

        if score < self.POOR_THRESHOLD and (elapsed is None or elapsed > self.POOR_INTERVAL_SECONDS):
            alert = Alert(
                kind=AlertKind.poor,
                score=score,
                message="Living conditions are poor! Check your environment.",
                raised_at=now,
            )
            logger.warning(alert.message, extra={"score": score, "status": alert.kind.value})
        elif score >= self.EXCELLENT_THRESHOLD and (
            elapsed is None or elapsed > self.EXCELLENT_INTERVAL_SECONDS
        ):
            alert = Alert(
                kind=AlertKind.excellent,
                score=score,
                message="Excellent living conditions!",
                raised_at=now,
            )
            logger.info(alert.message, extra={"score": score, "status": alert.kind.value})
        else:
            return None

        self._last_raised = now
        return alert
