"""Histogram binning and paired-sample extraction over a reading series."""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Sequence

from models.records import BinBoundary, CorrelationPoint, Distribution, DistributionBin, Reading

logger = logging.getLogger(__name__)

TEMPERATURE_BANDS: tuple[BinBoundary, ...] = (
    BinBoundary("< 15°C", -math.inf, 15),
    BinBoundary("15-20°C", 15, 20),
    BinBoundary("20-25°C", 20, 25),
    BinBoundary("25-30°C", 25, 30),
    BinBoundary("> 30°C", 30),
)

SCORE_BANDS: tuple[BinBoundary, ...] = (
    BinBoundary("0-2", -math.inf, 2),
    BinBoundary("2-4", 2, 4),
    BinBoundary("4-6", 4, 6),
    BinBoundary("6-8", 6, 8),
    BinBoundary("8-10", 8),
)


class DistributionBinner:
    """Count values into caller-supplied ``[lower, upper)`` bins.

    Bins are tried in order and the first match wins; the last bin has no upper
    bound. Boundaries are expected to be gapless, so a value below the first
    lower bound is not counted.
    """

    def bin(
        self,
        series: Iterable[Reading],
        metric: str,
        boundaries: Sequence[BinBoundary],
    ) -> Distribution:
        if not boundaries:
            raise ValueError("At least one bin boundary is required.")

        counts = [0] * len(boundaries)
        last = len(boundaries) - 1
        unplaced = 0

        for reading in series:
            value = reading.value(metric)
            if value is None:
                continue
            for index, boundary in enumerate(boundaries):
                if value < boundary.lower:
                    continue
                if index == last or boundary.upper is None or value < boundary.upper:
                    counts[index] += 1
                    break
            else:
                unplaced += 1

        if unplaced:
            logger.warning(
                "Values fell outside every bin",
                extra={"metric": metric, "skipped_count": unplaced},
            )

        return Distribution(
            metric=metric,
            bins=tuple(
                DistributionBin(
                    label=boundary.label,
                    lower=boundary.lower,
                    upper=None if index == last else boundary.upper,
                    count=counts[index],
                )
                for index, boundary in enumerate(boundaries)
            ),
        )


class CorrelationExtractor:
    def extract(
        self, series: Iterable[Reading], x_metric: str, y_metric: str
    ) -> List[CorrelationPoint]:
        points: List[CorrelationPoint] = []
        for reading in series:
            x = reading.value(x_metric)
            y = reading.value(y_metric)
            if x is None or y is None:
                continue
            points.append(CorrelationPoint(timestamp=reading.timestamp, x=x, y=y))
        return points
