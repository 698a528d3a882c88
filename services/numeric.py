from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional


def coerce_number(raw: Any) -> Optional[float]:
    """Return ``raw`` as a finite float, or ``None`` when it is not numeric."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        candidate = raw.strip()
        if not candidate:
            return None
        try:
            value = float(candidate)
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


def round_one_decimal(value: float) -> float:
    """Round half away from zero to one decimal place."""
    return float(Decimal(repr(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
