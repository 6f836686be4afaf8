from __future__ import annotations

import math
from dataclasses import replace
from typing import List, Sequence, Tuple

from .domain import ForecastComponents, ForecastPoint
from .logging_config import get_logger

logger = get_logger(__name__)


class StabilityGuard:
    """Final pass that repairs, rather than rejects, malformed forecast output.

    Re-applies the winning strategy's day-over-day bound, floors predictions at
    zero, keeps confidence within [0, 100] and non-increasing, keeps the band
    around the prediction and recomputes the residual so the components add
    up to the prediction.
    """

    def apply(
        self,
        forecasts: Sequence[ForecastPoint],
        last_value: float,
        bounds: Tuple[float, float],
    ) -> List[ForecastPoint]:
        max_drop, max_rise = bounds
        guarded: List[ForecastPoint] = []
        corrections = 0
        previous = last_value
        ceiling = 100.0

        for point in forecasts:
            predicted = point.predicted if math.isfinite(point.predicted) else previous
            predicted = max(0.0, predicted)
            if previous > 0:
                predicted = min(max(predicted, previous * (1 + max_drop)), previous * (1 + max_rise))

            confidence = point.confidence if math.isfinite(point.confidence) else 0.0
            confidence = min(max(confidence, 0.0), 100.0, ceiling)

            shift = predicted - point.predicted if math.isfinite(point.predicted) else 0.0
            lower = point.lower_bound + shift if math.isfinite(point.lower_bound) else predicted
            upper = point.upper_bound + shift if math.isfinite(point.upper_bound) else predicted
            lower = max(0.0, min(lower, predicted))
            upper = max(upper, predicted)

            trend, seasonal = point.components.trend, point.components.seasonal
            if not (math.isfinite(trend) and math.isfinite(seasonal)):
                trend, seasonal = predicted, 0.0
            residual = predicted - trend - seasonal

            if (
                predicted != point.predicted
                or confidence != point.confidence
                or lower != point.lower_bound
                or upper != point.upper_bound
                or not math.isclose(residual, point.components.residual, rel_tol=1e-9, abs_tol=1e-6)
            ):
                corrections += 1

            guarded.append(
                replace(
                    point,
                    predicted=predicted,
                    lower_bound=lower,
                    upper_bound=upper,
                    confidence=confidence,
                    components=ForecastComponents(trend=trend, seasonal=seasonal, residual=residual),
                )
            )
            previous = predicted
            ceiling = confidence

        if corrections:
            logger.warning("Stability guard corrected forecast points", corrections=corrections, total=len(guarded))
        return guarded
