"""Human-readable labels for sentiment scores in [-1, 1]."""

import math

from trendbot.core.errors import ComputationError

NO_DATA_LABEL = "No Data"


def label_for(score: float) -> str:
    """Map a sentiment score to its description; higher scores never get a lower band."""
    if score is None or not math.isfinite(score):
        raise ComputationError(f"Cannot label non-finite sentiment score: {score!r}")

    if score < -0.5:
        return "Very Negative"
    if score < -0.1:
        return "Negative"
    if score <= 0.1:
        return "Neutral"
    if score <= 0.5:
        return "Positive"
    return "Very Positive"
