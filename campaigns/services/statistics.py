"""Conversion-rate arithmetic and significance testing for campaign reports."""

import math
from statistics import NormalDist
from typing import Optional

_STANDARD_NORMAL = NormalDist()


def conversion_rate(conversions: int, visitors: int) -> float:
    """Conversions per visitor as a percentage; 0 when there are no visitors."""
    if visitors <= 0:
        return 0.0
    return conversions / visitors * 100


def calculate_significance(
    conversions_a: int,
    visitors_a: int,
    conversions_b: int,
    visitors_b: int,
    confidence_level: float = 95.0,
) -> Optional[dict]:
    """
    Two-tailed two-proportion z-test of B against A.

    Rates in the result are fractions (0-1), improvement_percent is relative
    to A. Returns None when either arm has no visitors.
    """
    if visitors_a <= 0 or visitors_b <= 0:
        return None

    rate_a = conversions_a / visitors_a
    rate_b = conversions_b / visitors_b

    pooled = (conversions_a + conversions_b) / (visitors_a + visitors_b)
    standard_error = math.sqrt(pooled * (1 - pooled) * (1 / visitors_a + 1 / visitors_b))

    if standard_error == 0:
        z_score = 0.0
    else:
        z_score = (rate_b - rate_a) / standard_error

    p_value = 2 * (1 - _STANDARD_NORMAL.cdf(abs(z_score)))

    alpha = (100 - confidence_level) / 100
    critical_value = _STANDARD_NORMAL.inv_cdf(1 - alpha / 2)

    improvement = rate_b - rate_a
    improvement_percent = (rate_b / rate_a - 1) * 100 if rate_a > 0 else 0.0

    return {
        "conversion_rate_control": rate_a,
        "conversion_rate_variant": rate_b,
        "improvement": improvement,
        "improvement_percent": improvement_percent,
        "z_score": z_score,
        "p_value": p_value,
        "confidence_level": confidence_level,
        "is_significant": abs(z_score) > critical_value,
    }
