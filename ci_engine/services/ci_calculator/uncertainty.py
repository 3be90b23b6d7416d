"""
ABFI CI Engine - Uncertainty Range

Combined data-quality and methodology uncertainty around a CI value.
"""

import math
from typing import Dict, Tuple, Union

from ci_engine.models.ci_enums import CIDataQuality, CIMethodology
from ci_engine.services.ci_calculator.default_factors import DATA_QUALITY_UNCERTAINTY


METHODOLOGY_UNCERTAINTY: Dict[CIMethodology, float] = {
    CIMethodology.RED_II: 1.0,
    CIMethodology.RTFO: 1.0,
    CIMethodology.ISO_14064: 1.1,
    CIMethodology.ISCC: 1.0,
    CIMethodology.RSB: 1.05,
}


def calculate_uncertainty(
    ci_value: float,
    data_quality: Union[CIDataQuality, str],
    methodology: Union[CIMethodology, str],
) -> Tuple[float, float]:
    """
    Uncertainty range (low, high) for a CI value.

    combined = sqrt((dq - 1)^2 + (m - 1)^2) + 1
    range    = ci * (combined - 1)
    The low end is clamped at zero; both ends are rounded to 2 decimals.
    """
    dq = DATA_QUALITY_UNCERTAINTY.get(CIDataQuality(data_quality), 1.3)
    m = METHODOLOGY_UNCERTAINTY.get(CIMethodology(methodology), 1.0)

    combined = math.sqrt((dq - 1) ** 2 + (m - 1) ** 2) + 1
    spread = ci_value * (combined - 1)

    return (
        max(0.0, round(ci_value - spread, 2)),
        round(ci_value + spread, 2),
    )
