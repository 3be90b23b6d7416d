"""
ABFI CI Engine - CI Calculator Package

Carbon intensity calculation for RED II, RTFO, ISO 14064, ISCC and RSB reports.

Modules:
- aggregation: scope 1/2/3 totals and grand total CI value
- rating: A+ to F rating from the threshold table
- compliance: GHG savings vs fossil comparator, per-scheme flags
- default_factors: default emission factors per feedstock category
- uncertainty: uncertainty range from data quality and methodology
- activity_data: electricity and freight activity data to gCO2e/MJ
- calculator: everything above combined
"""

from functools import lru_cache
from typing import Any, Mapping, Optional, Union

from ci_engine.models.ci_enums import CIDataQuality, CIMethodology, FeedstockCategory
from ci_engine.services.ci_calculator.aggregation import (
    COMPONENT_FIELDS,
    SCOPE1_FIELDS,
    SCOPE2_FIELDS,
    SCOPE3_FIELDS,
    EmissionAggregator,
    EmissionComponents,
    EmissionTotals,
    aggregate_emissions,
    validate_component_values,
)
from ci_engine.services.ci_calculator.rating import RatingClassifier, classify_ci
from ci_engine.services.ci_calculator.compliance import (
    ComplianceEvaluator,
    ComplianceResult,
    ComplianceScheme,
    calculate_ghg_savings,
)
from ci_engine.services.ci_calculator.default_factors import (
    DATA_QUALITY_UNCERTAINTY,
    DEFAULT_EMISSION_FACTORS,
    DefaultEmissionFactorProvider,
    default_factor_provider,
)
from ci_engine.services.ci_calculator.uncertainty import calculate_uncertainty
from ci_engine.services.ci_calculator.activity_data import (
    AUSTRALIAN_GRID_FACTORS,
    TRANSPORT_EMISSION_FACTORS,
    calculate_electricity_emissions,
    calculate_transport_emissions,
    grid_factor,
)
from ci_engine.services.ci_calculator.calculator import (
    CICalculationResult,
    CICalculator,
    format_ci_value,
    format_ghg_savings,
)


@lru_cache()
def get_ci_calculator() -> CICalculator:
    """Calculator built from the application settings."""
    return CICalculator.from_settings()


# ===========================================
# CONVENIENCE FUNCTIONS
# ===========================================

def calculate_ci_report(
    values: Mapping[str, Any],
    methodology: Union[CIMethodology, str] = CIMethodology.RED_II,
    data_quality: Union[CIDataQuality, str] = CIDataQuality.PRIMARY_MEASURED,
) -> CICalculationResult:
    """
    Calculate all derived CI fields from raw component values.

    Args:
        values: Mapping with the nine scope component values
        methodology: GHG accounting methodology
        data_quality: Data quality level of the inputs

    Returns:
        CICalculationResult
    """
    return get_ci_calculator().calculate(
        EmissionComponents.from_mapping(values), methodology, data_quality
    )


def calculate_ci_with_defaults(
    partial: Mapping[str, Any],
    category: Union[FeedstockCategory, str],
    methodology: Union[CIMethodology, str] = CIMethodology.RED_II,
    data_quality: Union[CIDataQuality, str] = CIDataQuality.DEFAULT,
    provider: Optional[DefaultEmissionFactorProvider] = None,
) -> CICalculationResult:
    """Calculate from partial input, filling the gaps with category defaults."""
    components = (provider or default_factor_provider).apply_defaults(partial, category, data_quality)
    return get_ci_calculator().calculate(components, methodology, data_quality)


__all__ = [
    "COMPONENT_FIELDS",
    "SCOPE1_FIELDS",
    "SCOPE2_FIELDS",
    "SCOPE3_FIELDS",
    "EmissionAggregator",
    "EmissionComponents",
    "EmissionTotals",
    "aggregate_emissions",
    "validate_component_values",
    "RatingClassifier",
    "classify_ci",
    "ComplianceEvaluator",
    "ComplianceResult",
    "ComplianceScheme",
    "calculate_ghg_savings",
    "DATA_QUALITY_UNCERTAINTY",
    "DEFAULT_EMISSION_FACTORS",
    "DefaultEmissionFactorProvider",
    "default_factor_provider",
    "calculate_uncertainty",
    "AUSTRALIAN_GRID_FACTORS",
    "TRANSPORT_EMISSION_FACTORS",
    "calculate_electricity_emissions",
    "calculate_transport_emissions",
    "grid_factor",
    "CICalculationResult",
    "CICalculator",
    "format_ci_value",
    "format_ghg_savings",
    "get_ci_calculator",
    "calculate_ci_report",
    "calculate_ci_with_defaults",
]
