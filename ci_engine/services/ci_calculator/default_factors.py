"""
ABFI CI Engine - Default Emission Factors

Industry-average emission factors per feedstock category (gCO2e/MJ), used to
pre-populate a draft report when primary data is not available.

Based on RED II, RTFO, ISO 14064, ISCC and RSB default values.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

from ci_engine.models.ci_enums import CIDataQuality, FeedstockCategory
from ci_engine.services.ci_calculator.aggregation import COMPONENT_FIELDS, EmissionComponents

logger = logging.getLogger(__name__)


# Multiplier applied to defaulted values by data quality level
DATA_QUALITY_UNCERTAINTY: Dict[CIDataQuality, float] = {
    CIDataQuality.DEFAULT: 1.3,
    CIDataQuality.INDUSTRY_AVERAGE: 1.15,
    CIDataQuality.PRIMARY_MEASURED: 1.0,
}


DEFAULT_EMISSION_FACTORS: Dict[FeedstockCategory, Dict[str, float]] = {
    # Canola, soybean etc. Moderate emissions
    FeedstockCategory.OILSEED: {
        "scope1_cultivation": 12.5,      # Farming, fertilizers
        "scope1_processing": 5.8,        # Crushing, refining
        "scope1_transport": 2.3,         # Farm to processor
        "scope2_electricity": 3.2,
        "scope2_steam_heat": 2.1,
        "scope3_upstream_inputs": 4.5,   # Seeds, fertilizers, pesticides
        "scope3_land_use_change": 8.0,
        "scope3_distribution": 2.5,
        "scope3_end_of_life": 0.0,       # Biogenic
    },
    # Used cooking oil. Waste product, no cultivation or LUC
    FeedstockCategory.UCO: {
        "scope1_cultivation": 0.0,
        "scope1_processing": 3.5,        # Collection and pre-processing
        "scope1_transport": 1.2,
        "scope2_electricity": 1.8,
        "scope2_steam_heat": 0.5,
        "scope3_upstream_inputs": 0.3,   # Processing chemicals
        "scope3_land_use_change": 0.0,
        "scope3_distribution": 1.5,
        "scope3_end_of_life": 0.0,
    },
    # Animal fats, by-product of the meat industry
    FeedstockCategory.TALLOW: {
        "scope1_cultivation": 0.0,
        "scope1_processing": 4.2,        # Rendering
        "scope1_transport": 1.5,
        "scope2_electricity": 2.1,
        "scope2_steam_heat": 1.2,
        "scope3_upstream_inputs": 0.5,
        "scope3_land_use_change": 0.0,
        "scope3_distribution": 1.8,
        "scope3_end_of_life": 0.0,
    },
    # Crop and forestry residues, wood
    FeedstockCategory.LIGNOCELLULOSIC: {
        "scope1_cultivation": 1.8,       # Collection only
        "scope1_processing": 4.0,        # Baling, chipping
        "scope1_transport": 2.8,
        "scope2_electricity": 1.8,
        "scope2_steam_heat": 0.9,
        "scope3_upstream_inputs": 1.4,
        "scope3_land_use_change": 0.0,
        "scope3_distribution": 2.0,
        "scope3_end_of_life": 0.0,
    },
    # Municipal and industrial waste
    FeedstockCategory.WASTE: {
        "scope1_cultivation": 0.0,
        "scope1_processing": 6.8,        # Sorting, processing
        "scope1_transport": 2.3,         # Collection
        "scope2_electricity": 3.3,
        "scope2_steam_heat": 1.8,
        "scope3_upstream_inputs": 0.9,
        "scope3_land_use_change": 0.0,
        "scope3_distribution": 1.9,
        # Avoided-landfill credit (-3.0) is not representable: components are non-negative
        "scope3_end_of_life": 0.0,
    },
    FeedstockCategory.ALGAE: {
        "scope1_cultivation": 8.0,       # Pond/reactor operation
        "scope1_processing": 7.5,        # Harvesting, drying, extraction
        "scope1_transport": 1.0,         # Usually co-located
        "scope2_electricity": 12.0,
        "scope2_steam_heat": 3.0,
        "scope3_upstream_inputs": 5.0,   # Nutrients, CO2
        "scope3_land_use_change": 0.0,
        "scope3_distribution": 1.5,
        "scope3_end_of_life": 0.0,
    },
    FeedstockCategory.BAMBOO: {
        "scope1_cultivation": 3.5,
        "scope1_processing": 5.0,
        "scope1_transport": 2.5,
        "scope2_electricity": 2.8,
        "scope2_steam_heat": 1.5,
        "scope3_upstream_inputs": 1.5,
        "scope3_land_use_change": 2.0,   # Often grown on degraded land
        "scope3_distribution": 2.0,
        "scope3_end_of_life": 0.0,
    },
    # Conservative defaults
    FeedstockCategory.OTHER: {
        "scope1_cultivation": 10.0,
        "scope1_processing": 6.0,
        "scope1_transport": 2.5,
        "scope2_electricity": 3.5,
        "scope2_steam_heat": 2.0,
        "scope3_upstream_inputs": 4.0,
        "scope3_land_use_change": 5.0,
        "scope3_distribution": 2.5,
        "scope3_end_of_life": 0.0,
    },
}


class DefaultEmissionFactorProvider:
    """
    Category-keyed lookup of baseline emission factors.

    The table is external configuration; pass a custom one to override it.
    Unknown categories fall back to OTHER.
    """

    def __init__(self, factors: Optional[Mapping[FeedstockCategory, Mapping[str, float]]] = None):
        self._factors = dict(factors or DEFAULT_EMISSION_FACTORS)

    def _resolve(self, category: Union[FeedstockCategory, str, None]) -> FeedstockCategory:
        try:
            resolved = FeedstockCategory(category)
        except ValueError:
            logger.debug(f"Unknown feedstock category {category!r}, using 'other' defaults")
            return FeedstockCategory.OTHER
        if resolved not in self._factors:
            return FeedstockCategory.OTHER
        return resolved

    def get_factors(self, category: Union[FeedstockCategory, str, None]) -> EmissionComponents:
        """Baseline factors for a category as a validated component set."""
        return EmissionComponents.from_mapping(self._factors[self._resolve(category)])

    def apply_defaults(
        self,
        partial: Mapping[str, Any],
        category: Union[FeedstockCategory, str, None],
        data_quality: Union[CIDataQuality, str] = CIDataQuality.DEFAULT,
    ) -> EmissionComponents:
        """
        Fill components missing from ``partial`` with category defaults.

        Defaulted values (except end of life) are scaled by the data-quality
        uncertainty factor. Supplied values are used as given.
        """
        defaults = self._factors[self._resolve(category)]
        factor = DATA_QUALITY_UNCERTAINTY.get(CIDataQuality(data_quality), 1.0)

        values: Dict[str, Any] = {}
        for name in COMPONENT_FIELDS:
            supplied = partial.get(name)
            if supplied is not None:
                values[name] = supplied
            elif name == "scope3_end_of_life":
                values[name] = defaults[name]
            else:
                values[name] = defaults[name] * factor
        return EmissionComponents.from_mapping(values)


# Module-level provider with the built-in table
default_factor_provider = DefaultEmissionFactorProvider()
