"""
ABFI CI Engine - Activity Data Conversion

Turns raw activity data into per-MJ emission components:
- grid electricity (kWh) -> scope2_electricity
- freight (tonnes x km)  -> scope1_transport

electricity = kWh * grid factor (kgCO2e/kWh) * 1000 / output MJ
transport   = mode factor (gCO2e/tonne-km) * tonnes * km / output MJ
"""

import math
from typing import Dict, List, Optional

from ci_engine.utils.error_handling import CIValidationError


# Australian grid emission factors by state (kgCO2e/kWh)
AUSTRALIAN_GRID_FACTORS: Dict[str, float] = {
    "NSW": 0.79,
    "VIC": 0.96,
    "QLD": 0.81,
    "SA": 0.35,
    "WA": 0.69,
    "TAS": 0.15,
    "NT": 0.64,
    "ACT": 0.79,      # NSW grid
    "national": 0.79,
}

# Freight emission factors by mode (gCO2e/tonne-km)
TRANSPORT_EMISSION_FACTORS: Dict[str, float] = {
    "road_truck": 62,
    "road_light": 150,
    "rail_diesel": 22,
    "rail_electric": 8,
    "ship_coastal": 16,
    "ship_international": 8,
    "barge": 31,
    "pipeline": 5,
}


def _check_quantities(output_mj: float, **quantities: float) -> None:
    errors: List[str] = []
    if not math.isfinite(output_mj) or output_mj <= 0:
        errors.append("Output energy (MJ) must be greater than zero")
    for name, value in quantities.items():
        if not math.isfinite(value) or value < 0:
            errors.append(f"{name} must be a non-negative number")
    if errors:
        raise CIValidationError(errors)


def grid_factor(state: Optional[str] = None) -> float:
    """Grid factor for an Australian state. Unknown or missing states use the national factor."""
    if not state:
        return AUSTRALIAN_GRID_FACTORS["national"]
    return AUSTRALIAN_GRID_FACTORS.get(
        state.upper(), AUSTRALIAN_GRID_FACTORS["national"]
    )


def calculate_electricity_emissions(
    kwh: float,
    output_mj: float,
    state: Optional[str] = "national",
) -> float:
    """
    Scope 2 electricity emissions in gCO2e/MJ.

    Args:
        kwh: Grid electricity consumed for the reporting period
        output_mj: Energy content of the product for the same period
        state: Australian state or territory code

    Raises:
        CIValidationError: output_mj <= 0 or a negative consumption
    """
    _check_quantities(output_mj, kWh=kwh)
    return kwh * grid_factor(state) * 1000 / output_mj


def calculate_transport_emissions(
    tonnes: float,
    distance_km: float,
    output_mj: float,
    mode: str = "road_truck",
) -> float:
    """
    Scope 1 transport emissions in gCO2e/MJ.

    Raises:
        CIValidationError: Unknown transport mode, output_mj <= 0, or a
            negative tonnage or distance
    """
    if mode not in TRANSPORT_EMISSION_FACTORS:
        raise CIValidationError([
            f"Unknown transport mode: {mode}. Must be one of: "
            + ", ".join(TRANSPORT_EMISSION_FACTORS)
        ])
    _check_quantities(output_mj, tonnes=tonnes, distance_km=distance_km)
    return TRANSPORT_EMISSION_FACTORS[mode] * tonnes * distance_km / output_mj
