"""
ABFI CI Engine - Emission Aggregator

Sums the nine scope-1/2/3 emission components of a report into per-scope
totals and the grand total carbon-intensity value.

All values are in gCO2e/MJ of fuel output.

Scope 1 (direct):        cultivation, processing, transport
Scope 2 (energy):        electricity, steam/heat
Scope 3 (value chain):   upstream inputs, land-use change, distribution, end of life
"""

import math
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ci_engine.utils.error_handling import CIValidationError


SCOPE1_FIELDS: Tuple[str, ...] = (
    "scope1_cultivation",
    "scope1_processing",
    "scope1_transport",
)
SCOPE2_FIELDS: Tuple[str, ...] = (
    "scope2_electricity",
    "scope2_steam_heat",
)
SCOPE3_FIELDS: Tuple[str, ...] = (
    "scope3_upstream_inputs",
    "scope3_land_use_change",
    "scope3_distribution",
    "scope3_end_of_life",
)
COMPONENT_FIELDS: Tuple[str, ...] = SCOPE1_FIELDS + SCOPE2_FIELDS + SCOPE3_FIELDS

COMPONENT_LABELS: Dict[str, str] = {
    "scope1_cultivation": "Scope 1 cultivation",
    "scope1_processing": "Scope 1 processing",
    "scope1_transport": "Scope 1 transport",
    "scope2_electricity": "Scope 2 electricity",
    "scope2_steam_heat": "Scope 2 steam/heat",
    "scope3_upstream_inputs": "Scope 3 upstream inputs",
    "scope3_land_use_change": "Scope 3 land use change",
    "scope3_distribution": "Scope 3 distribution",
    "scope3_end_of_life": "Scope 3 end of life",
}

# Tolerance used when checking that stored totals match their components
TOTAL_TOLERANCE = 1e-9


def validate_component_values(values: Mapping[str, Any]) -> List[str]:
    """
    Check raw component values.

    Returns one error message per missing, non-numeric, non-finite or
    negative component. An empty list means the values are usable.
    """
    errors = []
    for name in COMPONENT_FIELDS:
        label = COMPONENT_LABELS[name]
        value = values.get(name)
        if value is None:
            errors.append(f"{label} is required")
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            errors.append(f"{label} must be a number")
            continue
        if not math.isfinite(value):
            errors.append(f"{label} must be a finite number")
        elif value < 0:
            errors.append(f"{label} cannot be negative")
    return errors


def _sum(values) -> float:
    # Plain left-to-right addition so totals are reproducible bit for bit
    total = 0.0
    for value in values:
        total += value
    return total


@dataclass(frozen=True)
class EmissionComponents:
    """
    Immutable set of the nine emission components.

    Construction fails with CIValidationError if any value is negative,
    non-finite or not a number.
    """
    scope1_cultivation: float = 0.0
    scope1_processing: float = 0.0
    scope1_transport: float = 0.0
    scope2_electricity: float = 0.0
    scope2_steam_heat: float = 0.0
    scope3_upstream_inputs: float = 0.0
    scope3_land_use_change: float = 0.0
    scope3_distribution: float = 0.0
    scope3_end_of_life: float = 0.0

    def __post_init__(self):
        errors = validate_component_values(asdict(self))
        if errors:
            raise CIValidationError(errors)
        # Normalise ints to floats
        for f in fields(self):
            object.__setattr__(self, f.name, float(getattr(self, f.name)))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EmissionComponents":
        """Build from any mapping (request body, ORM row dict); all nine keys are required."""
        errors = validate_component_values(data)
        if errors:
            raise CIValidationError(errors)
        return cls(**{name: data[name] for name in COMPONENT_FIELDS})

    @classmethod
    def from_object(cls, obj: Any) -> "EmissionComponents":
        """Build from an object exposing the component attributes (e.g. a CIReport row)."""
        return cls.from_mapping({name: getattr(obj, name, None) for name in COMPONENT_FIELDS})

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in COMPONENT_FIELDS}

    def replace(self, **changes: float) -> "EmissionComponents":
        """Return a copy with some components changed (validated again)."""
        data = self.as_dict()
        unknown = set(changes) - set(COMPONENT_FIELDS)
        if unknown:
            raise CIValidationError([f"Unknown emission component: {name}" for name in sorted(unknown)])
        data.update(changes)
        return EmissionComponents.from_mapping(data)

    @property
    def has_emission_data(self) -> bool:
        """True if at least one component is non-zero."""
        return any(getattr(self, name) != 0 for name in COMPONENT_FIELDS)

    def scope_values(self, scope: int) -> Tuple[float, ...]:
        names = {1: SCOPE1_FIELDS, 2: SCOPE2_FIELDS, 3: SCOPE3_FIELDS}[scope]
        return tuple(getattr(self, name) for name in names)


@dataclass(frozen=True)
class EmissionTotals:
    """
    Per-scope totals and grand total for a component set.

    The totals must equal the sums of their components; a mismatch is
    rejected at construction time rather than stored.
    """
    components: EmissionComponents
    scope1_total: float
    scope2_total: float
    scope3_total: float
    total_ci_value: float

    def __post_init__(self):
        expected = (
            ("scope1_total", self.scope1_total, _sum(self.components.scope_values(1))),
            ("scope2_total", self.scope2_total, _sum(self.components.scope_values(2))),
            ("scope3_total", self.scope3_total, _sum(self.components.scope_values(3))),
            (
                "total_ci_value",
                self.total_ci_value,
                _sum((self.scope1_total, self.scope2_total, self.scope3_total)),
            ),
        )
        for name, actual, wanted in expected:
            if not math.isclose(actual, wanted, rel_tol=TOTAL_TOLERANCE, abs_tol=TOTAL_TOLERANCE):
                raise ValueError(f"{name}={actual} does not equal the sum of its parts ({wanted})")

    def as_dict(self) -> Dict[str, float]:
        return {
            "scope1_total": self.scope1_total,
            "scope2_total": self.scope2_total,
            "scope3_total": self.scope3_total,
            "total_ci_value": self.total_ci_value,
        }


class EmissionAggregator:
    """Pure, idempotent aggregation of emission components."""

    @staticmethod
    def scope1_total(components: EmissionComponents) -> float:
        return _sum(components.scope_values(1))

    @staticmethod
    def scope2_total(components: EmissionComponents) -> float:
        return _sum(components.scope_values(2))

    @staticmethod
    def scope3_total(components: EmissionComponents) -> float:
        return _sum(components.scope_values(3))

    @classmethod
    def aggregate(cls, components: EmissionComponents) -> EmissionTotals:
        """
        Aggregate a component set.

        Args:
            components: Validated emission components

        Returns:
            EmissionTotals with scope totals and the grand total CI value
        """
        scope1 = cls.scope1_total(components)
        scope2 = cls.scope2_total(components)
        scope3 = cls.scope3_total(components)
        return EmissionTotals(
            components=components,
            scope1_total=scope1,
            scope2_total=scope2,
            scope3_total=scope3,
            total_ci_value=_sum((scope1, scope2, scope3)),
        )


def aggregate_emissions(values: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> EmissionTotals:
    """
    Aggregate raw component values.

    Accepts a mapping and/or keyword arguments with the nine component
    names. Raises CIValidationError on missing, negative or non-finite values.
    """
    data = dict(values or {})
    data.update(kwargs)
    return EmissionAggregator.aggregate(EmissionComponents.from_mapping(data))
