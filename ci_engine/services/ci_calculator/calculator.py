"""
ABFI CI Engine - CI Calculator

Combines aggregation, rating, compliance and uncertainty into the full set of
derived fields stored on a report.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ci_engine.config import settings
from ci_engine.models.ci_enums import CIDataQuality, CIMethodology
from ci_engine.services.ci_calculator.aggregation import (
    COMPONENT_FIELDS,
    EmissionAggregator,
    EmissionComponents,
    EmissionTotals,
)
from ci_engine.services.ci_calculator.compliance import ComplianceEvaluator, ComplianceResult
from ci_engine.services.ci_calculator.rating import RatingClassifier
from ci_engine.services.ci_calculator.uncertainty import calculate_uncertainty


@dataclass(frozen=True)
class CICalculationResult:
    """All values derived from a component set."""
    totals: EmissionTotals
    ci_rating: str
    ci_score: float
    compliance: ComplianceResult
    uncertainty_range_low: float
    uncertainty_range_high: float
    warnings: List[str] = field(default_factory=list)

    @property
    def total_ci_value(self) -> float:
        return self.totals.total_ci_value

    @property
    def ghg_savings_percentage(self) -> float:
        return self.compliance.ghg_savings_percentage

    def derived_fields(self) -> Dict[str, Any]:
        """Column values persisted on the report row."""
        return {
            **self.totals.as_dict(),
            "ci_rating": self.ci_rating,
            "ci_score": self.ci_score,
            "ghg_savings_percentage": self.compliance.ghg_savings_percentage,
            "red_ii_compliant": self.compliance.red_ii_compliant,
            "rtfo_compliant": self.compliance.rtfo_compliant,
            "cfp_compliant": self.compliance.cfp_compliant,
            "uncertainty_range_low": self.uncertainty_range_low,
            "uncertainty_range_high": self.uncertainty_range_high,
        }


class CICalculator:
    """
    Carbon intensity calculation engine.

    Rating table, comparator baseline and scheme minimums are injected so
    they can be changed without touching the algorithms.
    """

    def __init__(
        self,
        classifier: RatingClassifier,
        evaluator: ComplianceEvaluator,
        max_total_emissions: Optional[float] = None,
    ):
        self.classifier = classifier
        self.evaluator = evaluator
        self.max_total_emissions = max_total_emissions

    @classmethod
    def from_settings(cls) -> "CICalculator":
        return cls(
            classifier=RatingClassifier.from_settings(),
            evaluator=ComplianceEvaluator.from_settings(),
            max_total_emissions=settings.ci_max_total_emissions,
        )

    def plausibility_warnings(self, components: EmissionComponents) -> List[str]:
        """Non-blocking warnings about suspicious input values."""
        warnings = []
        if self.max_total_emissions is not None:
            total = sum(abs(getattr(components, name)) for name in COMPONENT_FIELDS)
            if total > self.max_total_emissions:
                warnings.append("Total emissions seem unusually high. Please verify input values.")
        return warnings

    def calculate(
        self,
        components: EmissionComponents,
        methodology: Union[CIMethodology, str] = CIMethodology.RED_II,
        data_quality: Union[CIDataQuality, str] = CIDataQuality.PRIMARY_MEASURED,
    ) -> CICalculationResult:
        """Perform the full CI calculation for a component set."""
        totals = EmissionAggregator.aggregate(components)
        ci_value = totals.total_ci_value
        low, high = calculate_uncertainty(ci_value, data_quality, methodology)

        return CICalculationResult(
            totals=totals,
            ci_rating=self.classifier.classify(ci_value),
            ci_score=self.evaluator.ci_score(ci_value),
            compliance=self.evaluator.evaluate(ci_value),
            uncertainty_range_low=low,
            uncertainty_range_high=high,
            warnings=self.plausibility_warnings(components),
        )


def format_ci_value(ci_value: float) -> str:
    return f"{ci_value:.2f} gCO2e/MJ"


def format_ghg_savings(savings: float) -> str:
    return f"{savings:.1f}%"
