"""
ABFI CI Engine - Compliance Evaluator

GHG savings against the fossil fuel comparator and per-scheme compliance.

Formula: savings % = (comparator - CI) / comparator * 100

Each scheme has its own minimum savings and is evaluated on its own; passing
one scheme says nothing about another.
- RED II: 65% (installations from 2021)
- RTFO:   60%
- CFP:    50%
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from ci_engine.config import settings
from ci_engine.utils.error_handling import CIValidationError


@dataclass(frozen=True)
class ComplianceScheme:
    """A regulatory scheme and its minimum GHG savings percentage."""
    code: str
    minimum_savings: float


@dataclass(frozen=True)
class ComplianceResult:
    """GHG savings and one pass/fail flag per scheme."""
    ghg_savings_percentage: float
    flags: Dict[str, bool] = field(default_factory=dict)

    def is_compliant(self, scheme: str) -> bool:
        return self.flags[scheme]

    @property
    def red_ii_compliant(self) -> bool:
        return self.flags.get("red_ii", False)

    @property
    def rtfo_compliant(self) -> bool:
        return self.flags.get("rtfo", False)

    @property
    def cfp_compliant(self) -> bool:
        return self.flags.get("cfp", False)

    @property
    def compliant_schemes(self) -> List[str]:
        return [code for code, ok in self.flags.items() if ok]


class ComplianceEvaluator:
    """
    Evaluates a total CI value against the comparator baseline and the
    configured regulatory schemes.
    """

    def __init__(self, baseline: float, schemes: Mapping[str, float]):
        if not math.isfinite(baseline) or baseline <= 0:
            raise ValueError(f"Fossil fuel comparator must be a positive number, got {baseline!r}")
        self.baseline = float(baseline)
        self.schemes: List[ComplianceScheme] = [
            ComplianceScheme(code=code, minimum_savings=float(minimum))
            for code, minimum in schemes.items()
        ]

    @classmethod
    def from_settings(cls) -> "ComplianceEvaluator":
        return cls(settings.ci_fossil_fuel_comparator, settings.ci_compliance_schemes)

    def _check(self, total_ci_value: float) -> None:
        if isinstance(total_ci_value, bool) or not isinstance(total_ci_value, (int, float)) \
                or not math.isfinite(total_ci_value):
            raise CIValidationError([f"CI value must be a finite number, got {total_ci_value!r}"])

    def savings_percentage(self, total_ci_value: float) -> float:
        """GHG savings versus the comparator, rounded to 2 decimals."""
        self._check(total_ci_value)
        return round((self.baseline - total_ci_value) / self.baseline * 100, 2)

    def ci_score(self, total_ci_value: float) -> float:
        """0-100 score (100 at zero CI, 0 at or above the comparator), 1 decimal."""
        self._check(total_ci_value)
        raw = (self.baseline - total_ci_value) / self.baseline * 100
        return round(max(0.0, min(100.0, raw)), 1)

    def evaluate(self, total_ci_value: float) -> ComplianceResult:
        savings = self.savings_percentage(total_ci_value)
        return ComplianceResult(
            ghg_savings_percentage=savings,
            flags={scheme.code: savings >= scheme.minimum_savings for scheme in self.schemes},
        )

    def minimum_for(self, scheme: str) -> Optional[float]:
        for s in self.schemes:
            if s.code == scheme:
                return s.minimum_savings
        return None


def calculate_ghg_savings(total_ci_value: float, baseline: Optional[float] = None) -> float:
    """GHG savings percentage against the configured (or given) comparator."""
    evaluator = ComplianceEvaluator(
        baseline if baseline is not None else settings.ci_fossil_fuel_comparator,
        settings.ci_compliance_schemes,
    )
    return evaluator.savings_percentage(total_ci_value)
