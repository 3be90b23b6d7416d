"""
ABFI CI Engine - CI Calculator Tests

Unit tests for aggregation, rating, compliance, default factors,
uncertainty and activity data conversion.
"""

import math

import pytest

from ci_engine.models.ci_enums import CIDataQuality, CIMethodology, FeedstockCategory
from ci_engine.services.ci_calculator import (
    CICalculator,
    ComplianceEvaluator,
    DefaultEmissionFactorProvider,
    EmissionAggregator,
    EmissionComponents,
    EmissionTotals,
    RatingClassifier,
    aggregate_emissions,
    calculate_electricity_emissions,
    calculate_ci_report,
    calculate_ci_with_defaults,
    calculate_ghg_savings,
    calculate_transport_emissions,
    calculate_uncertainty,
    classify_ci,
    format_ci_value,
    format_ghg_savings,
    grid_factor,
    validate_component_values,
)
from ci_engine.services.ci_calculator.rating import is_monotonic
from ci_engine.utils.error_handling import CIValidationError


# Scope totals 10 / 5 / 5, total 20
SCENARIO_COMPONENTS = {
    "scope1_cultivation": 5.0,
    "scope1_processing": 3.0,
    "scope1_transport": 2.0,
    "scope2_electricity": 4.0,
    "scope2_steam_heat": 1.0,
    "scope3_upstream_inputs": 2.0,
    "scope3_land_use_change": 1.0,
    "scope3_distribution": 1.0,
    "scope3_end_of_life": 1.0,
}


class TestEmissionAggregation:
    """Scope totals and grand total."""

    def test_reference_scenario_totals(self):
        totals = aggregate_emissions(SCENARIO_COMPONENTS)

        assert totals.scope1_total == 10.0
        assert totals.scope2_total == 5.0
        assert totals.scope3_total == 5.0
        assert totals.total_ci_value == 20.0

    def test_total_is_sum_of_scope_totals(self):
        values = {
            "scope1_cultivation": 12.5, "scope1_processing": 5.8, "scope1_transport": 2.3,
            "scope2_electricity": 3.2, "scope2_steam_heat": 2.1,
            "scope3_upstream_inputs": 4.5, "scope3_land_use_change": 8.0,
            "scope3_distribution": 2.5, "scope3_end_of_life": 0.0,
        }
        totals = aggregate_emissions(values)

        assert totals.scope1_total == pytest.approx(20.6)
        assert totals.scope2_total == pytest.approx(5.3)
        assert totals.scope3_total == pytest.approx(15.0)
        assert totals.total_ci_value == totals.scope1_total + totals.scope2_total + totals.scope3_total

    def test_all_zero_components(self):
        totals = aggregate_emissions({name: 0 for name in SCENARIO_COMPONENTS})
        assert totals.total_ci_value == 0.0

    def test_keyword_arguments_override_mapping(self):
        totals = aggregate_emissions(SCENARIO_COMPONENTS, scope3_end_of_life=3.0)
        assert totals.scope3_total == 7.0
        assert totals.total_ci_value == 22.0

    def test_aggregation_is_idempotent(self):
        components = EmissionComponents.from_mapping(SCENARIO_COMPONENTS)
        assert EmissionAggregator.aggregate(components) == EmissionAggregator.aggregate(components)

    def test_negative_component_rejected(self):
        values = dict(SCENARIO_COMPONENTS, scope1_transport=-1.0)

        with pytest.raises(CIValidationError) as exc_info:
            aggregate_emissions(values)

        assert exc_info.value.errors == ["Scope 1 transport cannot be negative"]
        assert exc_info.value.status_code == 422
        assert exc_info.value.code.value == "INVALID_EMISSION_INPUT"

    def test_every_invalid_component_is_reported(self):
        values = dict(
            SCENARIO_COMPONENTS,
            scope1_cultivation=-2.0,
            scope2_electricity=math.nan,
            scope3_distribution=math.inf,
        )

        with pytest.raises(CIValidationError) as exc_info:
            aggregate_emissions(values)

        assert exc_info.value.errors == [
            "Scope 1 cultivation cannot be negative",
            "Scope 2 electricity must be a finite number",
            "Scope 3 distribution must be a finite number",
        ]

    def test_missing_and_non_numeric_components(self):
        values = dict(SCENARIO_COMPONENTS)
        del values["scope2_steam_heat"]
        values["scope1_processing"] = "3.0"

        errors = validate_component_values(values)

        assert "Scope 1 processing must be a number" in errors
        assert "Scope 2 steam/heat is required" in errors

    def test_booleans_are_not_numbers(self):
        errors = validate_component_values(dict(SCENARIO_COMPONENTS, scope1_cultivation=True))
        assert errors == ["Scope 1 cultivation must be a number"]

    def test_components_are_immutable(self):
        components = EmissionComponents.from_mapping(SCENARIO_COMPONENTS)
        with pytest.raises(Exception):
            components.scope1_cultivation = 99.0

    def test_replace_validates_again(self):
        components = EmissionComponents.from_mapping(SCENARIO_COMPONENTS)

        assert components.replace(scope1_cultivation=6.0).scope1_cultivation == 6.0
        with pytest.raises(CIValidationError):
            components.replace(scope1_cultivation=-6.0)
        with pytest.raises(CIValidationError):
            components.replace(scope4_magic=1.0)

    def test_totals_must_match_components(self):
        components = EmissionComponents.from_mapping(SCENARIO_COMPONENTS)

        with pytest.raises(ValueError):
            EmissionTotals(
                components=components,
                scope1_total=10.0,
                scope2_total=5.0,
                scope3_total=5.0,
                total_ci_value=21.0,
            )

    def test_has_emission_data(self):
        assert EmissionComponents.from_mapping(SCENARIO_COMPONENTS).has_emission_data
        assert not EmissionComponents().has_emission_data


class TestRatingClassifier:
    """Letter ratings from the threshold table."""

    @pytest.mark.parametrize("ci_value,expected", [
        (0.0, "A+"),
        (10.0, "A+"),
        (10.01, "A"),
        (20.0, "A"),
        (25.0, "B+"),
        (40.0, "B"),
        (45.0, "C+"),
        (60.0, "C"),
        (70.0, "D"),
        (70.01, "F"),
        (250.0, "F"),
    ])
    def test_default_table(self, ci_value, expected):
        assert classify_ci(ci_value) == expected

    def test_reference_scenario_rating(self):
        assert classify_ci(20.0) == "A"

    def test_lower_ci_never_rated_worse(self):
        classifier = RatingClassifier.from_settings()
        values = [i * 0.25 for i in range(0, 400)]

        assert is_monotonic(classifier, values)
        for a, b in zip(values, values[1:]):
            assert classifier.compare(classifier.classify(a), classifier.classify(b)) <= 0

    def test_custom_table(self):
        classifier = RatingClassifier([("GOOD", 30.0), ("OK", 60.0)], worst_rating="BAD")

        assert classifier.classify(30.0) == "GOOD"
        assert classifier.classify(59.9) == "OK"
        assert classifier.classify(61.0) == "BAD"
        assert classifier.ratings == ["GOOD", "OK", "BAD"]

    def test_non_ascending_table_rejected(self):
        with pytest.raises(ValueError):
            RatingClassifier([("A", 20.0), ("B", 10.0)])

    def test_duplicate_bound_rejected(self):
        with pytest.raises(ValueError):
            RatingClassifier([("A", 20.0), ("B", 20.0)])

    def test_non_finite_ci_rejected(self):
        with pytest.raises(CIValidationError):
            RatingClassifier.from_settings().classify(math.nan)

    def test_bounds_for(self):
        classifier = RatingClassifier.from_settings()

        assert classifier.bounds_for("A+") == (None, 10.0)
        assert classifier.bounds_for("B") == (30.0, 40.0)
        assert classifier.bounds_for("F") == (70.0, None)


class TestComplianceEvaluator:
    """GHG savings and scheme flags."""

    def test_reference_scenario_savings_at_89(self):
        evaluator = ComplianceEvaluator(89.0, {"red_ii": 65.0, "rtfo": 60.0, "cfp": 50.0})
        result = evaluator.evaluate(20.0)

        assert result.ghg_savings_percentage == 77.53
        assert result.red_ii_compliant
        assert result.rtfo_compliant
        assert result.cfp_compliant

    def test_savings_zero_at_baseline(self):
        assert calculate_ghg_savings(94.0) == 0.0
        assert calculate_ghg_savings(89.0, baseline=89.0) == 0.0

    def test_savings_hundred_at_zero_ci(self):
        assert calculate_ghg_savings(0.0) == 100.0

    def test_savings_negative_above_baseline(self):
        assert calculate_ghg_savings(188.0) == -100.0

    @pytest.mark.parametrize("ci_value,red_ii,rtfo,cfp", [
        (30.0, True, True, True),     # 68.09%
        (35.0, False, True, True),    # 62.77%
        (45.0, False, False, True),   # 52.13%
        (50.0, False, False, False),  # 46.81%
    ])
    def test_schemes_evaluated_independently(self, ci_value, red_ii, rtfo, cfp):
        result = ComplianceEvaluator.from_settings().evaluate(ci_value)

        assert result.red_ii_compliant is red_ii
        assert result.rtfo_compliant is rtfo
        assert result.cfp_compliant is cfp

    def test_minimum_is_inclusive(self):
        evaluator = ComplianceEvaluator(100.0, {"red_ii": 65.0})
        assert evaluator.evaluate(35.0).red_ii_compliant

    def test_ci_score_is_clamped(self):
        evaluator = ComplianceEvaluator.from_settings()

        assert evaluator.ci_score(0.0) == 100.0
        assert evaluator.ci_score(47.0) == 50.0
        assert evaluator.ci_score(94.0) == 0.0
        assert evaluator.ci_score(150.0) == 0.0

    def test_invalid_baseline_rejected(self):
        with pytest.raises(ValueError):
            ComplianceEvaluator(0.0, {})

    def test_compliant_schemes(self):
        result = ComplianceEvaluator.from_settings().evaluate(45.0)
        assert result.compliant_schemes == ["cfp"]


class TestDefaultEmissionFactors:
    """Category defaults and data-quality scaling."""

    def test_factors_for_category(self):
        factors = DefaultEmissionFactorProvider().get_factors(FeedstockCategory.UCO)

        assert factors.scope1_cultivation == 0.0
        assert factors.scope1_processing == 3.5
        assert factors.scope3_land_use_change == 0.0

    def test_defaults_scaled_by_data_quality(self):
        components = DefaultEmissionFactorProvider().apply_defaults(
            {}, FeedstockCategory.UCO, CIDataQuality.DEFAULT
        )

        assert components.scope1_processing == pytest.approx(3.5 * 1.3)
        assert components.scope3_distribution == pytest.approx(1.5 * 1.3)
        assert components.scope3_end_of_life == 0.0

    def test_supplied_values_kept(self):
        components = DefaultEmissionFactorProvider().apply_defaults(
            {"scope1_processing": 2.0}, FeedstockCategory.UCO, CIDataQuality.INDUSTRY_AVERAGE
        )

        assert components.scope1_processing == 2.0
        assert components.scope1_transport == pytest.approx(1.2 * 1.15)

    def test_unknown_category_uses_other(self):
        provider = DefaultEmissionFactorProvider()
        assert provider.get_factors("unobtainium") == provider.get_factors(FeedstockCategory.OTHER)

    def test_all_defaults_non_negative(self):
        provider = DefaultEmissionFactorProvider()
        for category in FeedstockCategory:
            components = provider.get_factors(category)
            assert all(value >= 0 for value in components.as_dict().values())


class TestUncertainty:
    """Uncertainty range around the CI value."""

    def test_primary_data_has_no_spread(self):
        assert calculate_uncertainty(20.0, CIDataQuality.PRIMARY_MEASURED, CIMethodology.RED_II) == (20.0, 20.0)

    def test_default_data_spread(self):
        assert calculate_uncertainty(20.0, CIDataQuality.DEFAULT, CIMethodology.RED_II) == (14.0, 26.0)

    def test_methodology_adds_uncertainty(self):
        low, high = calculate_uncertainty(20.0, CIDataQuality.PRIMARY_MEASURED, CIMethodology.ISO_14064)
        assert (low, high) == (18.0, 22.0)

    def test_low_end_clamped_at_zero(self):
        low, _ = calculate_uncertainty(0.0, CIDataQuality.DEFAULT, CIMethodology.ISO_14064)
        assert low == 0.0


class TestCICalculator:
    """Full calculation."""

    def test_reference_scenario(self, calculator_89):
        result = calculator_89.calculate(EmissionComponents.from_mapping(SCENARIO_COMPONENTS))

        assert result.total_ci_value == 20.0
        assert result.ci_rating == "A"
        assert result.ghg_savings_percentage == 77.53
        assert result.warnings == []

        fields = result.derived_fields()
        assert fields["scope1_total"] == 10.0
        assert fields["red_ii_compliant"] is True
        assert fields["uncertainty_range_low"] == 20.0

    def test_default_comparator(self):
        result = calculate_ci_report(SCENARIO_COMPONENTS)

        assert result.ghg_savings_percentage == 78.72
        assert result.ci_score == 78.7

    def test_plausibility_warning(self):
        result = calculate_ci_report({name: 30.0 for name in SCENARIO_COMPONENTS})

        assert result.total_ci_value == 270.0
        assert result.ci_rating == "F"
        assert result.warnings == ["Total emissions seem unusually high. Please verify input values."]

    def test_no_warning_without_threshold(self):
        calculator = CICalculator(
            RatingClassifier.from_settings(), ComplianceEvaluator.from_settings()
        )
        result = calculator.calculate(EmissionComponents.from_mapping({n: 30.0 for n in SCENARIO_COMPONENTS}))
        assert result.warnings == []

    def test_with_defaults(self):
        result = calculate_ci_with_defaults({}, FeedstockCategory.UCO)

        # UCO defaults sum to 8.8, scaled by 1.3 (end of life is 0)
        assert result.total_ci_value == pytest.approx(8.8 * 1.3)
        assert result.ci_rating == "A"

    def test_formatting(self):
        assert format_ci_value(20.0) == "20.00 gCO2e/MJ"
        assert format_ghg_savings(77.53) == "77.5%"


class TestActivityData:
    """Electricity and freight activity data converted to gCO2e/MJ."""

    def test_electricity_by_state(self):
        # 1000 kWh * 0.96 kgCO2e/kWh * 1000 / 50000 MJ
        assert calculate_electricity_emissions(1000, 50000, "VIC") == pytest.approx(19.2)

    def test_electricity_defaults_to_national_grid(self):
        assert calculate_electricity_emissions(1000, 100000) == pytest.approx(7.9)
        assert grid_factor("atlantis") == grid_factor("national") == 0.79
        assert grid_factor("tas") == 0.15

    def test_transport_by_mode(self):
        # 62 gCO2e/t-km * 25 t * 200 km / 10000 MJ
        assert calculate_transport_emissions(25, 200, 10000) == pytest.approx(31.0)
        assert calculate_transport_emissions(25, 200, 10000, "pipeline") == pytest.approx(2.5)

    def test_unknown_transport_mode(self):
        with pytest.raises(CIValidationError) as exc_info:
            calculate_transport_emissions(1, 1, 1000, "hovercraft")
        assert "Unknown transport mode: hovercraft" in exc_info.value.errors[0]

    @pytest.mark.parametrize("output_mj", [0, -10, math.inf])
    def test_output_must_be_positive(self, output_mj):
        with pytest.raises(CIValidationError):
            calculate_electricity_emissions(100, output_mj)
        with pytest.raises(CIValidationError):
            calculate_transport_emissions(1, 1, output_mj)

    def test_negative_quantities_rejected(self):
        with pytest.raises(CIValidationError) as exc_info:
            calculate_transport_emissions(-1, -5, 1000)
        assert len(exc_info.value.errors) == 2

    def test_result_feeds_the_calculator(self):
        components = dict(SCENARIO_COMPONENTS)
        components["scope2_electricity"] = calculate_electricity_emissions(1000, 250000, "NSW")

        result = calculate_ci_report(components)

        assert result.scope2_total == pytest.approx(3.16 + 1.0)
