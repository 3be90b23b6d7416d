"""
ABFI CI Engine - Carbon Intensity Report Model

A supplier's carbon-intensity declaration for one feedstock and reporting
period, together with the values derived from it and its verification state.

Derived columns (totals, rating, savings, compliance flags, score and
uncertainty) are written only by CIReportService after recalculation from
the nine component columns. The status column is changed only through the
verification workflow.
"""

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    Float,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from ci_engine.models.base import BaseModel
from ci_engine.models.ci_enums import (
    CIDataQuality,
    CIMethodology,
    CIReportStatus,
    FeedstockCategory,
    VerificationLevel,
)


def _enum(enum_cls, name: str) -> Enum:
    # Persist the enum values ("under_review"), not the member names
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class CIReport(BaseModel):
    """Carbon intensity report."""

    __tablename__ = "ci_reports"
    __table_args__ = tuple(
        CheckConstraint(f"{name} >= 0", name=f"{name}_non_negative")
        for name in (
            "scope1_cultivation",
            "scope1_processing",
            "scope1_transport",
            "scope2_electricity",
            "scope2_steam_heat",
            "scope3_upstream_inputs",
            "scope3_land_use_change",
            "scope3_distribution",
            "scope3_end_of_life",
        )
    ) + (
        CheckConstraint(
            "reporting_period_start <= reporting_period_end",
            name="reporting_period_order",
        ),
    )

    # Human-readable identifier, e.g. CI-2026-1A2B3C4D
    report_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)

    # External references
    supplier_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    feedstock_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    feedstock_category: Mapped[Optional[FeedstockCategory]] = mapped_column(
        _enum(FeedstockCategory, "feedstockcategory"),
        nullable=True,
    )

    # Reporting period
    reporting_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    reporting_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    reference_year: Mapped[int] = mapped_column(Integer, nullable=False)

    # Methodology
    methodology: Mapped[CIMethodology] = mapped_column(
        _enum(CIMethodology, "cimethodology"),
        nullable=False,
    )
    methodology_version: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    data_quality_level: Mapped[CIDataQuality] = mapped_column(
        _enum(CIDataQuality, "cidataquality"),
        nullable=False,
    )

    # ===========================================
    # SCOPE COMPONENTS (gCO2e/MJ)
    # ===========================================

    scope1_cultivation: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    scope1_processing: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    scope1_transport: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    scope2_electricity: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    scope2_steam_heat: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    scope3_upstream_inputs: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    scope3_land_use_change: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    scope3_distribution: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    scope3_end_of_life: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # ===========================================
    # DERIVED VALUES
    # ===========================================

    scope1_total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    scope2_total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    scope3_total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_ci_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    ci_rating: Mapped[str] = mapped_column(String(4), nullable=False)
    ci_score: Mapped[float] = mapped_column(Float, nullable=False)
    ghg_savings_percentage: Mapped[float] = mapped_column(Float, nullable=False)

    red_ii_compliant: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rtfo_compliant: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cfp_compliant: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    uncertainty_range_low: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    uncertainty_range_high: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    calculation_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ===========================================
    # VERIFICATION
    # ===========================================

    status: Mapped[CIReportStatus] = mapped_column(
        _enum(CIReportStatus, "cireportstatus"),
        nullable=False,
        default=CIReportStatus.DRAFT,
        index=True,
    )
    verification_level: Mapped[Optional[VerificationLevel]] = mapped_column(
        _enum(VerificationLevel, "verificationlevel"),
        nullable=True,
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    auditor_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    assigned_auditor_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)

    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    verified_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    @property
    def is_editable(self) -> bool:
        return self.status == CIReportStatus.DRAFT

    @property
    def is_certifiable(self) -> bool:
        return self.status == CIReportStatus.VERIFIED

    def __repr__(self) -> str:
        return f"<CIReport(report_id={self.report_id}, status={self.status.value}, ci={self.total_ci_value})>"
