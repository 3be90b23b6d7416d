"""
ABFI CI Engine - CI Report Schemas

Pydantic schemas for CI report request/response validation.

Emission components are not range-checked here: negative or non-finite
values are reported by the domain model as INVALID_EMISSION_INPUT with one
message per offending component.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ci_engine.models.ci_enums import (
    CIAuditAction,
    CIDataQuality,
    CIMethodology,
    CIReportStatus,
    FeedstockCategory,
    VerificationLevel,
)


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class EmissionComponentsInput(BaseModel):
    """The nine scope components in gCO2e/MJ. Omitted values are 0 unless defaults are applied."""
    scope1_cultivation: Optional[float] = None
    scope1_processing: Optional[float] = None
    scope1_transport: Optional[float] = None
    scope2_electricity: Optional[float] = None
    scope2_steam_heat: Optional[float] = None
    scope3_upstream_inputs: Optional[float] = None
    scope3_land_use_change: Optional[float] = None
    scope3_distribution: Optional[float] = None
    scope3_end_of_life: Optional[float] = None

    model_config = ConfigDict(frozen=True)

    def component_values(self) -> Dict[str, Optional[float]]:
        return {
            name: getattr(self, name)
            for name in EmissionComponentsInput.model_fields
        }


class CIReportCreate(EmissionComponentsInput):
    """Schema for creating a CI report."""
    supplier_id: UUID
    feedstock_id: UUID
    feedstock_category: Optional[FeedstockCategory] = None
    reporting_period_start: date
    reporting_period_end: date
    reference_year: Optional[int] = Field(None, ge=1990, le=2100)
    methodology: CIMethodology = CIMethodology.RED_II
    methodology_version: Optional[str] = Field(None, max_length=20)
    data_quality_level: CIDataQuality = CIDataQuality.DEFAULT
    calculation_notes: Optional[str] = Field(None, max_length=5000)

    apply_defaults: bool = Field(False, description="Fill omitted components from the feedstock category defaults")
    submit: bool = Field(False, description="Submit the report for verification immediately")

    model_config = ConfigDict(frozen=True)


class CIReportUpdate(BaseModel):
    """Schema for editing a draft CI report. Only the fields sent are changed."""
    feedstock_category: Optional[FeedstockCategory] = None
    reporting_period_start: Optional[date] = None
    reporting_period_end: Optional[date] = None
    reference_year: Optional[int] = Field(None, ge=1990, le=2100)
    methodology: Optional[CIMethodology] = None
    methodology_version: Optional[str] = Field(None, max_length=20)
    data_quality_level: Optional[CIDataQuality] = None
    calculation_notes: Optional[str] = Field(None, max_length=5000)

    scope1_cultivation: Optional[float] = None
    scope1_processing: Optional[float] = None
    scope1_transport: Optional[float] = None
    scope2_electricity: Optional[float] = None
    scope2_steam_heat: Optional[float] = None
    scope3_upstream_inputs: Optional[float] = None
    scope3_land_use_change: Optional[float] = None
    scope3_distribution: Optional[float] = None
    scope3_end_of_life: Optional[float] = None

    model_config = ConfigDict(frozen=True)


class VerifyRequest(BaseModel):
    """Auditor action on a submitted or under-review report."""
    action: Literal["start_review", "approve", "reject", "request_revision"]
    notes: Optional[str] = Field(None, max_length=5000)
    rejection_reason: Optional[str] = Field(None, max_length=5000)
    expiry_days: Optional[int] = Field(None, ge=1, le=3650, description="Certificate validity on approval")

    model_config = ConfigDict(frozen=True)


class CalculateRequest(EmissionComponentsInput):
    """Stateless preview of the derived fields for a component set."""
    methodology: CIMethodology = CIMethodology.RED_II
    data_quality_level: CIDataQuality = CIDataQuality.PRIMARY_MEASURED
    feedstock_category: Optional[FeedstockCategory] = None
    apply_defaults: bool = False

    model_config = ConfigDict(frozen=True)


class ElectricityActivity(BaseModel):
    """Grid electricity consumed over the reporting period."""
    kwh: float = Field(..., ge=0)
    state: str = Field("national", max_length=10, description="Australian state or territory code")


class TransportActivity(BaseModel):
    """One freight leg of the feedstock supply chain."""
    tonnes: float = Field(..., ge=0)
    distance_km: float = Field(..., ge=0)
    mode: str = "road_truck"


class ActivityDataRequest(BaseModel):
    """Activity data to convert into scope2_electricity and scope1_transport (gCO2e/MJ)."""
    output_mj: float = Field(..., description="Energy content of the product over the same period")
    electricity: Optional[ElectricityActivity] = None
    transport: List[TransportActivity] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class CIAuditLogResponse(BaseModel):
    """One workflow transition."""
    id: UUID
    report_id: UUID
    sequence: int
    action: CIAuditAction
    previous_status: CIReportStatus
    new_status: CIReportStatus
    user_id: Optional[UUID] = None
    notes: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="extra_data")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CIReportResponse(BaseModel):
    """Schema for CI report response."""
    id: UUID
    report_id: str
    supplier_id: UUID
    feedstock_id: UUID
    feedstock_category: Optional[FeedstockCategory] = None
    reporting_period_start: date
    reporting_period_end: date
    reference_year: int
    methodology: CIMethodology
    methodology_version: Optional[str] = None
    data_quality_level: CIDataQuality

    scope1_cultivation: float
    scope1_processing: float
    scope1_transport: float
    scope2_electricity: float
    scope2_steam_heat: float
    scope3_upstream_inputs: float
    scope3_land_use_change: float
    scope3_distribution: float
    scope3_end_of_life: float

    scope1_total: float
    scope2_total: float
    scope3_total: float
    total_ci_value: float
    ci_rating: str
    ci_score: float
    ghg_savings_percentage: float
    red_ii_compliant: bool
    rtfo_compliant: bool
    cfp_compliant: bool
    uncertainty_range_low: Optional[float] = None
    uncertainty_range_high: Optional[float] = None
    calculation_notes: Optional[str] = None

    status: CIReportStatus
    verification_level: Optional[VerificationLevel] = None
    rejection_reason: Optional[str] = None
    auditor_notes: Optional[str] = None
    assigned_auditor_id: Optional[UUID] = None
    submitted_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    verified_by_id: Optional[UUID] = None
    expiry_date: Optional[date] = None
    created_by_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    warnings: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class CIReportDetailResponse(CIReportResponse):
    """Report with its ordered audit history."""
    audit_logs: List[CIAuditLogResponse] = Field(default_factory=list)
    allowed_actions: List[str] = Field(default_factory=list)


class CIReportListResponse(BaseModel):
    items: List[CIReportResponse]
    total: int
    skip: int
    limit: int


class TransitionResponse(BaseModel):
    """Result of a workflow action: the updated report and the new audit entry."""
    report: CIReportResponse
    audit_entry: CIAuditLogResponse
    message: str


class CalculationResponse(BaseModel):
    """Derived CI fields for a component set."""
    components: Dict[str, float]
    scope1_total: float
    scope2_total: float
    scope3_total: float
    total_ci_value: float
    ci_rating: str
    ci_score: float
    ghg_savings_percentage: float
    red_ii_compliant: bool
    rtfo_compliant: bool
    cfp_compliant: bool
    uncertainty_range_low: float
    uncertainty_range_high: float
    warnings: List[str] = Field(default_factory=list)


class DefaultFactorsResponse(BaseModel):
    category: FeedstockCategory
    data_quality_level: CIDataQuality
    uncertainty_factor: float
    factors: Dict[str, float]
    total_ci_value: float

    @field_validator("factors")
    @classmethod
    def round_factors(cls, v: Dict[str, float]) -> Dict[str, float]:
        return {name: round(value, 4) for name, value in v.items()}


class ActivityDataResponse(BaseModel):
    """Component values derived from activity data, ready for a report."""
    scope2_electricity: Optional[float] = None
    scope1_transport: Optional[float] = None
