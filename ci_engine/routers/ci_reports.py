"""
ABFI CI Engine - CI Reports Router

API endpoints for carbon intensity reports, the verification workflow,
audit history and certificates.
"""

import uuid
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ci_engine.dependencies import Actor, get_ci_report_service, get_current_actor, require_verifier
from ci_engine.models.ci_enums import (
    ActorRole,
    CIDataQuality,
    CIReportStatus,
    FeedstockCategory,
)
from ci_engine.schemas.ci_report import (
    ActivityDataRequest,
    ActivityDataResponse,
    CalculateRequest,
    CalculationResponse,
    CIAuditLogResponse,
    CIReportCreate,
    CIReportDetailResponse,
    CIReportListResponse,
    CIReportResponse,
    CIReportUpdate,
    DefaultFactorsResponse,
    TransitionResponse,
    VerifyRequest,
)
from ci_engine.services.certificate_service import CertificateService
from ci_engine.services.ci_calculator import (
    DATA_QUALITY_UNCERTAINTY,
    EmissionAggregator,
    EmissionComponents,
    default_factor_provider,
    calculate_electricity_emissions,
    calculate_transport_emissions,
    get_ci_calculator,
)
from ci_engine.services.ci_report_service import CIReportService
from ci_engine.services.verification_workflow import allowed_actions, parse_action
from ci_engine.utils.error_handling import AuthorizationException

router = APIRouter(prefix="/ci-reports", tags=["CI Reports"])


TRANSITION_MESSAGES = {
    "submit": "Report submitted for verification",
    "start_review": "Review started",
    "approve": "Report approved",
    "reject": "Report rejected",
    "request_revision": "Report returned for revision",
}


def _require_supplier(actor: Actor) -> None:
    if actor.role not in (ActorRole.SUPPLIER, ActorRole.ADMIN):
        raise AuthorizationException(
            message="Not authorized - supplier or admin role required",
            required_role="supplier",
        )


# ===========================================
# CALCULATION
# ===========================================

@router.post("/calculate", response_model=CalculationResponse)
async def calculate_preview(
    request: CalculateRequest,
    actor: Actor = Depends(get_current_actor),
):
    """
    Calculate derived CI fields without saving anything.

    Omitted components are 0, or the category defaults when apply_defaults is set.
    """
    values = request.component_values()
    if request.apply_defaults:
        components = default_factor_provider.apply_defaults(
            values, request.feedstock_category, request.data_quality_level
        )
    else:
        components = EmissionComponents.from_mapping(
            {name: 0.0 if value is None else value for name, value in values.items()}
        )

    result = get_ci_calculator().calculate(
        components, request.methodology, request.data_quality_level
    )
    return CalculationResponse(
        components=components.as_dict(),
        warnings=result.warnings,
        **result.derived_fields(),
    )


@router.post("/calculate/activity", response_model=ActivityDataResponse)
async def calculate_activity_emissions(
    request: ActivityDataRequest,
    actor: Actor = Depends(get_current_actor),
):
    """
    Convert activity data into component values.

    Grid electricity gives scope2_electricity. Freight legs are summed into
    scope1_transport.
    """
    response = ActivityDataResponse()
    if request.electricity is not None:
        response.scope2_electricity = calculate_electricity_emissions(
            request.electricity.kwh, request.output_mj, request.electricity.state
        )
    if request.transport:
        response.scope1_transport = sum(
            calculate_transport_emissions(leg.tonnes, leg.distance_km, request.output_mj, leg.mode)
            for leg in request.transport
        )
    return response


@router.get("/default-factors/{category}", response_model=DefaultFactorsResponse)
async def get_default_factors(
    category: FeedstockCategory,
    data_quality_level: CIDataQuality = Query(CIDataQuality.DEFAULT),
    actor: Actor = Depends(get_current_actor),
):
    """Default emission factors for a feedstock category, scaled for the data quality level."""
    components = default_factor_provider.apply_defaults({}, category, data_quality_level)
    return DefaultFactorsResponse(
        category=category,
        data_quality_level=data_quality_level,
        uncertainty_factor=DATA_QUALITY_UNCERTAINTY.get(data_quality_level, 1.0),
        factors=components.as_dict(),
        total_ci_value=EmissionAggregator.aggregate(components).total_ci_value,
    )


# ===========================================
# REPORTS
# ===========================================

@router.post("", response_model=CIReportResponse, status_code=status.HTTP_201_CREATED)
async def create_report(
    request: CIReportCreate,
    actor: Actor = Depends(get_current_actor),
    service: CIReportService = Depends(get_ci_report_service),
):
    """
    Create a draft CI report.

    Derived fields are calculated from the components. With submit=true the
    report is submitted in the same transaction.
    """
    _require_supplier(actor)
    report, result = await service.create_report(
        supplier_id=request.supplier_id,
        feedstock_id=request.feedstock_id,
        reporting_period_start=request.reporting_period_start,
        reporting_period_end=request.reporting_period_end,
        components=request.component_values(),
        methodology=request.methodology,
        data_quality_level=request.data_quality_level,
        feedstock_category=request.feedstock_category,
        methodology_version=request.methodology_version,
        reference_year=request.reference_year,
        calculation_notes=request.calculation_notes,
        apply_defaults=request.apply_defaults,
        submit=request.submit,
        actor_id=actor.id,
    )
    return CIReportResponse.model_validate(report).model_copy(update={"warnings": result.warnings})


@router.get("", response_model=CIReportListResponse)
async def list_reports(
    supplier_id: Optional[uuid.UUID] = Query(None, description="Filter by supplier"),
    report_status: Optional[CIReportStatus] = Query(None, alias="status", description="Filter by status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_current_actor),
    service: CIReportService = Depends(get_ci_report_service),
):
    """List CI reports visible to the actor, newest first."""
    reports, total = await service.list_reports(
        supplier_id=supplier_id,
        status=report_status,
        skip=skip,
        limit=limit,
        actor_id=actor.id,
        role=actor.role,
    )
    return CIReportListResponse(
        items=[CIReportResponse.model_validate(r) for r in reports],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{report_id}", response_model=CIReportDetailResponse)
async def get_report(
    report_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    service: CIReportService = Depends(get_ci_report_service),
):
    """Full report: components, totals, rating, compliance flags and ordered audit history."""
    report = await service.get_report(report_id, actor.id, actor.role)
    logs = await service.get_audit_logs(report_id)
    return CIReportDetailResponse.model_validate(report).model_copy(update={
        "audit_logs": [CIAuditLogResponse.model_validate(log) for log in logs],
        "allowed_actions": list(allowed_actions(report.status)),
    })


@router.patch("/{report_id}", response_model=CIReportResponse)
async def update_report(
    report_id: uuid.UUID,
    request: CIReportUpdate,
    actor: Actor = Depends(get_current_actor),
    service: CIReportService = Depends(get_ci_report_service),
):
    """Edit a draft report. Derived fields are recalculated."""
    _require_supplier(actor)
    report, result = await service.update_draft(
        report_id,
        request.model_dump(exclude_unset=True),
        actor_id=actor.id,
        role=actor.role,
    )
    return CIReportResponse.model_validate(report).model_copy(update={"warnings": result.warnings})


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(
    report_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    service: CIReportService = Depends(get_ci_report_service),
):
    """Delete a draft report that has never been submitted."""
    _require_supplier(actor)
    await service.delete_draft(report_id, actor_id=actor.id, role=actor.role)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ===========================================
# WORKFLOW
# ===========================================

@router.post("/{report_id}/submit", response_model=TransitionResponse)
async def submit_report(
    report_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    service: CIReportService = Depends(get_ci_report_service),
):
    """Submit a draft report for verification."""
    _require_supplier(actor)
    report, entry = await service.submit(report_id, actor.id, role=actor.role)
    return TransitionResponse(
        report=CIReportResponse.model_validate(report),
        audit_entry=CIAuditLogResponse.model_validate(entry),
        message=TRANSITION_MESSAGES["submit"],
    )


@router.post("/{report_id}/verify", response_model=TransitionResponse)
async def verify_report(
    report_id: uuid.UUID,
    request: VerifyRequest,
    actor: Actor = Depends(require_verifier),
    service: CIReportService = Depends(get_ci_report_service),
):
    """
    Auditor action on a report.

    - start_review: submitted -> under_review, assigns the auditor
    - approve: under_review -> verified, sets the certificate expiry
    - reject: under_review -> rejected, requires rejection_reason
    - request_revision: under_review -> draft, requires notes
    """
    action = parse_action(request.action, notes=request.notes, rejection_reason=request.rejection_reason)
    report, entry = await service.verify(report_id, action, actor.id, expiry_days=request.expiry_days)
    return TransitionResponse(
        report=CIReportResponse.model_validate(report),
        audit_entry=CIAuditLogResponse.model_validate(entry),
        message=TRANSITION_MESSAGES[request.action],
    )


@router.get("/{report_id}/audit-logs", response_model=List[CIAuditLogResponse])
async def get_audit_logs(
    report_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    service: CIReportService = Depends(get_ci_report_service),
):
    """Audit history of a report, oldest first."""
    logs = await service.get_audit_logs(report_id, actor.id, actor.role)
    return [CIAuditLogResponse.model_validate(log) for log in logs]


# ===========================================
# CERTIFICATE
# ===========================================

@router.get("/{report_id}/certificate")
async def get_certificate(
    report_id: uuid.UUID,
    format: Literal["pdf", "json"] = Query("pdf"),
    actor: Actor = Depends(get_current_actor),
    service: CIReportService = Depends(get_ci_report_service),
):
    """Certificate for a verified report, as PDF or JSON."""
    report = await service.get_report(report_id, actor.id, actor.role)
    certificates = CertificateService()

    if format == "json":
        return certificates.build_certificate_data(report)

    pdf_bytes = certificates.generate_pdf(report)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="CI-Certificate-{report.report_id}.pdf"'},
    )
