"""
ABFI CI Engine - Schemas Package

Pydantic schemas for request/response validation.
"""

from ci_engine.schemas.ci_report import (
    # Requests
    EmissionComponentsInput,
    CIReportCreate,
    CIReportUpdate,
    VerifyRequest,
    CalculateRequest,
    # Responses
    CIAuditLogResponse,
    CIReportResponse,
    CIReportDetailResponse,
    CIReportListResponse,
    TransitionResponse,
    CalculationResponse,
    DefaultFactorsResponse,
)

__all__ = [
    "EmissionComponentsInput",
    "CIReportCreate",
    "CIReportUpdate",
    "VerifyRequest",
    "CalculateRequest",
    "CIAuditLogResponse",
    "CIReportResponse",
    "CIReportDetailResponse",
    "CIReportListResponse",
    "TransitionResponse",
    "CalculationResponse",
    "DefaultFactorsResponse",
]
