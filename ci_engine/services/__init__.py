"""
ABFI CI Engine - Services Package

Business logic services.
"""

from ci_engine.services.ci_report_service import CIReportService
from ci_engine.services.certificate_service import CertificateService
from ci_engine.services.verification_workflow import (
    Approve,
    Reject,
    RequestRevision,
    StartReview,
    Submit,
    apply_transition,
    parse_action,
)

__all__ = [
    "CIReportService",
    "CertificateService",
    "Approve",
    "Reject",
    "RequestRevision",
    "StartReview",
    "Submit",
    "apply_transition",
    "parse_action",
]
