"""
ABFI CI Engine - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from ci_engine.models.base import BaseModel, TimestampMixin, utcnow
from ci_engine.models.ci_enums import (
    ActorRole,
    CIAuditAction,
    CIDataQuality,
    CIMethodology,
    CIReportStatus,
    FeedstockCategory,
    VerificationLevel,
)
from ci_engine.models.ci_report import CIReport
from ci_engine.models.ci_audit import AuditLogImmutableError, CIAuditLog

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "utcnow",
    "ActorRole",
    "CIAuditAction",
    "CIDataQuality",
    "CIMethodology",
    "CIReportStatus",
    "FeedstockCategory",
    "VerificationLevel",
    "CIReport",
    "AuditLogImmutableError",
    "CIAuditLog",
]
