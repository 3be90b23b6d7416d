"""
ABFI CI Engine - CI Audit Log Model

Immutable record of every verification workflow transition.

- One row per transition: action, previous and new status, actor, notes
- Rows are numbered per report (sequence 1, 2, ...); the unique
  (report_id, sequence) constraint makes the store enforce the ordering
- Rows are never updated or deleted
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    event,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from ci_engine.database import Base
from ci_engine.models.base import utcnow
from ci_engine.models.ci_enums import CIAuditAction, CIReportStatus
from ci_engine.models.ci_report import _enum


class AuditLogImmutableError(Exception):
    """Raised when code tries to modify or delete an audit log row."""


class CIAuditLog(Base):
    """
    Append-only audit log of CI report workflow transitions.

    This table should have no UPDATE or DELETE permissions.
    """

    __tablename__ = "ci_audit_logs"
    __table_args__ = (
        UniqueConstraint("report_id", "sequence", name="uq_ci_audit_logs_report_sequence"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    report_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("ci_reports.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # 1-based position in the report's history
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    action: Mapped[CIAuditAction] = mapped_column(
        _enum(CIAuditAction, "ciauditaction"),
        nullable=False,
        index=True,
    )
    previous_status: Mapped[CIReportStatus] = mapped_column(
        _enum(CIReportStatus, "cireportstatus"),
        nullable=False,
    )
    new_status: Mapped[CIReportStatus] = mapped_column(
        _enum(CIReportStatus, "cireportstatus"),
        nullable=False,
    )

    # Acting supplier or auditor
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)

    # Rejection reason or revision notes, surfaced verbatim to the supplier
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    extra_data: Mapped[Optional[dict]] = mapped_column(
        "metadata",
        JSON().with_variant(JSONB, "postgresql"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<CIAuditLog(report_id={self.report_id}, seq={self.sequence}, "
            f"action={self.action.value}, {self.previous_status.value}->{self.new_status.value})>"
        )


def _reject_mutation(mapper, connection, target):
    raise AuditLogImmutableError(
        f"CI audit log entries are append-only (entry {target.id} of report {target.report_id})"
    )


event.listen(CIAuditLog, "before_update", _reject_mutation)
event.listen(CIAuditLog, "before_delete", _reject_mutation)
