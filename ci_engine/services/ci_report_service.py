"""
ABFI CI Engine - CI Report Service

Persistence and workflow orchestration for carbon intensity reports.

Every workflow transition is one database transaction:
1. Compare-and-swap update of the report (WHERE status = expected status)
2. Insert of exactly one audit log row with the next sequence number
Both commit or neither does. An update that matches no row means another
request changed the report first; the caller gets InvalidTransitionException.
"""

import logging
import math
import uuid
from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from sqlalchemy import delete, exists, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from ci_engine.config import settings
from ci_engine.models.base import utcnow
from ci_engine.models.ci_audit import CIAuditLog
from ci_engine.models.ci_enums import (
    ActorRole,
    CIDataQuality,
    CIMethodology,
    CIReportStatus,
    FeedstockCategory,
    VerificationLevel,
)
from ci_engine.models.ci_report import CIReport
from ci_engine.services.ci_calculator import (
    COMPONENT_FIELDS,
    CICalculationResult,
    CICalculator,
    DefaultEmissionFactorProvider,
    EmissionComponents,
    default_factor_provider,
    get_ci_calculator,
)
from ci_engine.services.verification_workflow import (
    Approve,
    AuditLogEntry,
    Reject,
    RequestRevision,
    StartReview,
    Submit,
    TransitionErr,
    WorkflowAction,
    action_name,
    apply_transition,
)
from ci_engine.utils.error_handling import (
    AuthorizationException,
    CIValidationError,
    ConflictException,
    ErrorCode,
    InvalidDateRangeException,
    InvalidTransitionException,
    PersistenceException,
    ReportNotEditableException,
    ReportNotFoundException,
)

logger = logging.getLogger(__name__)


# Fields a supplier may change while the report is a draft
EDITABLE_FIELDS = (
    "feedstock_category",
    "reporting_period_start",
    "reporting_period_end",
    "reference_year",
    "methodology",
    "methodology_version",
    "data_quality_level",
    "calculation_notes",
) + COMPONENT_FIELDS

# Editable fields backed by NOT NULL columns
REQUIRED_FIELDS = (
    "reporting_period_start",
    "reporting_period_end",
    "reference_year",
    "methodology",
    "data_quality_level",
) + COMPONENT_FIELDS

NO_EMISSION_DATA = "At least one emission value must be provided before submission"


def generate_report_number(year: Optional[int] = None) -> str:
    """Human-readable report identifier, e.g. CI-2026-1A2B3C4D."""
    year = year or utcnow().year
    return f"CI-{year}-{uuid.uuid4().hex[:8].upper()}"


def _derived_differs(stored: Any, computed: Any) -> bool:
    if isinstance(computed, float) and stored is not None and not isinstance(stored, bool):
        return not math.isclose(float(stored), computed, rel_tol=1e-9, abs_tol=1e-9)
    return stored != computed


class CIReportService:
    """Service for CI report lifecycle operations."""

    def __init__(
        self,
        db: AsyncSession,
        calculator: Optional[CICalculator] = None,
        factor_provider: Optional[DefaultEmissionFactorProvider] = None,
    ):
        self.db = db
        self.calculator = calculator or get_ci_calculator()
        self.factor_provider = factor_provider or default_factor_provider

    # ===========================================
    # CALCULATION
    # ===========================================

    def calculate(self, report: CIReport) -> CICalculationResult:
        """Recompute the derived fields of a report from its components."""
        return self.calculator.calculate(
            EmissionComponents.from_object(report),
            report.methodology,
            report.data_quality_level,
        )

    def refresh_derived(self, report: CIReport) -> CICalculationResult:
        """
        Recompute derived fields and serve the recomputed values.

        Stored values that drifted from the recomputation are logged and
        replaced on the instance without marking it dirty.
        """
        result = self.calculate(report)
        for name, value in result.derived_fields().items():
            stored = getattr(report, name)
            if _derived_differs(stored, value):
                logger.warning(
                    f"Derived field drift on report {report.report_id}: "
                    f"{name} stored={stored!r} recomputed={value!r}"
                )
                set_committed_value(report, name, value)
        return result

    def _resolve_components(
        self,
        values: Mapping[str, Any],
        category: Optional[Union[FeedstockCategory, str]],
        data_quality: Union[CIDataQuality, str],
        apply_defaults: bool,
    ) -> EmissionComponents:
        partial = {name: values.get(name) for name in COMPONENT_FIELDS}
        if apply_defaults:
            return self.factor_provider.apply_defaults(partial, category, data_quality)
        return EmissionComponents.from_mapping(
            {name: 0.0 if value is None else value for name, value in partial.items()}
        )

    @staticmethod
    def _check_period(start: date, end: date) -> None:
        if start > end:
            raise InvalidDateRangeException(start.isoformat(), end.isoformat())

    @staticmethod
    def ensure_access(
        report: CIReport,
        actor_id: Optional[uuid.UUID],
        role: Optional[ActorRole],
        write: bool = False,
    ) -> None:
        """
        Check that the actor may see or change a report.

        Suppliers may only touch reports they created. Auditors and admins
        may read every report. Buyers may read verified reports only.
        Without a role the caller is trusted (internal use).

        Raises:
            AuthorizationException: 403 for any other combination
        """
        if role is None or role in (ActorRole.AUDITOR, ActorRole.ADMIN):
            return
        if role == ActorRole.SUPPLIER and report.created_by_id == actor_id:
            return
        if role == ActorRole.BUYER and not write and report.status == CIReportStatus.VERIFIED:
            return
        raise AuthorizationException(
            message=f"Not authorized to {'modify' if write else 'view'} report {report.report_id}",
        )

    # ===========================================
    # QUERIES
    # ===========================================

    async def _get_or_404(self, report_id: uuid.UUID) -> CIReport:
        result = await self.db.execute(
            select(CIReport)
            .where(CIReport.id == report_id)
            .execution_options(populate_existing=True)
        )
        report = result.scalar_one_or_none()
        if report is None:
            raise ReportNotFoundException(report_id)
        return report

    async def get_report(
        self,
        report_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        role: Optional[ActorRole] = None,
    ) -> CIReport:
        """Get a report with freshly recomputed derived fields."""
        report = await self._get_or_404(report_id)
        self.ensure_access(report, actor_id, role)
        self.refresh_derived(report)
        return report

    async def list_reports(
        self,
        supplier_id: Optional[uuid.UUID] = None,
        status: Optional[CIReportStatus] = None,
        skip: int = 0,
        limit: int = 50,
        actor_id: Optional[uuid.UUID] = None,
        role: Optional[ActorRole] = None,
    ) -> Tuple[List[CIReport], int]:
        """
        List reports, newest first, with the total count for the filter.

        Suppliers see only the reports they created; buyers see only
        verified reports.
        """
        conditions = []
        if supplier_id:
            conditions.append(CIReport.supplier_id == supplier_id)
        if status:
            conditions.append(CIReport.status == status)
        if role == ActorRole.SUPPLIER:
            conditions.append(CIReport.created_by_id == actor_id)
        elif role == ActorRole.BUYER:
            conditions.append(CIReport.status == CIReportStatus.VERIFIED)

        count_result = await self.db.execute(
            select(func.count()).select_from(CIReport).where(*conditions)
        )
        total = count_result.scalar_one()

        result = await self.db.execute(
            select(CIReport)
            .where(*conditions)
            .order_by(CIReport.created_at.desc(), CIReport.report_id)
            .offset(skip)
            .limit(limit)
        )
        reports = list(result.scalars().all())
        for report in reports:
            self.refresh_derived(report)
        return reports, total

    async def get_audit_logs(
        self,
        report_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        role: Optional[ActorRole] = None,
    ) -> List[CIAuditLog]:
        """Audit history of a report in sequence order."""
        if role is None:
            found = await self.db.execute(select(CIReport.id).where(CIReport.id == report_id))
            if found.scalar_one_or_none() is None:
                raise ReportNotFoundException(report_id)
        else:
            self.ensure_access(await self._get_or_404(report_id), actor_id, role)
        result = await self.db.execute(
            select(CIAuditLog)
            .where(CIAuditLog.report_id == report_id)
            .order_by(CIAuditLog.sequence)
        )
        return list(result.scalars().all())

    async def status_from_history(self, report_id: uuid.UUID) -> CIReportStatus:
        """Status implied by the audit trail: the latest new_status, or draft."""
        result = await self.db.execute(
            select(CIAuditLog.new_status)
            .where(CIAuditLog.report_id == report_id)
            .order_by(CIAuditLog.sequence.desc())
            .limit(1)
        )
        latest = result.scalar_one_or_none()
        return latest or CIReportStatus.DRAFT

    # ===========================================
    # DRAFT OPERATIONS
    # ===========================================

    async def create_report(
        self,
        supplier_id: uuid.UUID,
        feedstock_id: uuid.UUID,
        reporting_period_start: date,
        reporting_period_end: date,
        components: Mapping[str, Any],
        methodology: CIMethodology = CIMethodology.RED_II,
        data_quality_level: CIDataQuality = CIDataQuality.DEFAULT,
        feedstock_category: Optional[FeedstockCategory] = None,
        methodology_version: Optional[str] = None,
        reference_year: Optional[int] = None,
        calculation_notes: Optional[str] = None,
        apply_defaults: bool = False,
        submit: bool = False,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Tuple[CIReport, CICalculationResult]:
        """
        Create a draft report, optionally submitting it in the same transaction.

        Args:
            components: Scope component values; missing values are 0 unless
                apply_defaults fills them from the feedstock category table
            apply_defaults: Fill missing components with category defaults
            submit: Submit the new report immediately
            actor_id: Supplier user creating the report

        Returns:
            Tuple of (report, calculation result with warnings)
        """
        self._check_period(reporting_period_start, reporting_period_end)
        values = self._resolve_components(
            components, feedstock_category, data_quality_level, apply_defaults
        )
        result = self.calculator.calculate(values, methodology, data_quality_level)

        if submit and not values.has_emission_data:
            raise CIValidationError([NO_EMISSION_DATA])

        report = CIReport(
            report_id=generate_report_number(reporting_period_start.year),
            supplier_id=supplier_id,
            feedstock_id=feedstock_id,
            feedstock_category=feedstock_category,
            reporting_period_start=reporting_period_start,
            reporting_period_end=reporting_period_end,
            reference_year=reference_year or reporting_period_start.year,
            methodology=methodology,
            methodology_version=methodology_version,
            data_quality_level=data_quality_level,
            calculation_notes=calculation_notes,
            status=CIReportStatus.DRAFT,
            created_by_id=actor_id,
            **values.as_dict(),
            **result.derived_fields(),
        )

        try:
            self.db.add(report)
            await self.db.flush()

            if submit:
                outcome = apply_transition(report.status, Submit(), actor_id)
                for name, value in self._transition_values(Submit(), actor_id, None).items():
                    setattr(report, name, value)
                report.status = outcome.new_status
                await self._append_audit(report.id, outcome.log_entry)

            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceException("Failed to create CI report", original_error=e) from e

        await self.db.refresh(report)
        logger.info(
            f"Created CI report {report.report_id} (status={report.status.value}, "
            f"ci={report.total_ci_value}, rating={report.ci_rating})"
        )
        return report, result

    async def update_draft(
        self,
        report_id: uuid.UUID,
        changes: Mapping[str, Any],
        actor_id: Optional[uuid.UUID] = None,
        role: Optional[ActorRole] = None,
    ) -> Tuple[CIReport, CICalculationResult]:
        """
        Edit a draft report and recompute its derived fields.

        Raises:
            AuthorizationException: Supplier editing another supplier's report
            ReportNotEditableException: Report is no longer a draft
            CIValidationError: Unknown field, or null for a required field
        """
        report = await self._get_or_404(report_id)
        self.ensure_access(report, actor_id, role, write=True)
        if report.status != CIReportStatus.DRAFT:
            raise ReportNotEditableException("edited", report.status.value)

        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise CIValidationError([f"Field cannot be edited: {name}" for name in sorted(unknown)])

        cleared = [name for name in REQUIRED_FIELDS if name in changes and changes[name] is None]
        if cleared:
            raise CIValidationError(
                [f"{name} is required and cannot be null" for name in cleared],
                message="Required fields cannot be cleared: " + ", ".join(cleared),
                code=ErrorCode.MISSING_FIELD,
            )

        merged = {name: getattr(report, name) for name in EDITABLE_FIELDS}
        merged.update(changes)
        self._check_period(merged["reporting_period_start"], merged["reporting_period_end"])

        values = EmissionComponents.from_mapping(merged)
        result = self.calculator.calculate(
            values, merged["methodology"], merged["data_quality_level"]
        )

        row = {name: merged[name] for name in EDITABLE_FIELDS if name not in COMPONENT_FIELDS}
        row.update(values.as_dict())
        row.update(result.derived_fields())

        try:
            if not await self._compare_and_set(report.id, CIReportStatus.DRAFT, row):
                await self.db.rollback()
                current = await self._get_or_404(report_id)
                raise ReportNotEditableException("edited", current.status.value)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceException("Failed to update CI report", original_error=e) from e

        await self.db.refresh(report)
        logger.info(
            f"Updated draft CI report {report.report_id} by {actor_id}: "
            f"{', '.join(sorted(changes)) or 'no changes'}"
        )
        return report, result

    async def delete_draft(
        self,
        report_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        role: Optional[ActorRole] = None,
    ) -> None:
        """Delete a draft report that has never entered the workflow."""
        report = await self._get_or_404(report_id)
        self.ensure_access(report, actor_id, role, write=True)
        if report.status != CIReportStatus.DRAFT:
            raise ReportNotEditableException("deleted", report.status.value, code=ErrorCode.CANNOT_DELETE)
        number = report.report_id

        has_history = exists().where(CIAuditLog.report_id == CIReport.id)
        try:
            result = await self.db.execute(
                delete(CIReport)
                .where(CIReport.id == report.id)
                .where(CIReport.status == CIReportStatus.DRAFT)
                .where(~has_history)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.db.rollback()
                raise ConflictException(
                    message=f"Report {number} has workflow history and cannot be deleted",
                    resource_type="CIReport",
                    code=ErrorCode.CANNOT_DELETE,
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceException("Failed to delete CI report", original_error=e) from e

        self.db.expunge(report)
        logger.info(f"Deleted draft CI report {number} by {actor_id}")

    # ===========================================
    # WORKFLOW
    # ===========================================

    async def submit(
        self,
        report_id: uuid.UUID,
        actor_id: Optional[uuid.UUID],
        role: Optional[ActorRole] = None,
    ) -> Tuple[CIReport, CIAuditLog]:
        """Supplier submits a draft for verification."""
        return await self.transition(report_id, Submit(), actor_id, role=role)

    async def verify(
        self,
        report_id: uuid.UUID,
        action: WorkflowAction,
        actor_id: Optional[uuid.UUID],
        expiry_days: Optional[int] = None,
    ) -> Tuple[CIReport, CIAuditLog]:
        """Auditor action: start_review, approve, reject or request_revision."""
        if isinstance(action, Submit):
            raise InvalidTransitionException(
                action="submit",
                current_status=None,
                message="Submission is performed by the supplier, not through verification",
            )
        return await self.transition(report_id, action, actor_id, expiry_days=expiry_days)

    async def transition(
        self,
        report_id: uuid.UUID,
        action: WorkflowAction,
        actor_id: Optional[uuid.UUID],
        expiry_days: Optional[int] = None,
        role: Optional[ActorRole] = None,
    ) -> Tuple[CIReport, CIAuditLog]:
        """
        Apply a workflow action atomically.

        Raises:
            AuthorizationException: Supplier acting on another supplier's report
            InvalidTransitionException: Action not allowed from the current
                status, or another request changed the status first
            MissingReasonException: Reject without a reason
            MissingNotesException: Revision request without notes
            CIValidationError: Submission without valid emission data
            PersistenceException: The store failed; nothing was changed
        """
        report = await self._get_or_404(report_id)
        self.ensure_access(report, actor_id, role, write=True)
        current = report.status
        number = report.report_id
        name = action_name(action)

        outcome = apply_transition(current, action, actor_id)
        if isinstance(outcome, TransitionErr):
            logger.info(f"Refused {name} on report {number}: {outcome.message}")
            raise outcome.to_exception()

        values = self._transition_values(action, actor_id, expiry_days)
        values["status"] = outcome.new_status

        if isinstance(action, Submit):
            components = EmissionComponents.from_object(report)
            if not components.has_emission_data:
                raise CIValidationError([NO_EMISSION_DATA])
            values.update(self.calculator.calculate(
                components, report.methodology, report.data_quality_level
            ).derived_fields())

        extra = {}
        if isinstance(action, Approve):
            extra["expiry_days"] = self._expiry_days(expiry_days)

        try:
            if not await self._compare_and_set(report.id, current, values):
                await self.db.rollback()
                raise InvalidTransitionException(
                    action=name,
                    current_status=current.value,
                    message=f"Report {number} is no longer '{current.value}'; {name} was not applied",
                )
            entry = await self._append_audit(report.id, outcome.log_entry, extra)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceException(f"Failed to {name} CI report", original_error=e) from e

        await self.db.refresh(report)
        logger.info(
            f"CI report {number}: {name} {current.value} -> "
            f"{outcome.new_status.value} by {actor_id}"
        )
        return report, entry

    @staticmethod
    def _expiry_days(expiry_days: Optional[int]) -> int:
        return expiry_days if expiry_days is not None else settings.ci_certificate_expiry_days

    def _transition_values(
        self,
        action: WorkflowAction,
        actor_id: Optional[uuid.UUID],
        expiry_days: Optional[int],
    ) -> Dict[str, Any]:
        """Report columns set alongside the status change."""
        now = utcnow()
        if isinstance(action, Submit):
            return {
                "submitted_at": now,
                "verification_level": VerificationLevel.SELF_DECLARED,
                "rejection_reason": None,
            }
        if isinstance(action, StartReview):
            return {"assigned_auditor_id": actor_id}
        if isinstance(action, Approve):
            return {
                "verified_at": now,
                "verified_by_id": actor_id,
                "verification_level": VerificationLevel.THIRD_PARTY_AUDITED,
                "auditor_notes": action.notes or None,
                "expiry_date": now.date() + timedelta(days=self._expiry_days(expiry_days)),
            }
        if isinstance(action, Reject):
            return {
                "rejection_reason": action.reason,
                "auditor_notes": action.notes or None,
            }
        if isinstance(action, RequestRevision):
            return {
                "auditor_notes": action.notes,
                "assigned_auditor_id": None,
            }
        return {}

    async def _compare_and_set(
        self,
        report_pk: uuid.UUID,
        expected_status: CIReportStatus,
        values: Mapping[str, Any],
    ) -> bool:
        """Update the report only if it still has expected_status. True if a row changed."""
        result = await self.db.execute(
            update(CIReport)
            .where(CIReport.id == report_pk)
            .where(CIReport.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _append_audit(
        self,
        report_pk: uuid.UUID,
        entry: AuditLogEntry,
        extra_metadata: Optional[Dict[str, Any]] = None,
    ) -> CIAuditLog:
        result = await self.db.execute(
            select(func.coalesce(func.max(CIAuditLog.sequence), 0))
            .where(CIAuditLog.report_id == report_pk)
        )
        metadata = {**entry.metadata, **(extra_metadata or {})}
        log = CIAuditLog(
            report_id=report_pk,
            sequence=result.scalar_one() + 1,
            action=entry.action,
            previous_status=entry.previous_status,
            new_status=entry.new_status,
            user_id=entry.actor_id,
            notes=entry.notes,
            extra_data=metadata or None,
        )
        self.db.add(log)
        await self.db.flush()
        return log
