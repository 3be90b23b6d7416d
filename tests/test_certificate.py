"""
ABFI CI Engine - Certificate Tests

Certificate content and PDF rendering for verified reports.
"""

import pytest

from ci_engine.services.certificate_service import CertificateService
from ci_engine.services.verification_workflow import Approve, StartReview
from ci_engine.utils.error_handling import CertificateUnavailableException


@pytest.fixture
async def verified_report(service, report_kwargs, auditor_user_id):
    report, _ = await service.create_report(**report_kwargs, submit=True)
    await service.verify(report.id, StartReview(), auditor_user_id)
    report, _ = await service.verify(report.id, Approve(notes="Site visit completed"), auditor_user_id)
    return report


class TestCertificateData:
    """Structured certificate content."""

    @pytest.mark.asyncio
    async def test_sections(self, verified_report):
        data = CertificateService().build_certificate_data(verified_report)

        assert set(data) == {
            "certificate",
            "supplier",
            "feedstock",
            "reporting_period",
            "carbon_intensity",
            "emissions",
            "compliance",
            "verification",
            "data_quality",
        }

    @pytest.mark.asyncio
    async def test_values(self, verified_report, auditor_user_id):
        data = CertificateService(issuer_name="Test Registry").build_certificate_data(verified_report)

        assert data["certificate"]["report_id"] == verified_report.report_id
        assert data["certificate"]["issuer"] == "Test Registry"
        assert data["certificate"]["methodology_label"] == "EU Renewable Energy Directive II"
        assert data["certificate"]["expiry_date"] == verified_report.expiry_date.isoformat()
        assert data["reporting_period"] == {
            "start": "2026-01-01",
            "end": "2026-06-30",
            "reference_year": 2026,
        }
        assert data["carbon_intensity"]["total_ci_value"] == 20.0
        assert data["carbon_intensity"]["ci_rating"] == "A"
        assert data["carbon_intensity"]["fossil_fuel_comparator"] == 94.0
        assert data["emissions"]["scope1"]["total"] == 10.0
        assert data["emissions"]["scope3"]["end_of_life"] == 1.0
        assert data["verification"]["verified_by"] == str(auditor_user_id)
        assert data["verification"]["auditor_notes"] == "Site visit completed"
        assert data["data_quality"]["level"] == "primary_measured"

    @pytest.mark.asyncio
    async def test_unverified_report(self, service, report_kwargs):
        report, _ = await service.create_report(**report_kwargs, submit=True)

        with pytest.raises(CertificateUnavailableException) as exc_info:
            CertificateService().build_certificate_data(report)

        assert exc_info.value.status_code == 409
        assert exc_info.value.details["current_status"] == "submitted"


class TestCertificatePdf:
    """PDF rendering."""

    @pytest.mark.asyncio
    async def test_generate_pdf(self, verified_report):
        pdf = CertificateService().generate_pdf(verified_report)

        assert pdf.startswith(b"%PDF")
        assert len(pdf) > 1000

    @pytest.mark.asyncio
    async def test_pdf_refused_for_draft(self, service, report_kwargs):
        report, _ = await service.create_report(**report_kwargs)

        with pytest.raises(CertificateUnavailableException):
            CertificateService().generate_pdf(report)
