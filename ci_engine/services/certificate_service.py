"""
ABFI CI Engine - Certificate Service

Generates carbon intensity certificates for verified reports.
Uses ReportLab for PDF generation.

Formats:
- PDF: printable certificate with CI value, rating, emissions breakdown,
  compliance flags and verification statement
- JSON: the same content as a structured document for API integration

Only reports in status 'verified' are certifiable.
"""

import io
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    HRFlowable,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from ci_engine.config import settings
from ci_engine.models.ci_enums import CIMethodology, CIReportStatus
from ci_engine.models.ci_report import CIReport
from ci_engine.services.ci_calculator import format_ci_value, format_ghg_savings
from ci_engine.utils.error_handling import CertificateUnavailableException

logger = logging.getLogger(__name__)


METHODOLOGY_LABELS: Dict[CIMethodology, str] = {
    CIMethodology.RED_II: "EU Renewable Energy Directive II",
    CIMethodology.RTFO: "UK Renewable Transport Fuel Obligation",
    CIMethodology.ISO_14064: "ISO 14064 GHG Standard",
    CIMethodology.ISCC: "International Sustainability & Carbon Certification",
    CIMethodology.RSB: "Roundtable on Sustainable Biomaterials",
}

BRAND_COLOR = "#1a5d3a"


def _iso(value: Optional[Any]) -> Optional[str]:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _fmt_date(value: Optional[Any]) -> str:
    if isinstance(value, (date, datetime)):
        return value.strftime("%d %B %Y")
    return "N/A"


class CertificateService:
    """Service for generating CI certificates."""

    def __init__(
        self,
        issuer_name: Optional[str] = None,
        fossil_fuel_comparator: Optional[float] = None,
    ):
        self.issuer_name = issuer_name or settings.certificate_issuer_name
        self.fossil_fuel_comparator = (
            fossil_fuel_comparator
            if fossil_fuel_comparator is not None
            else settings.ci_fossil_fuel_comparator
        )

    def ensure_certifiable(self, report: CIReport) -> None:
        if report.status != CIReportStatus.VERIFIED:
            raise CertificateUnavailableException(report.report_id, report.status.value)

    def build_certificate_data(self, report: CIReport) -> Dict[str, Any]:
        """
        Structured certificate content.

        Raises:
            CertificateUnavailableException: If the report is not verified
        """
        self.ensure_certifiable(report)
        return {
            "certificate": {
                "report_id": report.report_id,
                "issued_date": _iso(report.verified_at),
                "expiry_date": _iso(report.expiry_date),
                "status": report.status.value,
                "methodology": report.methodology.value,
                "methodology_label": METHODOLOGY_LABELS[report.methodology],
                "methodology_version": report.methodology_version,
                "issuer": self.issuer_name,
            },
            "supplier": {
                "id": str(report.supplier_id),
            },
            "feedstock": {
                "id": str(report.feedstock_id),
                "category": report.feedstock_category.value if report.feedstock_category else None,
            },
            "reporting_period": {
                "start": _iso(report.reporting_period_start),
                "end": _iso(report.reporting_period_end),
                "reference_year": report.reference_year,
            },
            "carbon_intensity": {
                "total_ci_value": report.total_ci_value,
                "ci_rating": report.ci_rating,
                "ci_score": report.ci_score,
                "ghg_savings_percentage": report.ghg_savings_percentage,
                "fossil_fuel_comparator": self.fossil_fuel_comparator,
            },
            "emissions": {
                "scope1": {
                    "cultivation": report.scope1_cultivation,
                    "processing": report.scope1_processing,
                    "transport": report.scope1_transport,
                    "total": report.scope1_total,
                },
                "scope2": {
                    "electricity": report.scope2_electricity,
                    "steam_heat": report.scope2_steam_heat,
                    "total": report.scope2_total,
                },
                "scope3": {
                    "upstream_inputs": report.scope3_upstream_inputs,
                    "land_use_change": report.scope3_land_use_change,
                    "distribution": report.scope3_distribution,
                    "end_of_life": report.scope3_end_of_life,
                    "total": report.scope3_total,
                },
            },
            "compliance": {
                "red_ii": report.red_ii_compliant,
                "rtfo": report.rtfo_compliant,
                "cfp": report.cfp_compliant,
            },
            "verification": {
                "status": report.status.value,
                "verified_at": _iso(report.verified_at),
                "verified_by": str(report.verified_by_id) if report.verified_by_id else None,
                "level": report.verification_level.value if report.verification_level else None,
                "auditor_notes": report.auditor_notes,
            },
            "data_quality": {
                "level": report.data_quality_level.value,
                "uncertainty_range": {
                    "low": report.uncertainty_range_low,
                    "high": report.uncertainty_range_high,
                },
            },
        }

    def generate_pdf(self, report: CIReport) -> bytes:
        """
        Generate the PDF certificate for a verified report.

        Returns:
            PDF bytes
        """
        data = self.build_certificate_data(report)

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=20*mm,
            leftMargin=20*mm,
            topMargin=20*mm,
            bottomMargin=20*mm,
            title=f"Carbon Intensity Certificate {report.report_id}",
            author=self.issuer_name,
        )

        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            'CertTitle',
            parent=styles['Heading1'],
            fontSize=22,
            alignment=TA_CENTER,
            textColor=colors.HexColor(BRAND_COLOR),
            spaceAfter=6,
        )
        subtitle_style = ParagraphStyle(
            'CertSubtitle',
            parent=styles['Normal'],
            fontSize=11,
            alignment=TA_CENTER,
            textColor=colors.grey,
        )
        heading_style = ParagraphStyle(
            'CertHeading',
            parent=styles['Heading2'],
            fontSize=13,
            textColor=colors.HexColor(BRAND_COLOR),
            spaceBefore=12,
            spaceAfter=6,
        )
        normal_style = ParagraphStyle(
            'CertNormal',
            parent=styles['Normal'],
            fontSize=9,
            leading=12,
        )
        big_style = ParagraphStyle(
            'CertValue',
            parent=styles['Normal'],
            fontSize=26,
            leading=30,
            alignment=TA_CENTER,
            textColor=colors.HexColor(BRAND_COLOR),
        )

        cert = data["certificate"]
        ci = data["carbon_intensity"]

        elements = [
            Paragraph(self.issuer_name, subtitle_style),
            Paragraph("Carbon Intensity Certificate", title_style),
            Paragraph(cert["methodology_label"], subtitle_style),
            Spacer(1, 8),
            HRFlowable(width="100%", color=colors.HexColor(BRAND_COLOR)),
            Spacer(1, 12),
            self._build_info_table(report, normal_style),
            Spacer(1, 16),
            Paragraph(
                f"<b>{format_ci_value(ci['total_ci_value'])}</b> &nbsp; Rating <b>{ci['ci_rating']}</b>",
                big_style,
            ),
            Paragraph(
                f"GHG savings {format_ghg_savings(ci['ghg_savings_percentage'])} against a fossil fuel "
                f"comparator of {ci['fossil_fuel_comparator']:g} gCO2e/MJ &middot; CI score {ci['ci_score']:.1f}",
                subtitle_style,
            ),
            Spacer(1, 12),
            Paragraph("Emissions Breakdown (gCO2e/MJ)", heading_style),
            self._build_emissions_table(report),
            Paragraph("Regulatory Compliance", heading_style),
            self._build_compliance_table(report),
            Paragraph("Verification", heading_style),
            Paragraph(self._verification_statement(report), normal_style),
        ]

        if report.auditor_notes:
            elements.append(Spacer(1, 6))
            elements.append(Paragraph(f"<b>Auditor notes:</b> {report.auditor_notes}", normal_style))

        elements.append(Spacer(1, 24))
        elements.append(Paragraph(
            f"Certificate generated by {self.issuer_name} | Report ID: {report.report_id}",
            subtitle_style,
        ))

        doc.build(elements)

        pdf_bytes = buffer.getvalue()
        buffer.close()

        logger.info(f"Generated PDF certificate for CI report {report.report_id} ({len(pdf_bytes)} bytes)")
        return pdf_bytes

    def _build_info_table(self, report: CIReport, normal_style) -> Table:
        rows = [
            ["Report ID", report.report_id, "Issued", _fmt_date(report.verified_at)],
            [
                "Reporting period",
                f"{_fmt_date(report.reporting_period_start)} - {_fmt_date(report.reporting_period_end)}",
                "Valid until",
                _fmt_date(report.expiry_date),
            ],
            [
                "Feedstock category",
                report.feedstock_category.value if report.feedstock_category else "N/A",
                "Data quality",
                report.data_quality_level.value.replace("_", " ").title(),
            ],
            ["Supplier", Paragraph(str(report.supplier_id), normal_style), "Feedstock", Paragraph(str(report.feedstock_id), normal_style)],
        ]
        table = Table(rows, colWidths=[90, 150, 80, 150])
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
            ('FONTNAME', (2, 0), (2, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
        ]))
        return table

    def _build_emissions_table(self, report: CIReport) -> Table:
        data: List[List[str]] = [["Scope", "Component", "Value"]]
        breakdown = [
            ("Scope 1", "Cultivation", report.scope1_cultivation),
            ("", "Processing", report.scope1_processing),
            ("", "Transport", report.scope1_transport),
            ("", "Scope 1 total", report.scope1_total),
            ("Scope 2", "Electricity", report.scope2_electricity),
            ("", "Steam / heat", report.scope2_steam_heat),
            ("", "Scope 2 total", report.scope2_total),
            ("Scope 3", "Upstream inputs", report.scope3_upstream_inputs),
            ("", "Land use change", report.scope3_land_use_change),
            ("", "Distribution", report.scope3_distribution),
            ("", "End of life", report.scope3_end_of_life),
            ("", "Scope 3 total", report.scope3_total),
            ("Total", "", report.total_ci_value),
        ]
        for scope, component, value in breakdown:
            data.append([scope, component, f"{value:.2f}"])

        table = Table(data, colWidths=[80, 250, 100])
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(BRAND_COLOR)),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('ALIGN', (2, 0), (2, -1), 'RIGHT'),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
            ('ROWBACKGROUNDS', (0, 1), (-1, -2), [colors.white, colors.HexColor('#f4f8f5')]),
        ]))
        return table

    def _build_compliance_table(self, report: CIReport) -> Table:
        def mark(ok: bool) -> str:
            return "Compliant" if ok else "Not compliant"

        data = [
            ["RED II", "RTFO", "CFP"],
            [mark(report.red_ii_compliant), mark(report.rtfo_compliant), mark(report.cfp_compliant)],
        ]
        table = Table(data, colWidths=[143, 143, 144])
        style = [
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ]
        for col, ok in enumerate((report.red_ii_compliant, report.rtfo_compliant, report.cfp_compliant)):
            style.append(('TEXTCOLOR', (col, 1), (col, 1), colors.green if ok else colors.red))
        table.setStyle(TableStyle(style))
        return table

    def _verification_statement(self, report: CIReport) -> str:
        verifier = str(report.verified_by_id) if report.verified_by_id else "an ABFI auditor"
        return (
            f"This certificate has been independently verified by {verifier} on "
            f"{_fmt_date(report.verified_at)}. The carbon intensity values presented in this "
            f"certificate have been calculated in accordance with the "
            f"{METHODOLOGY_LABELS[report.methodology]} methodology and represent the greenhouse "
            f"gas emissions associated with the production and processing of the specified "
            f"feedstock during the reporting period."
        )
