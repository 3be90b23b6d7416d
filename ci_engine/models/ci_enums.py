"""
ABFI CI Engine - Carbon Intensity Enums

Enumerations shared by the models, the CI calculator and the verification
workflow. Kept free of SQLAlchemy imports so the calculator can use them
without touching the database layer.
"""

from enum import Enum


class CIReportStatus(str, Enum):
    """
    Lifecycle status of a carbon-intensity report.

    draft -> submitted -> under_review -> verified | rejected
    A revision request sends an under_review report back to draft.
    """
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    VERIFIED = "verified"
    REJECTED = "rejected"


class CIMethodology(str, Enum):
    """GHG accounting methodology used for the report."""
    RED_II = "RED_II"          # EU Renewable Energy Directive II
    RTFO = "RTFO"              # UK Renewable Transport Fuel Obligation
    ISO_14064 = "ISO_14064"    # GHG quantification standard
    ISCC = "ISCC"              # International Sustainability & Carbon Certification
    RSB = "RSB"                # Roundtable on Sustainable Biomaterials


class CIDataQuality(str, Enum):
    """Provenance of the emission component values."""
    DEFAULT = "default"                    # Conservative regulatory defaults
    INDUSTRY_AVERAGE = "industry_average"  # Sector-specific averages
    PRIMARY_MEASURED = "primary_measured"  # Direct measurements


class FeedstockCategory(str, Enum):
    """Feedstock categories with their own default emission factors."""
    OILSEED = "oilseed"
    UCO = "UCO"
    TALLOW = "tallow"
    LIGNOCELLULOSIC = "lignocellulosic"
    WASTE = "waste"
    ALGAE = "algae"
    BAMBOO = "bamboo"
    OTHER = "other"


class VerificationLevel(str, Enum):
    """How far the reported values have been independently checked."""
    SELF_DECLARED = "self_declared"
    DOCUMENT_VERIFIED = "document_verified"
    THIRD_PARTY_AUDITED = "third_party_audited"
    ABFI_CERTIFIED = "abfi_certified"


class CIAuditAction(str, Enum):
    """Verification workflow actions recorded in the audit log."""
    SUBMITTED = "submitted"
    REVIEW_STARTED = "review_started"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVISION_REQUESTED = "revision_requested"


class ActorRole(str, Enum):
    """Role of the user acting on a report."""
    SUPPLIER = "supplier"
    AUDITOR = "auditor"
    ADMIN = "admin"
    BUYER = "buyer"
