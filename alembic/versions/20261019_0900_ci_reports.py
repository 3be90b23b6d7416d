"""Add carbon intensity reports and CI audit log tables

Revision ID: 20261019_0900_ci_reports
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration adds the tables for CI reporting and verification:
- ci_reports: Supplier CI declarations with components, derived values and
  verification state
- ci_audit_logs: Append-only workflow history, numbered per report

The audit table is insert-only; the application role should be granted
INSERT and SELECT on it, never UPDATE or DELETE.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = '20261019_0900_ci_reports'
down_revision = None
branch_labels = None
depends_on = None


COMPONENTS = (
    'scope1_cultivation',
    'scope1_processing',
    'scope1_transport',
    'scope2_electricity',
    'scope2_steam_heat',
    'scope3_upstream_inputs',
    'scope3_land_use_change',
    'scope3_distribution',
    'scope3_end_of_life',
)


def upgrade() -> None:
    """Create CI report tables."""

    report_status = postgresql.ENUM(
        'draft', 'submitted', 'under_review', 'verified', 'rejected',
        name='cireportstatus',
    )
    methodology = postgresql.ENUM(
        'RED_II', 'RTFO', 'ISO_14064', 'ISCC', 'RSB',
        name='cimethodology',
    )
    data_quality = postgresql.ENUM(
        'default', 'industry_average', 'primary_measured',
        name='cidataquality',
    )
    feedstock_category = postgresql.ENUM(
        'oilseed', 'UCO', 'tallow', 'lignocellulosic', 'waste', 'algae', 'bamboo', 'other',
        name='feedstockcategory',
    )
    verification_level = postgresql.ENUM(
        'self_declared', 'document_verified', 'third_party_audited', 'abfi_certified',
        name='verificationlevel',
    )
    audit_action = postgresql.ENUM(
        'submitted', 'review_started', 'approved', 'rejected', 'revision_requested',
        name='ciauditaction',
    )

    bind = op.get_bind()
    for enum_type in (report_status, methodology, data_quality, feedstock_category,
                      verification_level, audit_action):
        enum_type.create(bind, checkfirst=True)

    def enum_col(enum_type):
        return postgresql.ENUM(name=enum_type.name, create_type=False)

    op.create_table(
        'ci_reports',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('report_id', sa.String(32), nullable=False),
        sa.Column('supplier_id', sa.Uuid(), nullable=False),
        sa.Column('feedstock_id', sa.Uuid(), nullable=False),
        sa.Column('feedstock_category', enum_col(feedstock_category), nullable=True),
        sa.Column('reporting_period_start', sa.Date(), nullable=False),
        sa.Column('reporting_period_end', sa.Date(), nullable=False),
        sa.Column('reference_year', sa.Integer(), nullable=False),
        sa.Column('methodology', enum_col(methodology), nullable=False),
        sa.Column('methodology_version', sa.String(20), nullable=True),
        sa.Column('data_quality_level', enum_col(data_quality), nullable=False),

        # Components (gCO2e/MJ)
        *[sa.Column(name, sa.Float(), nullable=False, server_default='0') for name in COMPONENTS],

        # Derived values
        sa.Column('scope1_total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('scope2_total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('scope3_total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_ci_value', sa.Float(), nullable=False, server_default='0'),
        sa.Column('ci_rating', sa.String(4), nullable=False),
        sa.Column('ci_score', sa.Float(), nullable=False),
        sa.Column('ghg_savings_percentage', sa.Float(), nullable=False),
        sa.Column('red_ii_compliant', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('rtfo_compliant', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('cfp_compliant', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('uncertainty_range_low', sa.Float(), nullable=True),
        sa.Column('uncertainty_range_high', sa.Float(), nullable=True),
        sa.Column('calculation_notes', sa.Text(), nullable=True),

        # Verification
        sa.Column('status', enum_col(report_status), nullable=False, server_default='draft'),
        sa.Column('verification_level', enum_col(verification_level), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('auditor_notes', sa.Text(), nullable=True),
        sa.Column('assigned_auditor_id', sa.Uuid(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('verified_by_id', sa.Uuid(), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('created_by_id', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),

        sa.PrimaryKeyConstraint('id', name='pk_ci_reports'),
        *[
            sa.CheckConstraint(f'{name} >= 0', name=f'ck_ci_reports_{name}_non_negative')
            for name in COMPONENTS
        ],
        sa.CheckConstraint(
            'reporting_period_start <= reporting_period_end',
            name='ck_ci_reports_reporting_period_order',
        ),
    )
    op.create_index('ix_ci_reports_report_id', 'ci_reports', ['report_id'], unique=True)
    op.create_index('ix_ci_reports_supplier_id', 'ci_reports', ['supplier_id'])
    op.create_index('ix_ci_reports_feedstock_id', 'ci_reports', ['feedstock_id'])
    op.create_index('ix_ci_reports_status', 'ci_reports', ['status'])
    op.create_index('ix_ci_reports_assigned_auditor_id', 'ci_reports', ['assigned_auditor_id'])

    op.create_table(
        'ci_audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('report_id', sa.Uuid(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('action', enum_col(audit_action), nullable=False),
        sa.Column('previous_status', enum_col(report_status), nullable=False),
        sa.Column('new_status', enum_col(report_status), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_ci_audit_logs'),
        sa.ForeignKeyConstraint(
            ['report_id'], ['ci_reports.id'],
            name='fk_ci_audit_logs_report_id_ci_reports',
            ondelete='RESTRICT',
        ),
        sa.UniqueConstraint('report_id', 'sequence', name='uq_ci_audit_logs_report_sequence'),
    )
    op.create_index('ix_ci_audit_logs_report_id', 'ci_audit_logs', ['report_id'])
    op.create_index('ix_ci_audit_logs_action', 'ci_audit_logs', ['action'])
    op.create_index('ix_ci_audit_logs_user_id', 'ci_audit_logs', ['user_id'])
    op.create_index('ix_ci_audit_logs_created_at', 'ci_audit_logs', ['created_at'])


def downgrade() -> None:
    """Drop CI report tables."""
    op.drop_table('ci_audit_logs')
    op.drop_table('ci_reports')

    for name in ('ciauditaction', 'verificationlevel', 'feedstockcategory',
                 'cidataquality', 'cimethodology', 'cireportstatus'):
        op.execute(f'DROP TYPE IF EXISTS {name}')
