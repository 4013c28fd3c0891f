"""Initial CellarClub schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('tenants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('crm_type', sa.String(length=20), nullable=False),
        sa.Column('crm_identifier', sa.String(length=255), nullable=False),
        sa.Column('org_name', sa.String(length=255), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('webhook_secret', sa.String(length=100), nullable=True),
        sa.Column('setup_complete', sa.Boolean(), nullable=True, server_default='false'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('crm_identifier')
    )

    op.create_table('club_programs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id')
    )

    op.create_table('club_stages',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('club_program_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('duration_months', sa.Integer(), nullable=False, server_default='12'),
        sa.Column('min_purchase_amount', sa.Numeric(precision=10, scale=2), nullable=True, server_default='0'),
        sa.Column('min_ltv_amount', sa.Numeric(precision=10, scale=2), nullable=True, server_default='0'),
        sa.Column('upgradable', sa.Boolean(), nullable=True, server_default='true'),
        sa.Column('stage_order', sa.Integer(), nullable=True),
        sa.Column('crm_club_id', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['club_program_id'], ['club_programs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_club_stages_tenant_id'), 'club_stages', ['tenant_id'], unique=False)

    op.create_table('stage_promotions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('club_stage_id', sa.String(length=36), nullable=False),
        sa.Column('crm_type', sa.String(length=20), nullable=False),
        sa.Column('crm_id', sa.String(length=255), nullable=True),
        sa.Column('crm_club_id', sa.String(length=255), nullable=True),
        sa.Column('kind', sa.String(length=20), nullable=False, server_default='promotion'),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('discount_snapshot', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['club_stage_id'], ['club_stages.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_stage_promotions_club_stage_id'), 'stage_promotions', ['club_stage_id'], unique=False)

    op.create_table('tier_loyalty_configs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('club_stage_id', sa.String(length=36), nullable=False),
        sa.Column('crm_loyalty_tier_id', sa.String(length=255), nullable=True),
        sa.Column('tier_title', sa.String(length=255), nullable=True),
        sa.Column('earn_rate', sa.Numeric(precision=5, scale=4), nullable=False, server_default='0'),
        sa.Column('initial_points_bonus', sa.Integer(), nullable=True, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['club_stage_id'], ['club_stages.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('club_stage_id')
    )

    op.create_table('loyalty_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('points_per_dollar', sa.Numeric(precision=6, scale=2), nullable=True, server_default='1'),
        sa.Column('min_membership_days', sa.Integer(), nullable=True, server_default='365'),
        sa.Column('point_dollar_value', sa.Numeric(precision=6, scale=4), nullable=True, server_default='0.01'),
        sa.Column('min_points_for_redemption', sa.Integer(), nullable=True, server_default='100'),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id')
    )

    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('crm_id', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('ltv', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'crm_id', name='uq_customer_tenant_crm_id')
    )
    op.create_index(op.f('ix_customers_tenant_id'), 'customers', ['tenant_id'], unique=False)

    op.create_table('club_enrollments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('club_stage_id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=True, server_default='active'),
        sa.Column('enrolled_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('crm_membership_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['club_stage_id'], ['club_stages.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_club_enrollments_customer_id'), 'club_enrollments', ['customer_id'], unique=False)
    op.create_index(op.f('ix_club_enrollments_club_stage_id'), 'club_enrollments', ['club_stage_id'], unique=False)
    op.create_index(op.f('ix_club_enrollments_crm_membership_id'), 'club_enrollments', ['crm_membership_id'], unique=False)

    op.create_table('enrollment_drafts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.String(length=255), nullable=False),
        sa.Column('customer', sa.JSON(), nullable=True),
        sa.Column('tier', sa.JSON(), nullable=True),
        sa.Column('address', sa.JSON(), nullable=True),
        sa.Column('payment', sa.JSON(), nullable=True),
        sa.Column('preferences', sa.JSON(), nullable=True),
        sa.Column('address_verified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('payment_verified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'session_id', name='uq_enrollment_draft_tenant_session')
    )
    op.create_index(op.f('ix_enrollment_drafts_tenant_id'), 'enrollment_drafts', ['tenant_id'], unique=False)

    op.create_table('side_effect_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('reference', sa.String(length=255), nullable=True),
        sa.Column('detail', sa.JSON(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_side_effect_events_tenant_id'), 'side_effect_events', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_side_effect_events_reference'), 'side_effect_events', ['reference'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_side_effect_events_reference'), table_name='side_effect_events')
    op.drop_index(op.f('ix_side_effect_events_tenant_id'), table_name='side_effect_events')
    op.drop_table('side_effect_events')
    op.drop_index(op.f('ix_enrollment_drafts_tenant_id'), table_name='enrollment_drafts')
    op.drop_table('enrollment_drafts')
    op.drop_index(op.f('ix_club_enrollments_crm_membership_id'), table_name='club_enrollments')
    op.drop_index(op.f('ix_club_enrollments_club_stage_id'), table_name='club_enrollments')
    op.drop_index(op.f('ix_club_enrollments_customer_id'), table_name='club_enrollments')
    op.drop_table('club_enrollments')
    op.drop_index(op.f('ix_customers_tenant_id'), table_name='customers')
    op.drop_table('customers')
    op.drop_table('loyalty_rules')
    op.drop_table('tier_loyalty_configs')
    op.drop_index(op.f('ix_stage_promotions_club_stage_id'), table_name='stage_promotions')
    op.drop_table('stage_promotions')
    op.drop_index(op.f('ix_club_stages_tenant_id'), table_name='club_stages')
    op.drop_table('club_stages')
    op.drop_table('club_programs')
    op.drop_table('tenants')
