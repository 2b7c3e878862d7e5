"""Case routing core - tenancy, coordinators, rules, members, forms, audit.

Revision ID: 0001_case_routing_core
Revises:
Create Date: 2026-10-17

Creates:
- tenants, users, memberships
- service_coordinators (self-referencing hierarchy, caseload and zone CHECKs)
- assignment_rules (single-target CHECK)
- members (case subjects)
- form_templates, form_instances (versioned)
- audit_events (hash chained)
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '0001_case_routing_core'
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')
NOW = sa.text('CURRENT_TIMESTAMP')
ZONE_VALUES = "('SW', 'SE', 'NE', 'NW', 'LC')"


def _timestamps(with_updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False)]
    if with_updated:
        columns.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False)
        )
    return columns


def upgrade() -> None:
    # ==========================================================================
    # tenancy
    # ==========================================================================
    op.create_table(
        'tenants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('settings', JSON_TYPE, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('token_version', sa.Integer(), server_default=sa.text('1'), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'memberships',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(with_updated=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'tenant_id', name='uq_membership_user_tenant'),
    )
    op.create_index('idx_memberships_tenant_role', 'memberships', ['tenant_id', 'role'])

    # ==========================================================================
    # service_coordinators
    # ==========================================================================
    op.create_table(
        'service_coordinators',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('scid', sa.String(50), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('zone', sa.String(2), nullable=False),
        sa.Column('role', sa.String(50), server_default='coordinator', nullable=False),
        sa.Column('supervisor_id', sa.Uuid(), nullable=True),
        sa.Column('manager_id', sa.Uuid(), nullable=True),
        sa.Column('director_id', sa.Uuid(), nullable=True),
        sa.Column('max_caseload', sa.Integer(), nullable=True),
        sa.Column('current_caseload', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('specializations', JSON_TYPE, nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['supervisor_id'], ['service_coordinators.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['manager_id'], ['service_coordinators.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['director_id'], ['service_coordinators.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'scid', name='uq_coordinator_tenant_scid'),
        sa.UniqueConstraint('tenant_id', 'email', name='uq_coordinator_tenant_email'),
        sa.CheckConstraint('current_caseload >= 0', name='ck_coordinator_caseload_non_negative'),
        sa.CheckConstraint(
            'max_caseload IS NULL OR current_caseload <= max_caseload',
            name='ck_coordinator_caseload_within_max',
        ),
        sa.CheckConstraint(f"zone IN {ZONE_VALUES}", name='ck_coordinator_zone_valid'),
    )
    op.create_index('ix_service_coordinators_user_id', 'service_coordinators', ['user_id'])
    op.create_index(
        'idx_coordinators_tenant_zone_active', 'service_coordinators', ['tenant_id', 'zone', 'is_active']
    )
    op.create_index(
        'idx_coordinators_tenant_role_active', 'service_coordinators', ['tenant_id', 'role', 'is_active']
    )
    op.create_index('idx_coordinators_zone_caseload', 'service_coordinators', ['zone', 'current_caseload'])

    # ==========================================================================
    # assignment_rules
    # ==========================================================================
    op.create_table(
        'assignment_rules',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('rule_name', sa.String(255), nullable=False),
        sa.Column('survey_type', sa.String(100), nullable=True),
        sa.Column('criteria', JSON_TYPE, nullable=False),
        sa.Column('assigned_role', sa.String(100), nullable=True),
        sa.Column('assigned_user_id', sa.Uuid(), nullable=True),
        sa.Column('priority', sa.Integer(), server_default=sa.text('1'), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            '(assigned_role IS NULL) <> (assigned_user_id IS NULL)',
            name='ck_assignment_rule_single_target',
        ),
    )
    op.create_index(
        'idx_assignment_rules_tenant_active_priority',
        'assignment_rules',
        ['tenant_id', 'is_active', 'priority'],
    )
    op.create_index('idx_assignment_rules_survey_type', 'assignment_rules', ['survey_type'])

    # ==========================================================================
    # members
    # ==========================================================================
    op.create_table(
        'members',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('member_id', sa.String(50), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('member_zone', sa.String(2), nullable=True),
        sa.Column('plan_type', sa.String(50), nullable=True),
        sa.Column('pics_score', sa.Numeric(5, 2), nullable=True),
        sa.Column('panels', JSON_TYPE, nullable=False),
        sa.Column('specializations_needed', JSON_TYPE, nullable=False),
        sa.Column('service_coordinator_id', sa.Uuid(), nullable=True),
        sa.Column('assigned_scid', sa.String(50), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(
            ['service_coordinator_id'], ['service_coordinators.id'], ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'member_id', name='uq_member_tenant_external_id'),
        sa.CheckConstraint(
            f"member_zone IS NULL OR member_zone IN {ZONE_VALUES}", name='ck_member_zone_valid'
        ),
    )
    op.create_index('idx_members_tenant_zone', 'members', ['tenant_id', 'member_zone'])
    op.create_index('idx_members_assigned_scid', 'members', ['assigned_scid'])
    op.create_index('idx_members_coordinator', 'members', ['service_coordinator_id'])

    # ==========================================================================
    # forms
    # ==========================================================================
    op.create_table(
        'form_templates',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('survey_type', sa.String(100), nullable=True),
        sa.Column('version', sa.Integer(), server_default=sa.text('1'), nullable=False),
        sa.Column('questions', JSON_TYPE, nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(with_updated=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'name', 'version', name='uq_form_template_version'),
    )

    op.create_table(
        'form_instances',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('template_id', sa.Uuid(), nullable=False),
        sa.Column('member_id', sa.Uuid(), nullable=False),
        sa.Column('owner_coordinator_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(20), server_default='draft', nullable=False),
        sa.Column('responses', JSON_TYPE, nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_by', sa.Uuid(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.String(1000), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['template_id'], ['form_templates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(
            ['owner_coordinator_id'], ['service_coordinators.id'], ondelete='SET NULL'
        ),
        sa.ForeignKeyConstraint(['reviewed_by'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_form_instances_tenant_status', 'form_instances', ['tenant_id', 'status'])
    op.create_index('idx_form_instances_owner', 'form_instances', ['owner_coordinator_id'])
    op.create_index('idx_form_instances_member', 'form_instances', ['member_id'])

    # ==========================================================================
    # audit_events (append-only)
    # ==========================================================================
    op.create_table(
        'audit_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('actor_id', sa.Uuid(), nullable=True),
        sa.Column('before_state', JSON_TYPE, nullable=True),
        sa.Column('after_state', JSON_TYPE, nullable=True),
        sa.Column('details', JSON_TYPE, nullable=True),
        sa.Column('prev_hash', sa.String(64), nullable=False),
        sa.Column('entry_hash', sa.String(64), nullable=False),
        *_timestamps(with_updated=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_audit_events_tenant_created', 'audit_events', ['tenant_id', 'created_at'])
    op.create_index('idx_audit_events_entity', 'audit_events', ['tenant_id', 'entity_type', 'entity_id'])
    op.create_index('idx_audit_events_actor', 'audit_events', ['tenant_id', 'actor_id'])


def downgrade() -> None:
    op.drop_table('audit_events')
    op.drop_table('form_instances')
    op.drop_table('form_templates')
    op.drop_table('members')
    op.drop_table('assignment_rules')
    op.drop_table('service_coordinators')
    op.drop_table('memberships')
    op.drop_table('users')
    op.drop_table('tenants')
