"""Organizations, staff users, services, incidents and incident audit log

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '202610190900'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ------------------------------
    # organizations
    # ------------------------------
    op.create_table(
        'organizations',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=False, unique=True),
        sa.Column('slug', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_organizations_slug', 'organizations', ['slug'], unique=True)

    # ------------------------------
    # users
    # ------------------------------
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        sa.Column('organization_id', sa.Uuid(), sa.ForeignKey('organizations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='viewer'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_organization_id', 'users', ['organization_id'])
    op.create_index('ix_users_role', 'users', ['role'])

    # ------------------------------
    # services
    # ------------------------------
    op.create_table(
        'services',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        sa.Column('organization_id', sa.Uuid(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(32), nullable=False, server_default='operational'),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_services_organization_id', 'services', ['organization_id'])
    op.create_index('ix_services_org_order', 'services', ['organization_id', 'display_order', 'name'])

    # ------------------------------
    # incidents
    # ------------------------------
    op.create_table(
        'incidents',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        sa.Column('organization_id', sa.Uuid(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('severity', sa.String(16), nullable=False, server_default='medium'),
        sa.Column('components_affected', sa.JSON(), nullable=False),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_incidents_organization_id', 'incidents', ['organization_id'])
    op.create_index('ix_incidents_org_created', 'incidents', ['organization_id', 'created_at'])

    # ------------------------------
    # incident_updates (audit log)
    # ------------------------------
    op.create_table(
        'incident_updates',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        sa.Column('incident_id', sa.Uuid(), sa.ForeignKey('incidents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_incident_updates_incident_id', 'incident_updates', ['incident_id'])

    # ------------------------------
    # incident_services (association)
    # ------------------------------
    op.create_table(
        'incident_services',
        sa.Column('incident_id', sa.Uuid(), sa.ForeignKey('incidents.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('service_id', sa.Uuid(), sa.ForeignKey('services.id', ondelete='CASCADE'), primary_key=True),
    )


def downgrade() -> None:
    op.drop_table('incident_services')
    op.drop_table('incident_updates')
    op.drop_table('incidents')
    op.drop_table('services')
    op.drop_table('users')
    op.drop_table('organizations')
