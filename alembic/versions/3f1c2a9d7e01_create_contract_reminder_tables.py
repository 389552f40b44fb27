"""create contract reminder tables

Revision ID: 3f1c2a9d7e01
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7e01'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create organizations, tenants, contracts, templates and reminders."""
    
    # 1. Organizations (scheduler_enabled NULL = reminders on)
    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('scheduler_enabled', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_organizations_id', 'organizations', ['id'], unique=False)
    op.create_index('ix_organizations_name', 'organizations', ['name'], unique=False)
    
    # 2. Tenants
    op.create_table(
        'tenants',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('business_name', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_tenants_organization_id', 'tenants', ['organization_id'], unique=False)
    
    # 3. Contracts (audit is append-only JSON)
    op.create_table(
        'contracts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.String(length=64), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='draft'),
        sa.Column('parties', sa.JSON(), nullable=False),
        sa.Column('effective_date', sa.DateTime(), nullable=True),
        sa.Column('expiry_date', sa.DateTime(), nullable=True),
        sa.Column('audit', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_contracts_id', 'contracts', ['id'], unique=False)
    op.create_index('ix_contracts_organization_id', 'contracts', ['organization_id'], unique=False)
    op.create_index('ix_contracts_tenant_id', 'contracts', ['tenant_id'], unique=False)
    op.create_index('idx_contracts_expiry_date', 'contracts', ['expiry_date'], unique=False)
    op.create_index('idx_contracts_org_tenant', 'contracts', ['organization_id', 'tenant_id'], unique=False)
    
    # 4. Reminder templates
    op.create_table(
        'reminder_templates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('channel', sa.String(length=16), nullable=False, server_default='email'),
        sa.Column('subject', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('body_html', sa.Text(), nullable=False, server_default=''),
        sa.Column('body_text', sa.Text(), nullable=False, server_default=''),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_reminder_templates_id', 'reminder_templates', ['id'], unique=False)
    op.create_index('ix_reminder_templates_organization_id', 'reminder_templates', ['organization_id'], unique=False)
    
    # 5. Reminders ((contract_id, send_at) is checked before insert, not unique)
    op.create_table(
        'reminders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('contract_id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.String(length=64), nullable=True),
        sa.Column('channel', sa.String(length=16), nullable=False, server_default='email'),
        sa.Column('template_id', sa.Integer(), nullable=True),
        sa.Column('send_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='scheduled'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('job_id', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['contract_id'], ['contracts.id']),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
        sa.ForeignKeyConstraint(['template_id'], ['reminder_templates.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_reminders_id', 'reminders', ['id'], unique=False)
    op.create_index('ix_reminders_contract_id', 'reminders', ['contract_id'], unique=False)
    op.create_index('ix_reminders_organization_id', 'reminders', ['organization_id'], unique=False)
    op.create_index('ix_reminders_tenant_id', 'reminders', ['tenant_id'], unique=False)
    op.create_index('ix_reminders_send_at', 'reminders', ['send_at'], unique=False)
    op.create_index('ix_reminders_status', 'reminders', ['status'], unique=False)
    op.create_index('idx_reminders_contract_send_at', 'reminders', ['contract_id', 'send_at'], unique=False)
    op.create_index('idx_reminders_status_send_at', 'reminders', ['status', 'send_at'], unique=False)


def downgrade() -> None:
    """Drop the contract reminder tables."""
    op.drop_table('reminders')
    op.drop_table('reminder_templates')
    op.drop_table('contracts')
    op.drop_table('tenants')
    op.drop_table('organizations')
