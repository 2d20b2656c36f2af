"""initial_bid2_schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('company', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=True),
        sa.Column('onboarded', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('categories', sa.JSON(), nullable=False),
        sa.Column('service_area', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_user_email', 'user', ['email'])
    op.create_index('ix_user_role', 'user', ['role'])

    op.create_table(
        'auth_session',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('session_token_hash', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_auth_session_email', 'auth_session', ['email'])
    op.create_index('ix_auth_session_user_id', 'auth_session', ['user_id'])
    op.create_index('ix_auth_session_session_token_hash', 'auth_session', ['session_token_hash'])

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('user_agent', sa.String(), nullable=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('resource_type', sa.String(), nullable=True),
        sa.Column('resource_id', sa.String(), nullable=True),
        sa.Column('details', sa.String(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('error_message', sa.String(), nullable=True),
    )
    op.create_index('ix_audit_log_timestamp', 'audit_log', ['timestamp'])
    op.create_index('ix_audit_log_user_id', 'audit_log', ['user_id'])
    op.create_index('ix_audit_log_action', 'audit_log', ['action'])

    op.create_table(
        'rfq',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('contractor_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('raw_text', sa.String(), nullable=False),
        sa.Column('structured_data', sa.JSON(), nullable=False),
        sa.Column('matched_supplier_ids', sa.JSON(), nullable=False),
        sa.Column('selected_bid_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('selected_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_rfq_contractor_id', 'rfq', ['contractor_id'])
    op.create_index('ix_rfq_status', 'rfq', ['status'])
    op.create_index('ix_rfq_created_at', 'rfq', ['created_at'])

    op.create_table(
        'rfq_recipient',
        sa.Column('rfq_id', sa.Integer(), sa.ForeignKey('rfq.id'), primary_key=True),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('user.id'), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_rfq_recipient_supplier_id', 'rfq_recipient', ['supplier_id'])

    op.create_table(
        'bid',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('rfq_id', sa.Integer(), sa.ForeignKey('rfq.id'), nullable=False),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('lead_time', sa.String(), nullable=False),
        sa.Column('delivery_window', sa.String(), nullable=True),
        sa.Column('notes', sa.String(), nullable=True),
        sa.Column('selected', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('rfq_id', 'supplier_id', name='uq_bid_rfq_supplier'),
    )
    op.create_index('ix_bid_rfq_id', 'bid', ['rfq_id'])
    op.create_index('ix_bid_supplier_id', 'bid', ['supplier_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('bid')
    op.drop_table('rfq_recipient')
    op.drop_table('rfq')
    op.drop_table('audit_log')
    op.drop_table('auth_session')
    op.drop_table('user')
