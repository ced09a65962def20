"""Version ticket tiers, staff payout status and staff ticket transfers

Revision ID: 20261020_tiers_transfers
Revises: 20261019_eventpay_initial
Create Date: 2026-10-20

This migration adds:
1. version_id / updated_at on ticket_tiers (sold-out check under concurrency)
2. settlement_status / settlement_paid_at / settlement_notes on seller_nodes
3. staff_transfers table
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261020_tiers_transfers'
down_revision = '20261019_eventpay_initial'
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table('ticket_tiers', schema=None) as batch_op:
        batch_op.add_column(sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'))
        batch_op.add_column(sa.Column(
            'updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False
        ))

    with op.batch_alter_table('seller_nodes', schema=None) as batch_op:
        batch_op.add_column(sa.Column('settlement_status', sa.String(length=16), nullable=False, server_default='PENDING'))
        batch_op.add_column(sa.Column('settlement_paid_at', sa.DateTime(timezone=True), nullable=True))
        batch_op.add_column(sa.Column('settlement_notes', sa.Text(), nullable=True))

    op.create_table('staff_transfers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('from_seller_id', sa.Integer(), nullable=False),
        sa.Column('to_seller_id', sa.Integer(), nullable=False),
        sa.Column('ticket_quantity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('requested_by_user_id', sa.Integer(), nullable=False),
        sa.Column('responded_by_user_id', sa.Integer(), nullable=True),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('from_balance_before', sa.Integer(), nullable=True),
        sa.Column('from_balance_after', sa.Integer(), nullable=True),
        sa.Column('to_balance_before', sa.Integer(), nullable=True),
        sa.Column('to_balance_after', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ),
        sa.ForeignKeyConstraint(['from_seller_id'], ['seller_nodes.id'], ),
        sa.ForeignKeyConstraint(['to_seller_id'], ['seller_nodes.id'], ),
        sa.ForeignKeyConstraint(['requested_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['responded_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('staff_transfers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_staff_transfers_event_id'), ['event_id'], unique=False)
        batch_op.create_index('ix_staff_transfers_from_status', ['from_seller_id', 'status'], unique=False)
        batch_op.create_index('ix_staff_transfers_to_status', ['to_seller_id', 'status'], unique=False)


def downgrade():
    with op.batch_alter_table('staff_transfers', schema=None) as batch_op:
        batch_op.drop_index('ix_staff_transfers_to_status')
        batch_op.drop_index('ix_staff_transfers_from_status')
        batch_op.drop_index(batch_op.f('ix_staff_transfers_event_id'))
    op.drop_table('staff_transfers')

    with op.batch_alter_table('seller_nodes', schema=None) as batch_op:
        batch_op.drop_column('settlement_notes')
        batch_op.drop_column('settlement_paid_at')
        batch_op.drop_column('settlement_status')

    with op.batch_alter_table('ticket_tiers', schema=None) as batch_op:
        batch_op.drop_column('updated_at')
        batch_op.drop_column('version_id')
