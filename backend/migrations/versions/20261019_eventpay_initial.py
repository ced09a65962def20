"""EventPay initial schema: users, sessions, credits, events, tickets, payment configs, seller tree

Revision ID: 20261019_eventpay_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. Users, session tokens, organizer credits
2. Events, ticket tiers, ticket ledger
3. Payment model configs (one per event) and their audit trail
4. Seller nodes (flat tree, one root per event)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_eventpay_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. ACCOUNTS
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('payment_account_id', sa.String(length=128), nullable=True),
        sa.Column('payment_setup_complete', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_username'), ['username'], unique=True)

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_session_tokens_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_session_tokens_token_hash'), ['token_hash'], unique=True)

    op.create_table('organizer_credits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organizer_id', sa.Integer(), nullable=False),
        sa.Column('credits_total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('credits_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['organizer_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('organizer_credits', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_organizer_credits_organizer_id'), ['organizer_id'], unique=True)

    # ==========================================================================
    # 2. EVENTS AND TIERS
    # ==========================================================================
    op.create_table('events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organizer_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_model_selected', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('tickets_visible', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['organizer_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('events', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_events_organizer_id'), ['organizer_id'], unique=False)

    op.create_table('ticket_tiers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('ticket_tiers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_ticket_tiers_event_id'), ['event_id'], unique=False)

    # ==========================================================================
    # 3. PAYMENT MODEL CONFIGS
    # ==========================================================================
    op.create_table('payment_model_configs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('organizer_id', sa.Integer(), nullable=False),
        sa.Column('payment_model', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('activated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deactivated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('platform_fee_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('platform_fee_fixed_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('processing_fee_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('charity_discount', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('low_price_discount', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('tickets_allocated', sa.Integer(), nullable=True),
        sa.Column('merchant_processor', sa.String(length=16), nullable=True),
        sa.Column('credit_card_enabled', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('cash_app_enabled', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('floated_tickets', sa.Integer(), nullable=True),
        sa.Column('sold_tickets', sa.Integer(), nullable=True),
        sa.Column('settlement_due_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('consignment_settled', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('settled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('settled_by_user_id', sa.Integer(), nullable=True),
        sa.Column('settlement_amount_cents', sa.Integer(), nullable=True),
        sa.Column('settlement_revenue_cents', sa.Integer(), nullable=True),
        sa.Column('settlement_fees_cents', sa.Integer(), nullable=True),
        sa.Column('settlement_notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ),
        sa.ForeignKeyConstraint(['organizer_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['settled_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', name='uq_payment_model_configs_event'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('payment_model_configs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_payment_model_configs_organizer_id'), ['organizer_id'], unique=False)
        batch_op.create_index('ix_payment_model_configs_model', ['payment_model'], unique=False)

    op.create_table('payment_audit_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('config_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ),
        sa.ForeignKeyConstraint(['config_id'], ['payment_model_configs.id'], ),
        sa.ForeignKeyConstraint(['actor_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('payment_audit_events', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_payment_audit_events_config_id'), ['config_id'], unique=False)
        batch_op.create_index('ix_payment_audit_events_event_occurred', ['event_id', 'occurred_at'], unique=False)

    # ==========================================================================
    # 4. SELLER TREE
    # ==========================================================================
    op.create_table('seller_nodes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('depth', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('referral_code', sa.String(length=16), nullable=False),
        sa.Column('allocated_tickets', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_sub_sellers', sa.Integer(), nullable=True),
        sa.Column('commission_type', sa.String(length=16), nullable=False, server_default='FIXED'),
        sa.Column('commission_value', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('capability_flags', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ),
        sa.ForeignKeyConstraint(['parent_id'], ['seller_nodes.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('referral_code'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('seller_nodes', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_seller_nodes_user_id'), ['user_id'], unique=False)
        batch_op.create_index('ix_seller_nodes_event_parent', ['event_id', 'parent_id'], unique=False)
        batch_op.create_index(
            'uq_seller_nodes_event_root',
            ['event_id'],
            unique=True,
            sqlite_where=sa.text('parent_id IS NULL'),
            postgresql_where=sa.text('parent_id IS NULL'),
        )

    # ==========================================================================
    # 5. TICKET LEDGER
    # ==========================================================================
    op.create_table('tickets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('tier_id', sa.Integer(), nullable=False),
        sa.Column('ticket_code', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='VALID'),
        sa.Column('payment_method', sa.String(length=16), nullable=True),
        sa.Column('sold_by_seller_id', sa.Integer(), nullable=True),
        sa.Column('buyer_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('scanned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('scanned_by_seller_id', sa.Integer(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ),
        sa.ForeignKeyConstraint(['sold_by_seller_id'], ['seller_nodes.id'], ),
        sa.ForeignKeyConstraint(['scanned_by_seller_id'], ['seller_nodes.id'], ),
        sa.ForeignKeyConstraint(['buyer_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('tickets', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_tickets_tier_id'), ['tier_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_tickets_ticket_code'), ['ticket_code'], unique=True)
        batch_op.create_index('ix_tickets_event_status', ['event_id', 'status'], unique=False)
        batch_op.create_index('ix_tickets_seller_status', ['sold_by_seller_id', 'status'], unique=False)


def downgrade():
    with op.batch_alter_table('tickets', schema=None) as batch_op:
        batch_op.drop_index('ix_tickets_seller_status')
        batch_op.drop_index('ix_tickets_event_status')
        batch_op.drop_index(batch_op.f('ix_tickets_ticket_code'))
        batch_op.drop_index(batch_op.f('ix_tickets_tier_id'))
    op.drop_table('tickets')

    with op.batch_alter_table('seller_nodes', schema=None) as batch_op:
        batch_op.drop_index('uq_seller_nodes_event_root')
        batch_op.drop_index('ix_seller_nodes_event_parent')
        batch_op.drop_index(batch_op.f('ix_seller_nodes_user_id'))
    op.drop_table('seller_nodes')

    with op.batch_alter_table('payment_audit_events', schema=None) as batch_op:
        batch_op.drop_index('ix_payment_audit_events_event_occurred')
        batch_op.drop_index(batch_op.f('ix_payment_audit_events_config_id'))
    op.drop_table('payment_audit_events')

    with op.batch_alter_table('payment_model_configs', schema=None) as batch_op:
        batch_op.drop_index('ix_payment_model_configs_model')
        batch_op.drop_index(batch_op.f('ix_payment_model_configs_organizer_id'))
    op.drop_table('payment_model_configs')

    with op.batch_alter_table('ticket_tiers', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_ticket_tiers_event_id'))
    op.drop_table('ticket_tiers')

    with op.batch_alter_table('events', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_events_organizer_id'))
    op.drop_table('events')

    with op.batch_alter_table('organizer_credits', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_organizer_credits_organizer_id'))
    op.drop_table('organizer_credits')

    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_session_tokens_token_hash'))
        batch_op.drop_index(batch_op.f('ix_session_tokens_user_id'))
    op.drop_table('session_tokens')

    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_users_username'))
    op.drop_table('users')
