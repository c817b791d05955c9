"""initial fulfillment schema

Revision ID: b0h1a2b3c4d5
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the Bags of Hope schema:
- categories: item classification and standard values
- shipping_batches / batch_sequences: courier runs and their numbering
- bags_of_hope: one request per child, with lifecycle milestones
- inventory_transactions: append-only ledger
- inventory_levels: per-category cache of the ledger
- submissions: public intake-form requests
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b0h1a2b3c4d5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # categories
    # ============================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('age_group', sa.String(length=16), nullable=False),
        sa.Column('gender', sa.String(length=16), nullable=False),
        sa.Column('item_type', sa.String(length=64), nullable=False),
        sa.Column('standard_value_new_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reorder_point', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('display_order', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('standard_value_new_cents >= 0', name='ck_categories_value_nonneg'),
        sa.CheckConstraint('reorder_point >= 0', name='ck_categories_reorder_nonneg'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_categories_age_group', 'categories', ['age_group'])
    op.create_index('ix_categories_gender', 'categories', ['gender'])
    op.create_index('ix_categories_item_type', 'categories', ['item_type'])
    op.create_index('ix_categories_active_order', 'categories', ['is_active', 'display_order'])

    # ============================================================================
    # shipping_batches + batch_sequences
    # ============================================================================
    op.create_table(
        'shipping_batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('batch_number', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='open'),
        sa.Column('courier_name', sa.String(length=120), nullable=True),
        sa.Column('tracking_number', sa.String(length=120), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('scheduled_pickup_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('picked_up_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('batch_number', name='uq_shipping_batches_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shipping_batches_status', 'shipping_batches', ['status'])
    op.create_index('ix_shipping_batches_created_at', 'shipping_batches', ['created_at'])
    op.create_index('ix_shipping_batches_status_created', 'shipping_batches', ['status', 'created_at'])

    op.create_table(
        'batch_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sequence_key', sa.String(length=16), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sequence_key', name='uq_batch_sequences_key'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # bags_of_hope
    # ============================================================================
    op.create_table(
        'bags_of_hope',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.String(length=64), nullable=True),

        sa.Column('child_first_name', sa.String(length=120), nullable=True),
        sa.Column('child_last_name', sa.String(length=120), nullable=True),
        sa.Column('birthday', sa.Date(), nullable=True),
        sa.Column('child_age', sa.Integer(), nullable=True),
        sa.Column('child_age_group', sa.String(length=16), nullable=False),
        sa.Column('child_gender', sa.String(length=16), nullable=False),
        sa.Column('ethnicity', sa.String(length=32), nullable=True),

        sa.Column('pickup_location', sa.String(length=64), nullable=True),
        sa.Column('recipient_name', sa.String(length=120), nullable=True),
        sa.Column('recipient_phone', sa.String(length=32), nullable=True),
        sa.Column('delivery_address', sa.String(length=255), nullable=True),
        sa.Column('delivery_notes', sa.Text(), nullable=True),

        sa.Column('bag_embroidery_company', sa.String(length=120), nullable=True),
        sa.Column('bag_order_number', sa.String(length=64), nullable=True),
        sa.Column('bag_embroidery_color', sa.String(length=32), nullable=True),
        sa.Column('toiletry_bag_color', sa.String(length=32), nullable=True),
        sa.Column('toiletry_bag_labeled', sa.String(length=64), nullable=True),

        sa.Column('toy_activity', sa.Text(), nullable=True),
        sa.Column('tops', sa.Text(), nullable=True),
        sa.Column('bottoms', sa.Text(), nullable=True),
        sa.Column('pajamas', sa.Text(), nullable=True),
        sa.Column('underwear', sa.Text(), nullable=True),
        sa.Column('diaper_pullup', sa.Text(), nullable=True),
        sa.Column('shoes', sa.Text(), nullable=True),
        sa.Column('coat', sa.Text(), nullable=True),

        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),

        # Milestones
        sa.Column('picked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('packed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('packed_by', sa.String(length=120), nullable=True),
        sa.Column('shipped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),

        sa.Column('tracking_number', sa.String(length=120), nullable=True),
        sa.Column('shipping_carrier', sa.String(length=120), nullable=True),
        sa.Column('batch_id', sa.Integer(), nullable=True),

        # Optimistic lock counter
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),

        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['batch_id'], ['shipping_batches.id'], name='fk_bags_of_hope_batch_id_shipping_batches'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_bags_of_hope_request_id', 'bags_of_hope', ['request_id'])
    op.create_index('ix_bags_of_hope_status', 'bags_of_hope', ['status'])
    op.create_index('ix_bags_of_hope_created_at', 'bags_of_hope', ['created_at'])
    op.create_index('ix_bags_status_created', 'bags_of_hope', ['status', 'created_at'])
    op.create_index('ix_bags_batch_status', 'bags_of_hope', ['batch_id', 'status'])

    # ============================================================================
    # inventory_transactions: append-only ledger
    # ============================================================================
    op.create_table(
        'inventory_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('source_type', sa.String(length=16), nullable=True),
        sa.Column('condition', sa.String(length=8), nullable=False, server_default='new'),

        # Positive for every type except adjustment, which is signed
        sa.Column('quantity', sa.Integer(), nullable=False),

        # Frozen at write time
        sa.Column('unit_value_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_value_cents', sa.Integer(), nullable=False, server_default='0'),

        sa.Column('bag_of_hope_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('receipt_reference', sa.String(length=120), nullable=True),
        sa.Column('created_by', sa.String(length=120), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], name='fk_inventory_transactions_category_id_categories'),
        sa.ForeignKeyConstraint(['bag_of_hope_id'], ['bags_of_hope.id'], name='fk_inventory_transactions_bag_of_hope_id_bags_of_hope'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_transactions_category_id', 'inventory_transactions', ['category_id'])
    op.create_index('ix_inventory_transactions_transaction_type', 'inventory_transactions', ['transaction_type'])
    op.create_index('ix_inventory_transactions_bag_of_hope_id', 'inventory_transactions', ['bag_of_hope_id'])
    op.create_index('ix_inventory_transactions_created_at', 'inventory_transactions', ['created_at'])
    op.create_index('ix_invtx_category_created', 'inventory_transactions', ['category_id', 'created_at'])
    op.create_index('ix_invtx_category_type', 'inventory_transactions', ['category_id', 'transaction_type'])

    # ============================================================================
    # inventory_levels: cache, maintained in the same transaction as the ledger
    # ============================================================================
    op.create_table(
        'inventory_levels',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('quantity_on_hand', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity_new', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_value_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_intake_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_pick_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity_on_hand = quantity_new + quantity_used',
                           name='ck_inventory_levels_on_hand_split'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], name='fk_inventory_levels_category_id_categories'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('category_id', name='uq_inventory_levels_category'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # submissions
    # ============================================================================
    op.create_table(
        'submissions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('child_first_name', sa.String(length=120), nullable=False),
        sa.Column('child_last_name', sa.String(length=120), nullable=False),
        sa.Column('birthday', sa.Date(), nullable=True),
        sa.Column('child_gender', sa.String(length=16), nullable=False),
        sa.Column('ethnicity', sa.String(length=32), nullable=True),
        sa.Column('pickup_location', sa.String(length=64), nullable=False),
        sa.Column('clothing_needs', sa.Text(), nullable=True),
        sa.Column('toy_preferences', sa.Text(), nullable=True),
        sa.Column('special_notes', sa.Text(), nullable=True),
        sa.Column('caregiver_name', sa.String(length=120), nullable=True),
        sa.Column('caregiver_phone', sa.String(length=32), nullable=True),
        sa.Column('caregiver_email', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('processed_by', sa.String(length=120), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('bag_of_hope_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['bag_of_hope_id'], ['bags_of_hope.id'], name='fk_submissions_bag_of_hope_id_bags_of_hope'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_submissions_status', 'submissions', ['status'])
    op.create_index('ix_submissions_bag_of_hope_id', 'submissions', ['bag_of_hope_id'])
    op.create_index('ix_submissions_created_at', 'submissions', ['created_at'])
    op.create_index('ix_submissions_status_created', 'submissions', ['status', 'created_at'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('submissions')
    op.drop_table('inventory_levels')
    op.drop_table('inventory_transactions')
    op.drop_table('bags_of_hope')
    op.drop_table('batch_sequences')
    op.drop_table('shipping_batches')
    op.drop_table('categories')
