"""Create campaign ops schema

Revision ID: 001_campaign_schema
Revises:
Create Date: 2026-10-05
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB

# revision identifiers
revision = '001_campaign_schema'
down_revision = None
branch_labels = None
depends_on = None


def _flag(name):
    """Checklist flag plus its completion timestamp."""
    return [
        sa.Column(name, sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column(f'{name}_date', sa.DateTime(timezone=True), nullable=True),
    ]


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    ]


def upgrade():
    """Create campaign ops tables"""

    # ====================
    # SUPPLIERS
    # ====================
    op.create_table(
        'suppliers',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), unique=True, nullable=False),
        sa.Column('phone', sa.String(30), server_default='', nullable=False),
        sa.Column('active', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('company_name', sa.String(200), nullable=True),
        sa.Column('address', sa.Text, nullable=True),
        sa.Column('backup_contact_name', sa.String(200), nullable=True),
        sa.Column('backup_contact_email', sa.String(255), nullable=True),
        sa.Column('backup_contact_phone', sa.String(30), nullable=True),
        sa.Column('business_registration_number', sa.String(100), nullable=True),
        sa.Column('bank_account_number', sa.String(100), nullable=True),
        sa.Column('bank_name', sa.String(200), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_suppliers_email', 'suppliers', ['email'])

    # ====================
    # CAMPAIGN PACKAGES
    # ====================
    op.create_table(
        'campaign_packages',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('image_path', sa.String(500), nullable=True),
        sa.Column('affiliate_count', sa.Integer, nullable=False),
        sa.Column('video_count_per_affiliate', sa.Integer, server_default='1', nullable=False),
        sa.Column('total_videos', sa.Integer, nullable=False),
        sa.Column('original_price', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('current_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('supplier_cost', sa.Numeric(12, 2), nullable=False),
        sa.Column('commission_rate', sa.Numeric(5, 2), server_default='10', nullable=False),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            'commission_rate >= 0 AND commission_rate <= 100',
            name='ck_package_commission_rate'
        ),
    )

    # ====================
    # ROLE ASSIGNMENTS
    # ====================
    op.create_table(
        'role_assignments',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('email', sa.String(255), unique=True, nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('supplier_id', UUID(as_uuid=True),
                  sa.ForeignKey('suppliers.id', ondelete='CASCADE'), nullable=True),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('ix_role_assignments_email', 'role_assignments', ['email'])

    # ====================
    # ORDERS
    # ====================
    op.create_table(
        'orders',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tracking_code', sa.String(8), unique=True, nullable=False),
        sa.Column('account_manager', sa.String(200), server_default='Agency Owner', nullable=False),
        sa.Column('client_name', sa.String(200), nullable=False),
        sa.Column('client_email', sa.String(255), nullable=False),
        sa.Column('client_phone', sa.String(30), server_default='', nullable=False),
        sa.Column('product_name', sa.String(300), nullable=False),
        sa.Column('product_description', sa.Text, server_default='', nullable=False),
        sa.Column('product_tiktok_link', sa.String(500), nullable=True),
        sa.Column('payment_receipt_url', sa.String(500), nullable=True),
        sa.Column('payment_receipt_number', sa.String(100), nullable=True),
        sa.Column('special_requests', sa.Text, server_default='', nullable=False),
        sa.Column('package_id', UUID(as_uuid=True),
                  sa.ForeignKey('campaign_packages.id', ondelete='SET NULL'), nullable=True),
        sa.Column('package_name', sa.String(200), server_default='', nullable=False),
        sa.Column('affiliate_count', sa.Integer, nullable=False),
        sa.Column('video_count_per_affiliate', sa.Integer, server_default='1', nullable=False),
        sa.Column('total_videos', sa.Integer, nullable=False),
        sa.Column('price_client', sa.Numeric(12, 2), nullable=False),
        sa.Column('price_discount', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('cost_supplier', sa.Numeric(12, 2), nullable=False),
        sa.Column('profit', sa.Numeric(12, 2), nullable=False),
        sa.Column('commission_rate', sa.Numeric(5, 2), server_default='10', nullable=False),
        sa.Column('supplier_id', UUID(as_uuid=True),
                  sa.ForeignKey('suppliers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('supplier_name', sa.String(200), nullable=True),
        sa.Column('compliance_commission_set', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('compliance_terms_acknowledged', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('compliance_verbal_briefing', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('compliance_shipping_acknowledged', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('compliance_content_guidelines_provided', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('status', sa.String(50), server_default='PENDING_PAYMENT', nullable=False),
        sa.Column('supplier_payment_status', sa.String(30), server_default='unpaid', nullable=False),
        sa.Column('supplier_payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('supplier_payment_proof_url', sa.String(500), nullable=True),
        sa.Column('supplier_payment_verified_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('client_shipment_proof_url', sa.String(500), nullable=True),
        sa.Column('content_guidelines', sa.Text, nullable=True),
        sa.Column('report_url', sa.String(500), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_orders_tracking_code', 'orders', ['tracking_code'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_supplier_id', 'orders', ['supplier_id'])
    op.create_index('ix_order_status_created', 'orders', ['status', 'created_at'])
    op.create_index('ix_order_supplier_payment', 'orders', ['supplier_payment_status', 'supplier_payment_date'])

    # ====================
    # PROGRESS CHECKLISTS
    # ====================
    op.create_table(
        'order_agency_progress',
        sa.Column('order_id', UUID(as_uuid=True),
                  sa.ForeignKey('orders.id', ondelete='CASCADE'), primary_key=True),
        *_flag('client_paid'),
        *_flag('supplier_paid'),
        *_flag('guidelines_approved'),
        *_flag('agreement_signed'),
        *_flag('commission_set'),
        *_flag('affiliates_selected'),
        *_flag('briefing_completed'),
        *_flag('samples_received'),
        *_flag('production_started'),
        *_flag('videos_completed'),
        *_flag('report_sent'),
    )

    op.create_table(
        'order_supplier_progress',
        sa.Column('order_id', UUID(as_uuid=True),
                  sa.ForeignKey('orders.id', ondelete='CASCADE'), primary_key=True),
        *_flag('affiliates_submitted'),
        sa.Column('affiliate_sheet_url', sa.String(500), nullable=True),
        sa.Column('sheet_link_accessible', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('sheet_count_matches', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('sheet_all_columns_complete', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('sheet_affiliates_suitable', sa.Boolean, server_default=sa.false(), nullable=False),
        *_flag('briefing_completed'),
        *_flag('samples_received_by_affiliates'),
        *_flag('production_started'),
        sa.Column('video_start_date', sa.Date, nullable=True),
        sa.Column('video_deadline', sa.Date, nullable=True),
        *_flag('all_videos_completed'),
        *_flag('report_submitted'),
        sa.Column('report_url', sa.String(500), nullable=True),
    )

    # ====================
    # ORDER CHILDREN
    # ====================
    op.create_table(
        'order_affiliates',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('order_id', UUID(as_uuid=True),
                  sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('tiktok_handle', sa.String(100), nullable=False),
        sa.Column('profile_url', sa.String(500), nullable=True),
        sa.Column('sample_received', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('video_completed', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('video_url', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('ix_order_affiliates_order_id', 'order_affiliates', ['order_id'])

    op.create_table(
        'order_notes',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('order_id', UUID(as_uuid=True),
                  sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('created_by', sa.String(255), nullable=False),
        sa.Column('created_by_name', sa.String(200), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('ix_order_notes_order_id', 'order_notes', ['order_id'])

    op.create_table(
        'order_status_history',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('order_id', UUID(as_uuid=True),
                  sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('field', sa.String(100), nullable=False),
        sa.Column('old_value', sa.String(500), server_default='', nullable=False),
        sa.Column('new_value', sa.String(500), server_default='', nullable=False),
        sa.Column('changed_by', sa.String(255), nullable=False),
        sa.Column('changed_by_name', sa.String(200), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('ix_order_status_history_order_id', 'order_status_history', ['order_id'])

    # ====================
    # ACTIVITY LOG / LOGIN
    # ====================
    op.create_table(
        'activity_logs',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_email', sa.String(255), nullable=False),
        sa.Column('user_role', sa.String(20), nullable=False),
        sa.Column('action_type', sa.String(50), nullable=False),
        sa.Column('action_description', sa.Text, nullable=True),
        sa.Column('related_entity_type', sa.String(20), nullable=True),
        sa.Column('related_entity_id', sa.String(64), nullable=True),
        sa.Column('metadata', JSONB, nullable=True),
        sa.Column('ip_address', sa.String(50), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('ix_activity_logs_user_email', 'activity_logs', ['user_email'])
    op.create_index('ix_activity_logs_action_type', 'activity_logs', ['action_type'])
    op.create_index('ix_activity_logs_created_at', 'activity_logs', ['created_at'])

    op.create_table(
        'login_otps',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('otp_hash', sa.String(255), nullable=False),
        sa.Column('is_used', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_login_otps_email', 'login_otps', ['email'])


def downgrade():
    """Drop campaign ops tables"""
    op.drop_table('login_otps')
    op.drop_table('activity_logs')
    op.drop_table('order_status_history')
    op.drop_table('order_notes')
    op.drop_table('order_affiliates')
    op.drop_table('order_supplier_progress')
    op.drop_table('order_agency_progress')
    op.drop_table('orders')
    op.drop_table('role_assignments')
    op.drop_table('campaign_packages')
    op.drop_table('suppliers')
