"""Create checkout tables: users, courses, coupons, payments, enrollments,
commissions, payouts and invoice sequences

Revision ID: 20261017_checkout
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '20261017_checkout'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade():
    """Create all checkout tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), nullable=True, unique=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='STUDENT'),
        sa.Column('gst_number', sa.String(15), nullable=True),
        sa.Column('is_gst_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table(
        'user_addresses',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('address_line1', sa.String(500), nullable=False),
        sa.Column('address_line2', sa.String(500), nullable=False, server_default=''),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('state', sa.String(100), nullable=False),
        sa.Column('pin_code', sa.String(20), nullable=False),
        sa.Column('country', sa.String(100), nullable=False, server_default='India'),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_user_addresses_user_id', 'user_addresses', ['user_id'])

    op.create_table(
        'courses',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price_inr', sa.Numeric(12, 2), nullable=False),
        sa.Column('price_usd', sa.Numeric(12, 2), nullable=True),
        sa.Column('commission_rate', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('current_enrollments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('instructor', sa.String(200), nullable=True),
        sa.Column('duration', sa.String(100), nullable=True),
        sa.Column('schedule', sa.String(300), nullable=True),
        sa.Column('live_session_link', sa.String(500), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'coupons',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('code', sa.String(50), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discount_type', sa.String(20), nullable=False, server_default='PERCENTAGE'),
        sa.Column('discount_value', sa.Numeric(12, 2), nullable=False),
        sa.Column('creator_role', sa.String(20), nullable=False, server_default='PLATFORM'),
        sa.Column('affiliate_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('max_usage_count', sa.Integer(), nullable=True),
        sa.Column('used_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('valid_from', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('valid_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("creator_role IN ('PLATFORM', 'AFFILIATE')", name='ck_coupon_creator_role'),
        sa.CheckConstraint("discount_type IN ('PERCENTAGE', 'FIXED')", name='ck_coupon_discount_type'),
        sa.CheckConstraint(
            "(creator_role = 'AFFILIATE') = (affiliate_id IS NOT NULL)",
            name='ck_coupon_affiliate_owner'
        ),
    )
    op.create_index('ix_coupons_code', 'coupons', ['code'])
    op.create_index('ix_coupons_affiliate_id', 'coupons', ['affiliate_id'])

    op.create_table(
        'coupon_courses',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('coupon_id', sa.Uuid(), sa.ForeignKey('coupons.id', ondelete='CASCADE'), nullable=False),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('coupon_id', 'course_id', name='uq_coupon_course'),
    )
    op.create_index('ix_coupon_courses_coupon_id', 'coupon_courses', ['coupon_id'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.id'), nullable=False),
        sa.Column('invoice_number', sa.String(20), nullable=False, unique=True),
        sa.Column('channel', sa.String(20), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('original_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('platform_discount_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('affiliate_discount_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('price_after_platform_discount', sa.Numeric(12, 2), nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('tax_rate', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('tax_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('final_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_clamped', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('affiliate_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('commission_rate', sa.Numeric(12, 2), nullable=True),
        sa.Column('commission_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('commission_paid', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('gateway_order_id', sa.String(100), nullable=True, unique=True),
        sa.Column('gateway_payment_id', sa.String(100), nullable=True, unique=True),
        sa.Column('gateway_signature', sa.String(256), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('enrollment_id', sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('final_amount >= 0', name='ck_payment_final_amount_non_negative'),
        sa.CheckConstraint("status IN ('PENDING', 'COMPLETED', 'FAILED')", name='ck_payment_status'),
    )
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])
    op.create_index('ix_payments_course_id', 'payments', ['course_id'])
    op.create_index('ix_payments_affiliate_id', 'payments', ['affiliate_id'])
    op.create_index('ix_payments_gateway_order_id', 'payments', ['gateway_order_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])

    op.create_table(
        'payment_coupons',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('payment_id', sa.Uuid(), sa.ForeignKey('payments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('coupon_id', sa.Uuid(), sa.ForeignKey('coupons.id'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('creator_role', sa.String(20), nullable=False),
        sa.Column('discount_type', sa.String(20), nullable=False),
        sa.Column('discount_value', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('clamped', sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index('ix_payment_coupons_payment_id', 'payment_coupons', ['payment_id'])

    op.create_table(
        'enrollments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.id'), nullable=False),
        sa.Column('payment_id', sa.Uuid(), sa.ForeignKey('payments.id'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='ACTIVE'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('payment_id', name='uq_enrollment_payment'),
    )
    op.create_index('ix_enrollments_user_id', 'enrollments', ['user_id'])
    op.create_index('ix_enrollments_course_id', 'enrollments', ['course_id'])

    op.create_table(
        'payouts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('affiliate_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('commission_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='COMPLETED'),
        sa.Column('payment_method', sa.String(50), nullable=False, server_default='Bank Transfer'),
        sa.Column('transaction_reference', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('processed_by', sa.Uuid(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_payouts_affiliate_id', 'payouts', ['affiliate_id'])

    op.create_table(
        'commissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('affiliate_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('payment_id', sa.Uuid(), sa.ForeignKey('payments.id'), nullable=False),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.id'), nullable=False),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('sale_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('commission_rate', sa.Numeric(12, 2), nullable=False),
        sa.Column('commission_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('payout_id', sa.Uuid(), sa.ForeignKey('payouts.id'), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('payment_id', name='uq_commission_payment'),
    )
    op.create_index('ix_commissions_affiliate_id', 'commissions', ['affiliate_id'])
    op.create_index('ix_commissions_status', 'commissions', ['status'])

    op.create_table(
        'invoice_sequences',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('channel', sa.String(20), nullable=False),
        sa.Column('financial_year', sa.String(4), nullable=False),
        sa.Column('current_number', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('channel', 'financial_year', name='uq_invoice_sequence_channel_fy'),
    )


def downgrade():
    """Drop all checkout tables."""
    for table in (
        'invoice_sequences',
        'commissions',
        'payouts',
        'enrollments',
        'payment_coupons',
        'payments',
        'coupon_courses',
        'coupons',
        'courses',
        'user_addresses',
        'users',
    ):
        op.drop_table(table)
