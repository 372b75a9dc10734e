"""Migration initiale - Création des tables Nestify

Revision ID: 001_initial
Revises:
Create Date: 2026-01-05 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUMS = {
    'userrole': ('admin', 'tenant', 'monitor'),
    'paymentmode': ('PLATFORM', 'OWN'),
    'tenurestatus': ('pending', 'active', 'inactive'),
    'invoicestatus': ('pending', 'paid', 'cancelled'),
    'paymentstatus': ('SUCCESS', 'FAILED', 'REFUNDED'),
    'settlementstatus': ('PENDING', 'COMPLETED', 'SETTLED', 'TRANSFERRED'),
    'runtype': ('auto', 'manual'),
    'runstatus': ('running', 'completed', 'failed'),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    # Créer les types ENUM (avec vérification d'existence)
    for name, values in ENUMS.items():
        labels = ", ".join(f"'{value}'" for value in values)
        op.execute(
            f"DO $$ BEGIN CREATE TYPE {name} AS ENUM ({labels}); "
            f"EXCEPTION WHEN duplicate_object THEN null; END $$;"
        )

    # Table users
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=200), nullable=False),
        sa.Column('role', _enum('userrole'), server_default='tenant', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('phone'),
    )
    op.create_index('idx_user_email_active', 'users', ['email', 'is_active'])
    op.create_index('idx_user_role', 'users', ['role'])

    # Table admins (résidences)
    op.create_table(
        'admins',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=200), nullable=False),
        sa.Column('hostel_name', sa.String(length=200), nullable=False),
        sa.Column('hostel_address', sa.Text(), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('stay_key', sa.String(length=20), nullable=False),
        sa.Column('payment_mode', _enum('paymentmode'), server_default='PLATFORM', nullable=False),
        sa.Column('razorpay_key_id', sa.String(length=100), nullable=True),
        sa.Column('razorpay_key_secret', sa.Text(), nullable=True),
        sa.Column('razorpay_webhook_secret', sa.Text(), nullable=True),
        sa.Column('razorpay_account_id', sa.String(length=100), nullable=True),
        sa.Column('billing_cycle_day', sa.Integer(), server_default='1', nullable=False),
        sa.Column('auto_billing_enabled', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('fixed_maintenance', sa.Numeric(precision=10, scale=2), server_default='0', nullable=False),
        sa.Column('fixed_electricity', sa.Numeric(precision=10, scale=2), server_default='0', nullable=False),
        sa.Column('fixed_water', sa.Numeric(precision=10, scale=2), server_default='0', nullable=False),
        sa.Column('late_fee_enabled', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('late_fee_daily_percent', sa.Numeric(precision=5, scale=2), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
        sa.UniqueConstraint('stay_key'),
        sa.CheckConstraint('billing_cycle_day >= 1 AND billing_cycle_day <= 28', name='valid_billing_cycle_day'),
        sa.CheckConstraint('late_fee_daily_percent >= 0', name='non_negative_late_fee'),
    )
    op.create_index('idx_admin_billing', 'admins', ['auto_billing_enabled', 'billing_cycle_day'])

    # Table rooms
    op.create_table(
        'rooms',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('admin_id', sa.Integer(), nullable=False),
        sa.Column('room_number', sa.String(length=20), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('capacity', sa.Integer(), server_default='1', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['admin_id'], ['admins.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('admin_id', 'room_number', name='unique_room_number'),
        sa.CheckConstraint('price >= 0', name='non_negative_rent'),
        sa.CheckConstraint('capacity > 0', name='positive_capacity'),
    )
    op.create_index('ix_rooms_admin_id', 'rooms', ['admin_id'])

    # Table tenures
    op.create_table(
        'tenures',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('admin_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('room_id', sa.Integer(), nullable=True),
        sa.Column('full_name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('status', _enum('tenurestatus'), server_default='pending', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['admin_id'], ['admins.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_tenure_admin_status', 'tenures', ['admin_id', 'status'])
    op.create_index('idx_tenure_user', 'tenures', ['user_id'])

    # Table invoices
    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('admin_id', sa.Integer(), nullable=False),
        sa.Column('tenure_id', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('status', _enum('invoicestatus'), server_default='pending', nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['admin_id'], ['admins.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['tenure_id'], ['tenures.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenure_id', 'month', 'year', name='unique_invoice_per_month'),
        sa.CheckConstraint('month >= 1 AND month <= 12', name='valid_invoice_month'),
        sa.CheckConstraint('total_amount >= 0', name='non_negative_total'),
    )
    op.create_index('idx_invoice_admin_status', 'invoices', ['admin_id', 'status'])
    op.create_index('idx_invoice_due', 'invoices', ['status', 'due_date'])

    # Table payments
    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=True),
        sa.Column('admin_id', sa.Integer(), nullable=True),
        sa.Column('tenure_id', sa.Integer(), nullable=True),
        sa.Column('gateway_name', sa.String(length=50), server_default='razorpay', nullable=False),
        sa.Column('gateway_order_id', sa.String(length=100), nullable=True),
        sa.Column('gateway_payment_id', sa.String(length=100), nullable=False),
        sa.Column('order_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payment_status', _enum('paymentstatus'), server_default='SUCCESS', nullable=False),
        sa.Column('payment_mode', _enum('paymentmode'), server_default='PLATFORM', nullable=False),
        sa.Column('settlement_status', _enum('settlementstatus'), server_default='PENDING', nullable=False),
        sa.Column('vendor_payout', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('platform_fee', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('transfer_id', sa.String(length=100), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['admin_id'], ['admins.id']),
        sa.ForeignKeyConstraint(['tenure_id'], ['tenures.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('gateway_payment_id'),
        sa.CheckConstraint('order_amount > 0', name='positive_amount'),
    )
    op.create_index('ix_payments_gateway_order_id', 'payments', ['gateway_order_id'])
    op.create_index('idx_payment_admin_mode', 'payments', ['admin_id', 'payment_mode'])
    op.create_index('idx_payment_status', 'payments', ['payment_status'])
    op.create_index('idx_payment_settlement', 'payments', ['settlement_status'])

    # Table platform_settlements
    op.create_table(
        'platform_settlements',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('admin_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('reference_id', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('recorded_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['admin_id'], ['admins.id']),
        sa.ForeignKeyConstraint(['recorded_by_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='positive_settlement'),
    )
    op.create_index('idx_settlement_admin', 'platform_settlements', ['admin_id'])

    # Table billing_runs
    op.create_table(
        'billing_runs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('job_name', sa.String(length=50), nullable=False),
        sa.Column('run_date', sa.Date(), nullable=False),
        sa.Column('run_type', _enum('runtype'), server_default='auto', nullable=False),
        sa.Column('status', _enum('runstatus'), server_default='running', nullable=False),
        sa.Column('triggered_by_id', sa.Integer(), nullable=True),
        sa.Column('processed_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('errors', sa.JSON(), nullable=False),
        sa.Column('execution_time_ms', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['triggered_by_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_billing_run_job_date', 'billing_runs', ['job_name', 'run_date'])

    # Table verification_codes
    op.create_table(
        'verification_codes',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=10), nullable=False),
        sa.Column('type', sa.String(length=50), server_default='PAYMENT_CONFIG', nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_verification_lookup', 'verification_codes', ['user_id', 'type', 'code'])


def downgrade() -> None:
    # Supprimer les tables dans l'ordre inverse
    op.drop_table('verification_codes')
    op.drop_table('billing_runs')
    op.drop_table('platform_settlements')
    op.drop_table('payments')
    op.drop_table('invoices')
    op.drop_table('tenures')
    op.drop_table('rooms')
    op.drop_table('admins')
    op.drop_table('users')

    # Supprimer les types ENUM
    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
