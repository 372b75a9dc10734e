"""Order Razorpay rattaché à la facture, essais des codes OTP

Revision ID: 002_invoice_order_and_otp_attempts
Revises: 001_initial
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '002_invoice_order_and_otp_attempts'
down_revision: Union[str, None] = '001_initial'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    payment_mode = postgresql.ENUM('PLATFORM', 'OWN', name='paymentmode', create_type=False)

    with op.batch_alter_table('invoices') as batch_op:
        batch_op.add_column(sa.Column('gateway_order_id', sa.String(length=100), nullable=True))
        batch_op.add_column(sa.Column('gateway_payment_mode', payment_mode, nullable=True))
        batch_op.add_column(sa.Column('gateway_order_amount', sa.Numeric(precision=12, scale=2), nullable=True))
        batch_op.create_index('idx_invoice_gateway_order', ['gateway_order_id'])

    with op.batch_alter_table('verification_codes') as batch_op:
        batch_op.add_column(sa.Column('attempts', sa.Integer(), server_default='0', nullable=False))


def downgrade() -> None:
    with op.batch_alter_table('verification_codes') as batch_op:
        batch_op.drop_column('attempts')

    with op.batch_alter_table('invoices') as batch_op:
        batch_op.drop_index('idx_invoice_gateway_order')
        batch_op.drop_column('gateway_order_amount')
        batch_op.drop_column('gateway_payment_mode')
        batch_op.drop_column('gateway_order_id')
