"""Add login OTP and verification expiry columns to users

Revision ID: b7e2d41c9a58
Revises: 3f1c9b2d7a10
Create Date: 2026-10-20 09:41:03.277514

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'b7e2d41c9a58'
down_revision: Union[str, Sequence[str], None] = '3f1c9b2d7a10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.add_column(sa.Column('verification_expires_at', sa.DateTime, nullable=True))
        batch_op.add_column(sa.Column('otp_code', sa.String(6), nullable=True))
        batch_op.add_column(sa.Column('otp_expires_at', sa.DateTime, nullable=True))


def downgrade() -> None:
    """Downgrade schema."""
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.drop_column('otp_expires_at')
        batch_op.drop_column('otp_code')
        batch_op.drop_column('verification_expires_at')
