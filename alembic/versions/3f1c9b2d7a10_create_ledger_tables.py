"""create users, accounts, categories and transactions tables

Revision ID: 3f1c9b2d7a10
Revises:
Create Date: 2026-10-19 10:12:41.508311

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9b2d7a10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

transaction_type = sa.Enum('INCOME', 'EXPENSE', 'INVESTMENT', 'TRANSFER', 'DIVIDEND', 'RESCUE', name='transactiontype')
transaction_status = sa.Enum('PENDING', 'COMPLETED', 'REVERSED', name='transactionstatus')
account_status = sa.Enum('ACTIVE', 'SUSPENDED', 'CLOSED', name='accountstatus')
user_status = sa.Enum('PENDING', 'ACTIVE', 'SUSPENDED', 'INACTIVE', name='userstatus')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('national_id', sa.String(14), nullable=False),
        sa.Column('phone', sa.String(20), nullable=False),
        sa.Column('status', user_status, nullable=True),
        sa.Column('is_email_verified', sa.Boolean, nullable=True),
        sa.Column('verification_token', sa.String(64), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=True),
        sa.UniqueConstraint('email', name='uq_user_email'),
        sa.UniqueConstraint('national_id', name='uq_user_national_id'),
        sa.UniqueConstraint('phone', name='uq_user_phone'),
    )
    op.create_index('idx_users_email', 'users', ['email'])

    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id'), nullable=False),
        sa.Column('account_name', sa.String(50), nullable=False),
        sa.Column('color', sa.String(7), nullable=True),
        sa.Column('icon', sa.String(50), nullable=True),
        sa.Column('status', account_status, nullable=True),
        sa.Column('balance', sa.DECIMAL(15, 2), nullable=False),
        sa.Column('balance_last_updated', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=True),
        sa.UniqueConstraint('user_id', 'account_name', name='uq_user_account_name'),
    )

    op.create_table(
        'categories',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('icon', sa.String(50), nullable=True),
        sa.Column('color', sa.String(7), nullable=True),
        sa.Column('type', transaction_type, nullable=False),
        sa.Column('budget', sa.DECIMAL(15, 2), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=True),
    )
    op.create_index('idx_categories_user_type', 'categories', ['user_id', 'type'])

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('reference_number', sa.String(40), nullable=False),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id'), nullable=False),
        sa.Column('account_id', sa.Integer, sa.ForeignKey('accounts.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('category_id', sa.Integer, sa.ForeignKey('categories.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('amount', sa.DECIMAL(15, 2), nullable=False),
        sa.Column('type', transaction_type, nullable=False),
        sa.Column('status', transaction_status, nullable=True),
        sa.Column('transaction_date', sa.Date, nullable=False),
        sa.Column('balance_before', sa.DECIMAL(15, 2), nullable=False),
        sa.Column('balance_after', sa.DECIMAL(15, 2), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('tags', sa.JSON, nullable=True),
        sa.Column('transfer_reference', sa.String(40), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=True),
        sa.UniqueConstraint('reference_number', name='uq_transaction_reference_number'),
    )
    op.create_index('idx_transactions_user_date', 'transactions', ['user_id', 'transaction_date'])
    op.create_index('idx_transactions_user_account', 'transactions', ['user_id', 'account_id'])
    op.create_index('idx_transactions_category', 'transactions', ['category_id'])
    op.create_index('idx_transactions_transfer', 'transactions', ['transfer_reference'])


def downgrade() -> None:
    op.drop_index('idx_transactions_transfer', table_name='transactions')
    op.drop_index('idx_transactions_category', table_name='transactions')
    op.drop_index('idx_transactions_user_account', table_name='transactions')
    op.drop_index('idx_transactions_user_date', table_name='transactions')
    op.drop_table('transactions')
    op.drop_index('idx_categories_user_type', table_name='categories')
    op.drop_table('categories')
    op.drop_table('accounts')
    op.drop_index('idx_users_email', table_name='users')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (transaction_status, transaction_type, account_status, user_status):
        enum_type.drop(bind, checkfirst=True)
