"""Create users and transaction_records tables

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20261018_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(length=255), nullable=True),
        sa.Column('primary_wallet_address', sa.String(length=42), nullable=True),
        sa.Column('telegram_id', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('telegram_id'),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=False)
    op.create_index(
        'ix_users_primary_wallet_address', 'users',
        ['primary_wallet_address'], unique=True
    )

    op.create_table(
        'transaction_records',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tx_hash', sa.String(length=66), nullable=True),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column(
            'status', sa.String(length=20),
            nullable=False, server_default='pending'
        ),
        sa.Column('from_user_id', sa.Integer(), nullable=True),
        sa.Column('to_user_id', sa.Integer(), nullable=True),
        sa.Column('submitted_by_user_id', sa.Integer(), nullable=True),
        sa.Column('from_address', sa.String(length=42), nullable=False),
        sa.Column('to_address', sa.String(length=42), nullable=False),
        sa.Column('amount', sa.String(length=78), nullable=False),
        sa.Column(
            'token_address', sa.String(length=42),
            nullable=False, server_default='0x0'
        ),
        sa.Column('source_chain', sa.String(length=32), nullable=False),
        sa.Column('destination_chain', sa.String(length=32), nullable=False),
        sa.Column(
            'metadata',
            sa.JSON().with_variant(postgresql.JSONB(), 'postgresql'),
            nullable=False,
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ['from_user_id'], ['users.id'], ondelete='SET NULL'
        ),
        sa.ForeignKeyConstraint(
            ['to_user_id'], ['users.id'], ondelete='SET NULL'
        ),
        sa.ForeignKeyConstraint(
            ['submitted_by_user_id'], ['users.id'], ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_transaction_records_tx_hash', 'transaction_records',
        ['tx_hash'], unique=True
    )
    op.create_index(
        'ix_transaction_records_from_user_id', 'transaction_records',
        ['from_user_id'], unique=False
    )
    op.create_index(
        'ix_transaction_records_to_user_id', 'transaction_records',
        ['to_user_id'], unique=False
    )
    op.create_index(
        'idx_transaction_records_status_created', 'transaction_records',
        ['status', 'created_at'], unique=False
    )
    op.create_index(
        'idx_transaction_records_addresses', 'transaction_records',
        ['from_address', 'to_address'], unique=False
    )


def downgrade() -> None:
    op.drop_index(
        'idx_transaction_records_addresses', table_name='transaction_records'
    )
    op.drop_index(
        'idx_transaction_records_status_created', table_name='transaction_records'
    )
    op.drop_index(
        'ix_transaction_records_to_user_id', table_name='transaction_records'
    )
    op.drop_index(
        'ix_transaction_records_from_user_id', table_name='transaction_records'
    )
    op.drop_index(
        'ix_transaction_records_tx_hash', table_name='transaction_records'
    )
    op.drop_table('transaction_records')

    op.drop_index('ix_users_primary_wallet_address', table_name='users')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
