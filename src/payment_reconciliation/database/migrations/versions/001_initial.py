"""Initial migration - create transactions table

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'transactions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('amount', sa.Numeric(19, 4), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('provider_reference', sa.String(100), nullable=False, unique=True),
        sa.Column('provider_name', sa.String(50), nullable=True),
        sa.Column('reconciled_at', sa.DateTime(), nullable=True),
        sa.Column('reconciliation_attempts', sa.Integer(), nullable=True, server_default='0'),
        sa.Column('last_error', sa.String(500), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    
    # Eligibility scans filter on status and order by creation time
    op.create_index('ix_transactions_status', 'transactions', ['status'])
    op.create_index('ix_transactions_status_created_at', 'transactions', ['status', 'created_at'])
    op.create_index('ix_transactions_status_updated_at', 'transactions', ['status', 'updated_at'])


def downgrade() -> None:
    op.drop_index('ix_transactions_status_updated_at', table_name='transactions')
    op.drop_index('ix_transactions_status_created_at', table_name='transactions')
    op.drop_index('ix_transactions_status', table_name='transactions')
    op.drop_table('transactions')
