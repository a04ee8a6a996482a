"""Create royalty engine tables

Revision ID: 20261016_000001
Revises:
Create Date: 2026-10-16

This migration creates the tables for author royalty statements:
- authors, titles, title_authors: Catalog and co-author ownership
- contracts, contract_tiers: Advances and tiered royalty rates per format
- sales, returns: Sales transactions and returns per format
- statements: Immutable author statements with calculation snapshot
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '20261016_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create enums
    salesformat_enum = postgresql.ENUM('physical', 'ebook', 'audiobook', name='salesformat', create_type=False)
    salesformat_enum.create(op.get_bind(), checkfirst=True)

    saleschannel_enum = postgresql.ENUM('retail', 'wholesale', 'direct', 'distributor', 'amazon', name='saleschannel', create_type=False)
    saleschannel_enum.create(op.get_bind(), checkfirst=True)

    returnstatus_enum = postgresql.ENUM('pending', 'approved', 'rejected', name='returnstatus', create_type=False)
    returnstatus_enum.create(op.get_bind(), checkfirst=True)

    contractstatus_enum = postgresql.ENUM('active', 'terminated', 'suspended', name='contractstatus', create_type=False)
    contractstatus_enum.create(op.get_bind(), checkfirst=True)

    tiercalculationmode_enum = postgresql.ENUM('period', 'lifetime', name='tiercalculationmode', create_type=False)
    tiercalculationmode_enum.create(op.get_bind(), checkfirst=True)

    statementstatus_enum = postgresql.ENUM('draft', 'sent', 'failed', name='statementstatus', create_type=False)
    statementstatus_enum.create(op.get_bind(), checkfirst=True)

    # Create authors table
    op.create_table(
        'authors',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False, index=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # Create titles table
    op.create_table(
        'titles',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('isbn', sa.String(17), nullable=True, index=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # Create title_authors table
    op.create_table(
        'title_authors',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('title_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('titles.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('author_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('authors.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('ownership_percentage', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('title_id', 'author_id', name='title_authors_title_author_unique'),
        sa.CheckConstraint(
            'ownership_percentage >= 0 AND ownership_percentage <= 100',
            name='check_ownership_percentage_range',
        ),
    )

    # Create contracts table
    op.create_table(
        'contracts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('author_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('authors.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('title_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('titles.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('advance_amount', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('advance_paid', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('advance_recouped', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('status', contractstatus_enum, nullable=False, index=True, server_default='active'),
        sa.Column('tier_calculation_mode', tiercalculationmode_enum, nullable=False, server_default='period'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('tenant_id', 'author_id', 'title_id', name='contracts_tenant_author_title_unique'),
        sa.CheckConstraint('advance_amount >= 0', name='check_advance_amount_nonnegative'),
        sa.CheckConstraint('advance_paid >= 0', name='check_advance_paid_nonnegative'),
        sa.CheckConstraint('advance_recouped >= 0', name='check_advance_recouped_nonnegative'),
    )

    # Create contract_tiers table
    op.create_table(
        'contract_tiers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('contract_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('contracts.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('format', salesformat_enum, nullable=False),
        sa.Column('min_quantity', sa.Integer(), nullable=False),
        sa.Column('max_quantity', sa.Integer(), nullable=True),
        sa.Column('rate', sa.Numeric(precision=5, scale=4), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('min_quantity >= 0', name='check_tier_min_nonnegative'),
        sa.CheckConstraint('max_quantity IS NULL OR max_quantity > min_quantity', name='check_tier_max_above_min'),
        sa.CheckConstraint('rate >= 0 AND rate <= 1', name='check_tier_rate_range'),
    )
    op.create_index('idx_contract_tiers_contract_format', 'contract_tiers', ['contract_id', 'format'])

    # Create sales table
    op.create_table(
        'sales',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('title_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('titles.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('format', salesformat_enum, nullable=False),
        sa.Column('channel', saleschannel_enum, nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('sale_date', sa.Date(), nullable=False, index=True),
        sa.Column('reference', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('quantity > 0', name='check_sales_quantity_positive'),
        sa.CheckConstraint('unit_price > 0', name='check_sales_unit_price_positive'),
        sa.CheckConstraint('total_amount > 0', name='check_sales_total_amount_positive'),
    )
    op.create_index('idx_sales_tenant_title_date', 'sales', ['tenant_id', 'title_id', 'sale_date'])

    # Create returns table
    op.create_table(
        'returns',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('title_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('titles.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('original_sale_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('sales.id', ondelete='SET NULL'), nullable=True),
        sa.Column('format', salesformat_enum, nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('return_date', sa.Date(), nullable=False, index=True),
        sa.Column('reason', sa.String(500), nullable=True),
        sa.Column('status', returnstatus_enum, nullable=False, index=True, server_default='pending'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('quantity > 0', name='check_returns_quantity_positive'),
        sa.CheckConstraint('total_amount > 0', name='check_returns_total_amount_positive'),
    )
    op.create_index('idx_returns_tenant_title_date', 'returns', ['tenant_id', 'title_id', 'return_date'])

    # Create statements table
    op.create_table(
        'statements',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('author_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('authors.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('contract_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('contracts.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('title_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('titles.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('total_royalty_earned', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('recoupment', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('net_payable', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('calculations', sa.JSON(), nullable=False),
        sa.Column('status', statementstatus_enum, nullable=False, index=True, server_default='draft'),
        sa.Column('voided_at', sa.DateTime(), nullable=True),
        sa.Column('void_reason', sa.Text(), nullable=True),
        sa.Column('generated_by', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            'tenant_id', 'author_id', 'period_start', 'period_end',
            name='statements_tenant_author_period_unique',
        ),
    )
    op.create_index('statements_period_idx', 'statements', ['period_start', 'period_end'])


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_index('statements_period_idx', table_name='statements')
    op.drop_table('statements')
    op.drop_index('idx_returns_tenant_title_date', table_name='returns')
    op.drop_table('returns')
    op.drop_index('idx_sales_tenant_title_date', table_name='sales')
    op.drop_table('sales')
    op.drop_index('idx_contract_tiers_contract_format', table_name='contract_tiers')
    op.drop_table('contract_tiers')
    op.drop_table('contracts')
    op.drop_table('title_authors')
    op.drop_table('titles')
    op.drop_table('authors')

    # Drop enums
    op.execute('DROP TYPE IF EXISTS statementstatus')
    op.execute('DROP TYPE IF EXISTS tiercalculationmode')
    op.execute('DROP TYPE IF EXISTS contractstatus')
    op.execute('DROP TYPE IF EXISTS returnstatus')
    op.execute('DROP TYPE IF EXISTS saleschannel')
    op.execute('DROP TYPE IF EXISTS salesformat')
