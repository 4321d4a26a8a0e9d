"""Create products, variants and purchase_items tables

Revision ID: create_products_tables
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'create_products_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create product tables and the trigram index used by title search"""

    # 标题模糊搜索依赖 similarity()
    op.execute("CREATE EXTENSION IF NOT EXISTS pg_trgm")

    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False, comment='商品标题'),
        sa.Column('description', sa.Text(), nullable=False, server_default='', comment='商品描述'),
        sa.Column('image', sa.Text(), nullable=True, comment='图片引用'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True, comment='软删除时间'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_products_deleted_at', 'products', ['deleted_at'], unique=False)
    op.create_index(
        'ix_products_title_trgm', 'products', ['title'],
        unique=False,
        postgresql_using='gin',
        postgresql_ops={'title': 'gin_trgm_ops'}
    )

    op.create_table('variants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False, comment='商品ID'),
        sa.Column('size', sa.Numeric(10, 2), nullable=False, comment='尺码'),
        sa.Column('price', sa.Numeric(18, 2), nullable=False, comment='售价'),
        sa.Column('quantity', sa.Integer(), nullable=False, comment='库存数量'),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True, comment='软删除时间'),
        sa.CheckConstraint('size >= 0'),
        sa.CheckConstraint('price >= 0'),
        sa.CheckConstraint('quantity >= 0'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'size', name='uq_variants_product_size')
    )
    op.create_index('ix_variants_product', 'variants', ['product_id'], unique=False)

    op.create_table('purchase_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('variant_id', sa.Integer(), nullable=False, comment='规格ID'),
        sa.Column('quantity', sa.Integer(), nullable=False, comment='售出数量'),
        sa.Column('price', sa.Numeric(18, 2), nullable=False, comment='成交单价'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='销售时间'),
        sa.CheckConstraint('quantity > 0'),
        sa.CheckConstraint('price >= 0'),
        sa.ForeignKeyConstraint(['variant_id'], ['variants.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_purchase_items_variant', 'purchase_items', ['variant_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_purchase_items_variant', table_name='purchase_items')
    op.drop_table('purchase_items')
    op.drop_index('ix_variants_product', table_name='variants')
    op.drop_table('variants')
    op.drop_index('ix_products_title_trgm', table_name='products')
    op.drop_index('ix_products_deleted_at', table_name='products')
    op.drop_table('products')
