"""Create products table

Revision ID: 3f1c2b7a9d10
Revises:
Create Date: 2026-10-19 09:12:41.305118

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '3f1c2b7a9d10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table('products',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('barcode', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('brand', sa.String(length=255), nullable=True),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('ingredients_raw', sa.Text(), nullable=True),
        sa.Column('ingredients_list', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('flagged_additives', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('nutrition_data', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        # curated, openfoodfacts, usda, nutritionix, user
        sa.Column('source', sa.String(length=50), nullable=True),
        # active, not_found, pending_review, deleted
        sa.Column('status', sa.String(length=20), server_default='active', nullable=False),
        sa.Column('is_verified', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('user_contributed', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('search_attempts', sa.Integer(), server_default='1', nullable=False),
        sa.Column('last_searched', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_products_barcode'), 'products', ['barcode'], unique=True)
    op.create_index(op.f('ix_products_status'), 'products', ['status'], unique=False)
    op.create_index(op.f('ix_products_is_verified'), 'products', ['is_verified'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_products_is_verified'), table_name='products')
    op.drop_index(op.f('ix_products_status'), table_name='products')
    op.drop_index(op.f('ix_products_barcode'), table_name='products')
    op.drop_table('products')
