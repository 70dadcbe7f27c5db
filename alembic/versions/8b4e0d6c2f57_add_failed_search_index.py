"""Add failed search report index

Revision ID: 8b4e0d6c2f57
Revises: 3f1c2b7a9d10
Create Date: 2026-10-19 09:40:03.771254

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '8b4e0d6c2f57'
down_revision = '3f1c2b7a9d10'
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Rapport des recherches échouées : not_found trié par nombre de tentatives
    op.create_index(
        'idx_products_status_attempts',
        'products',
        ['status', 'search_attempts']
    )

    # Listing admin trié par date de mise à jour
    op.create_index(
        'idx_products_updated_at',
        'products',
        ['updated_at']
    )


def downgrade() -> None:
    op.drop_index('idx_products_updated_at', table_name='products')
    op.drop_index('idx_products_status_attempts', table_name='products')
