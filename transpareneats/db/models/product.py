"""
Product table: one durable record per barcode.
Records are never physically removed; deletion is the `deleted` status.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, Index, Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB

from transpareneats.core.clock import utcnow
from transpareneats.db.database import Base
from transpareneats.models.product import ProductSource, ProductStatus

JSONColumn = JSON().with_variant(JSONB(), "postgresql")


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Product(Base):
    """Canonical product record."""

    __tablename__ = "products"
    __table_args__ = (
        Index("idx_products_status_attempts", "status", "search_attempts"),
        Index("idx_products_updated_at", "updated_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    barcode = Column(String(50), nullable=False, unique=True, index=True)

    # Display data
    name = Column(String(255), default="")
    brand = Column(String(255), default="")
    category = Column(String(100), default="")
    image_url = Column(String(500), default="")

    # Ingredients and nutrition
    ingredients_raw = Column(Text, default="")
    ingredients_list = Column(JSONColumn, default=list)
    flagged_additives = Column(JSONColumn, default=dict)
    nutrition_data = Column(JSONColumn, default=dict)

    # Provenance and lifecycle
    source = Column(
        SAEnum(ProductSource, native_enum=False, length=50, values_callable=_enum_values),
        nullable=True,
    )
    status = Column(
        SAEnum(ProductStatus, native_enum=False, length=20, values_callable=_enum_values),
        nullable=False,
        default=ProductStatus.ACTIVE,
        index=True,
    )
    is_verified = Column(Boolean, nullable=False, default=False, index=True)
    user_contributed = Column(Boolean, nullable=False, default=False)

    # Negative cache bookkeeping
    search_attempts = Column(Integer, nullable=False, default=1)
    last_searched = Column(DateTime(timezone=True), default=utcnow)

    # Metadata
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Product(barcode={self.barcode}, status={self.status}, source={self.source})>"
