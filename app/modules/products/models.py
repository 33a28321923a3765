from app.database.database import Base
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin

class Product(Base, TenantMixin, TimestampMixin):
    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(255), nullable=True)
    code = Column(String(100), nullable=True)  # Código del catálogo (Holded)
    category = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True)

    # Relationships
    variants = relationship("ProductVariant", back_populates="product", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_product_tenant_code"),
    )

class ProductVariant(Base, TenantMixin, TimestampMixin):
    """Convocatoria de formación abierta: una fecha y sede de un producto"""
    __tablename__ = "product_variants"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=True, index=True)
    date = Column(DateTime(timezone=True), nullable=True, index=True)
    site_label = Column(String(100), nullable=True)  # Sede
    is_active = Column(Boolean, default=True)

    # Relationships
    product = relationship("Product", back_populates="variants")
