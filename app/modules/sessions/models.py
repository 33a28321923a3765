from app.database.database import Base
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin

class TrainingSession(Base, TenantMixin, TimestampMixin):
    """Sesión planificada de un producto de un negocio"""
    __tablename__ = "training_sessions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    deal_id = Column(UUID(as_uuid=True), ForeignKey("deals.id"), nullable=True, index=True)
    deal_product_id = Column(UUID(as_uuid=True), ForeignKey("deal_products.id"), nullable=True)
    name = Column(String(255), nullable=True)
    start_at = Column(DateTime(timezone=True), nullable=True, index=True)  # UTC
    end_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    deal = relationship("Deal", back_populates="sessions")
    deal_product = relationship("DealProduct", back_populates="sessions")
