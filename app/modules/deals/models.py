from app.database.database import Base
from sqlalchemy import Column, String, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin

class Deal(Base, TenantMixin, TimestampMixin):
    """Negocio sincronizado desde el CRM"""
    __tablename__ = "deals"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    title = Column(String(255), nullable=True)
    pipeline_label = Column(String(100), nullable=True)  # "GEP Services", "Formación Empresa", ...
    site_label = Column(String(100), nullable=True)  # Sede
    service_type = Column(String(100), nullable=True)  # Tipo de servicio

    # Atributos sí/no del negocio; NULL cuando el CRM no los informa
    fundae = Column(Boolean, nullable=True)
    caes = Column(Boolean, nullable=True)
    hotel = Column(Boolean, nullable=True)

    # Relationships
    products = relationship("DealProduct", back_populates="deal", cascade="all, delete-orphan")
    sessions = relationship("TrainingSession", back_populates="deal")

class DealProduct(Base, TenantMixin, TimestampMixin):
    __tablename__ = "deal_products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    deal_id = Column(UUID(as_uuid=True), ForeignKey("deals.id"), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    code = Column(String(100), nullable=True)

    # Relationships
    deal = relationship("Deal", back_populates="products")
    sessions = relationship("TrainingSession", back_populates="deal_product")
