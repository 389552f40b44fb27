"""
Organization and Tenant models
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from ..base import Base, utcnow


class Organization(Base):
    """Organization model"""
    __tablename__ = "organizations"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    # NULL means enabled; only an explicit False opts the organization out of reminders
    scheduler_enabled = Column(Boolean, nullable=True, default=None)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    
    # Relationships
    tenants = relationship("Tenant", back_populates="organization", cascade="all, delete-orphan")
    contracts = relationship("Contract", back_populates="organization", cascade="all, delete-orphan")
    
    @property
    def reminders_enabled(self) -> bool:
        return self.scheduler_enabled is not False


class Tenant(Base):
    """Tenant model (display data used in reminder templates)"""
    __tablename__ = "tenants"
    
    id = Column(String(64), primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String, nullable=True)
    business_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    
    organization = relationship("Organization", back_populates="tenants")
    
    @property
    def display_name(self):
        return self.name or self.business_name
