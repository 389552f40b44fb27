"""
Contract model
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship

from ..base import Base, utcnow


class Contract(Base):
    """
    Contract linked to an organization and optionally a tenant
    
    `audit` is an append-only list of {action, by, at, meta} entries.
    `parties` is a list of {name, role, contact}; the first party's contact
    receives email reminders.
    """
    __tablename__ = "contracts"
    
    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    tenant_id = Column(String(64), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    status = Column(String(32), nullable=False, default="draft")
    parties = Column(JSON, nullable=False, default=list)
    effective_date = Column(DateTime, nullable=True)
    expiry_date = Column(DateTime, nullable=True)
    audit = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    
    organization = relationship("Organization", back_populates="contracts")
    reminders = relationship("Reminder", back_populates="contract")
    
    __table_args__ = (
        Index('idx_contracts_expiry_date', 'expiry_date'),
        Index('idx_contracts_org_tenant', 'organization_id', 'tenant_id'),
    )
    
    @property
    def primary_contact(self):
        """Contact of the first party, if any"""
        parties = self.parties or []
        if parties and isinstance(parties[0], dict):
            return parties[0].get("contact") or None
        return None
    
    def __repr__(self):
        return f"<Contract(id={self.id}, title={self.title!r}, expiry_date={self.expiry_date})>"
