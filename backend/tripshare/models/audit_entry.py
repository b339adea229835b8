"""
Modèle SQLAlchemy pour le journal d'audit (ajout uniquement).
"""

from sqlalchemy import Column, DateTime, Integer, String, Text

from tripshare.database import Base


class AuditEntry(Base):
    """Trace d'une action ayant modifié un trajet. Jamais modifiée ni supprimée."""
    __tablename__ = "audit_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(String(36), nullable=False, index=True)
    action = Column(String(40), nullable=False)       # submit, approve, reject, expire, admin_override...
    actor_email = Column(String(255), nullable=False)
    actor_name = Column(String(255), nullable=True)
    actor_role = Column(String(20), nullable=True)    # user, manager, admin, system
    old_status = Column(String(30), nullable=True)
    new_status = Column(String(30), nullable=True)
    notes = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False)
