"""
Modèle SQLAlchemy pour les utilisateurs.
Version minimale : seules les informations utiles au workflow (manager déclaré et confirmé).
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, String, func

from tripshare.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=True)
    role = Column(String(20), default="user", nullable=False)  # user, admin

    # Manager confirmé (utilisé pour l'approbation des trajets)
    manager_email = Column(String(255), nullable=True)
    manager_name = Column(String(255), nullable=True)
    manager_confirmed = Column(Boolean, default=False, nullable=False)
    manager_confirmed_at = Column(DateTime, nullable=True)

    # Manager déclaré mais pas encore confirmé par email
    pending_manager_email = Column(String(255), nullable=True)
    pending_manager_name = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
