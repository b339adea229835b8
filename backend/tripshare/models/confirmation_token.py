"""
Modèle SQLAlchemy pour les jetons de confirmation à usage unique (liens email).
Un jeton consommé n'est jamais supprimé : il garde une valeur d'audit.
"""

from sqlalchemy import Column, DateTime, Integer, String, func

from tripshare.database import Base


class ConfirmationToken(Base):
    __tablename__ = "confirmation_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String(128), unique=True, nullable=False)
    subject = Column(String(64), nullable=False, index=True)  # Id du trajet ou de l'utilisateur
    purpose = Column(String(40), nullable=False)              # trip_approval, manager_verification
    expires_at = Column(DateTime, nullable=False)
    consumed_at = Column(DateTime, nullable=True)              # NULL = jeton encore utilisable
    outcome = Column(String(40), nullable=True)                # approve, reject, confirm, expired, superseded
    created_at = Column(DateTime, server_default=func.now())
