"""
Modèle SQLAlchemy pour les propositions de regroupement (véhicule partagé).
Les groupes ne sont jamais supprimés : ils restent pour l'historique.
"""

import uuid
from sqlalchemy import Column, Date, DateTime, Float, Integer, JSON, String, Text, Time, func

from tripshare.database import Base


class ProposalGroup(Base):
    __tablename__ = "proposal_groups"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    trip_ids = Column(JSON, nullable=False)              # Liste ordonnée des trajets raw membres
    trip_set_key = Column(String(2000), nullable=False, index=True)  # Ids triés, détection des doublons

    departure_date = Column(Date, nullable=False)
    departure_location = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    proposed_departure_time = Column(Time, nullable=False)
    vehicle_type = Column(String(20), nullable=False)    # car-4, car-7, van-16
    member_count = Column(Integer, nullable=False)

    total_distance_km = Column(Float, nullable=False)
    estimated_savings = Column(Float, nullable=False)
    savings_percentage = Column(Float, nullable=False)
    explanation = Column(Text, nullable=True)

    status = Column(String(20), default="proposed", nullable=False)  # proposed, approved, rejected
    created_by = Column(String(255), nullable=False)
    resolved_by = Column(String(255), nullable=True)
    resolution_note = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    resolved_at = Column(DateTime, nullable=True)
    reverted_at = Column(DateTime, nullable=True)  # Dérogation admin après approbation
