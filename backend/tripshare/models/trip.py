"""
Modèle SQLAlchemy pour les trajets professionnels.

Une même table contient les enregistrements de référence (data_type = raw) et
les aperçus éphémères (data_type = temp) créés pendant qu'une proposition
d'optimisation est en attente.
"""

import uuid
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, JSON, String, Text, Time, func

from tripshare.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Trip(Base):
    __tablename__ = "trips"

    id = Column(String(36), primary_key=True, default=_new_id)

    # Demandeur
    user_id = Column(String(36), nullable=False, index=True)
    user_email = Column(String(255), nullable=False)
    user_name = Column(String(255), nullable=True)

    # Itinéraire
    departure_location = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    departure_date = Column(Date, nullable=False)
    departure_time = Column(Time, nullable=False)
    return_date = Column(Date, nullable=False)
    return_time = Column(Time, nullable=False)
    purpose = Column(Text, nullable=True)
    cc_emails = Column(JSON, nullable=True)

    # Cycle de vie
    status = Column(String(30), nullable=False)  # Voir TripStatus
    manager_approval_status = Column(String(20), nullable=True)  # pending, approved, rejected
    manager_email = Column(String(255), nullable=True)
    manager_action_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    is_urgent = Column(Boolean, default=False, nullable=False)  # Figé à la soumission
    auto_approved = Column(Boolean, default=False, nullable=False)
    auto_approved_reason = Column(String(100), nullable=True)
    submitted_at = Column(DateTime, nullable=False)
    reminder_sent_at = Column(DateTime, nullable=True)
    expired_notified_at = Column(DateTime, nullable=True)
    data_type = Column(String(10), default="raw", nullable=False)  # raw, temp

    # Optimisation
    optimized_group_id = Column(String(36), ForeignKey("proposal_groups.id"), nullable=True, index=True)
    parent_trip_id = Column(String(36), ForeignKey("trips.id", ondelete="CASCADE"), nullable=True)
    original_departure_time = Column(Time, nullable=True)

    # Véhicule
    vehicle_type = Column(String(20), nullable=True)
    assigned_vehicle_id = Column(String(36), ForeignKey("vehicles.id"), nullable=True)
    vehicle_assigned_by = Column(String(255), nullable=True)
    vehicle_assigned_at = Column(DateTime, nullable=True)
    vehicle_assignment_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_trips_route_day", "departure_date", "departure_location", "destination"),
        Index("idx_trips_status_type", "status", "data_type"),
    )
