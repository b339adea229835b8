"""
Modèle SQLAlchemy pour les véhicules de la flotte.
L'inventaire est géré ailleurs ; ce module ne sert qu'à l'affectation manuelle.
"""

import uuid
from sqlalchemy import Column, DateTime, Integer, String, func

from tripshare.database import Base


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    plate_number = Column(String(20), unique=True, nullable=False)
    vehicle_type = Column(String(20), nullable=False)  # car-4, car-7, van-16
    capacity = Column(Integer, nullable=False)
    driver_name = Column(String(255), nullable=True)
    status = Column(String(20), default="active", nullable=False)  # active, maintenance, inactive
    created_at = Column(DateTime, server_default=func.now())
