"""
Router des véhicules : disponibilités pour l'affectation manuelle.
"""

import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tripshare.database import get_db
from tripshare.schemas.vehicle import VehicleResponse
from tripshare.services import vehicle_service
from tripshare.services.directory_service import get_vehicle_directory

router = APIRouter(prefix="/api/v1/vehicles", tags=["Véhicules"])


@router.get("/available", response_model=List[VehicleResponse], summary="Véhicules disponibles")
def list_available(
    date: dt.date,
    vehicle_type: Optional[str] = None,
    db: Session = Depends(get_db),
    directory=Depends(get_vehicle_directory),
):
    """Véhicules actifs non affectés à un autre trajet ce jour-là."""
    return vehicle_service.list_available_vehicles(db, date, vehicle_type, directory=directory)
