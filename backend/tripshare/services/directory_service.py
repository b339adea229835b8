"""
Annuaires externes consommés par le cœur métier :
- annuaire des profils : manager confirmé d'un demandeur
- annuaire des véhicules : véhicules disponibles pour une date (affectation manuelle uniquement)

Implémentations par défaut adossées aux tables users et vehicles ;
les services les reçoivent en paramètre pour pouvoir les remplacer.
"""

import datetime as dt
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from tripshare.models.trip import Trip
from tripshare.models.trip_status import TripStatus
from tripshare.models.user import User
from tripshare.models.vehicle import Vehicle

logger = logging.getLogger(__name__)

_INACTIVE_TRIP_STATUSES = (
    TripStatus.CANCELLED.value,
    TripStatus.REJECTED.value,
    TripStatus.EXPIRED.value,
)


class SqlProfileDirectory:

    def get_submitter_manager(self, db: Session, user_id: str) -> Optional[str]:
        """
        Email du manager confirmé du demandeur, ou None.
        Un manager déclaré mais non confirmé ne compte pas.
        """
        user = db.get(User, user_id)
        if user is None or not user.manager_confirmed or not user.manager_email:
            return None
        return user.manager_email


class SqlVehicleDirectory:

    def list_available(
        self, db: Session, date: dt.date, vehicle_type: Optional[str] = None
    ) -> List[Vehicle]:
        """Véhicules actifs non encore affectés à un trajet actif à cette date."""
        busy_ids = select(Trip.assigned_vehicle_id).where(
            Trip.departure_date == date,
            Trip.assigned_vehicle_id.is_not(None),
            Trip.data_type == "raw",
            Trip.status.not_in(_INACTIVE_TRIP_STATUSES),
        )
        query = select(Vehicle).where(
            Vehicle.status == "active",
            Vehicle.id.not_in(busy_ids),
        )
        if vehicle_type:
            query = query.where(Vehicle.vehicle_type == vehicle_type)

        vehicles = db.execute(query.order_by(Vehicle.plate_number)).scalars().all()
        logger.info(
            "%d véhicule(s) disponible(s) le %s (type %s)", len(vehicles), date, vehicle_type or "tous"
        )
        return list(vehicles)


_default_profiles = SqlProfileDirectory()
_default_vehicles = SqlVehicleDirectory()


def get_profile_directory() -> SqlProfileDirectory:
    return _default_profiles


def get_vehicle_directory() -> SqlVehicleDirectory:
    return _default_vehicles
