"""
Affectation manuelle d'un véhicule concret à un trajet approuvé.
Le moteur d'optimisation ne choisit qu'un type de véhicule ; le véhicule réel
est choisi ici par un administrateur parmi ceux disponibles à la date du trajet.
"""

import datetime as dt
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripshare.models.trip import Trip
from tripshare.models.trip_status import DataType, TripStatus
from tripshare.models.vehicle import Vehicle
from tripshare.schemas.audit import AuditAction, AuditEntryCreate
from tripshare.schemas.trip import ActorRef
from tripshare.schemas.vehicle import VehicleResponse
from tripshare.schemas.workflow import Outcome, TripActionResult
from tripshare.services.audit_service import get_audit_ledger, record
from tripshare.services.directory_service import get_vehicle_directory
from tripshare.services.errors import IllegalTransition, NotFound, ValidationFailed, WorkflowError
from tripshare.services.trip_service import to_response

logger = logging.getLogger(__name__)

# Trajets définitivement validés : seuls ceux-ci reçoivent un véhicule
ASSIGNABLE_STATUSES = frozenset({
    TripStatus.APPROVED,
    TripStatus.AUTO_APPROVED,
    TripStatus.APPROVED_SOLO,
    TripStatus.OPTIMIZED,
})


def list_available_vehicles(
    db: Session,
    date: dt.date,
    vehicle_type: Optional[str] = None,
    directory=None,
) -> List[VehicleResponse]:
    directory = directory or get_vehicle_directory()
    return [VehicleResponse.model_validate(v) for v in directory.list_available(db, date, vehicle_type)]


def _shared_with_group(db: Session, trip: Trip, vehicle_id: str) -> bool:
    """
    Un véhicule déjà pris reste affectable s'il ne sert qu'aux autres membres
    du même groupe optimisé (un seul véhicule par groupe).
    """
    if trip.optimized_group_id is None:
        return False
    groups = db.execute(
        select(Trip.optimized_group_id).where(
            Trip.assigned_vehicle_id == vehicle_id,
            Trip.departure_date == trip.departure_date,
            Trip.data_type == DataType.RAW.value,
            Trip.id != trip.id,
        )
    ).scalars().all()
    return bool(groups) and all(g == trip.optimized_group_id for g in groups)


def assign_vehicle(
    db: Session,
    trip_id: str,
    vehicle_id: str,
    actor: ActorRef,
    notes: Optional[str] = None,
    *,
    ledger=None,
    directory=None,
    now: Optional[datetime] = None,
) -> TripActionResult:
    """Affecte un véhicule disponible à un trajet de référence validé."""
    now = now or datetime.now()
    ledger = ledger or get_audit_ledger()
    directory = directory or get_vehicle_directory()

    try:
        if actor.role != "admin":
            raise ValidationFailed("Seul un administrateur peut affecter un véhicule.")
        trip = db.get(Trip, trip_id)
        if trip is None or trip.data_type != DataType.RAW.value:
            raise NotFound("Trajet introuvable.")
        vehicle = db.get(Vehicle, vehicle_id)
        if vehicle is None:
            raise NotFound("Véhicule introuvable.")

        allowed = [s.value for s in ASSIGNABLE_STATUSES]
        if trip.status not in allowed:
            raise IllegalTransition(
                f"Impossible d'affecter un véhicule à un trajet au statut '{trip.status}'."
            )

        available_ids = {v.id for v in directory.list_available(db, trip.departure_date)}
        if vehicle.id not in available_ids \
                and vehicle.id != trip.assigned_vehicle_id \
                and not _shared_with_group(db, trip, vehicle.id):
            raise ValidationFailed(
                f"Le véhicule {vehicle.plate_number} n'est pas disponible le {trip.departure_date}."
            )

        result = db.execute(
            update(Trip)
            .where(Trip.id == trip.id, Trip.status.in_(allowed))
            .values(
                assigned_vehicle_id=vehicle.id,
                vehicle_type=trip.vehicle_type or vehicle.vehicle_type,
                vehicle_assigned_by=actor.email,
                vehicle_assigned_at=now,
                vehicle_assignment_notes=notes,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise IllegalTransition("Le statut du trajet a changé pendant l'affectation.")
        db.commit()
    except WorkflowError as e:
        db.rollback()
        return TripActionResult(outcome=e.outcome, message=e.message)
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(trip)
    record(ledger, AuditEntryCreate.for_actor(
        actor,
        trip_id=trip.id,
        action=AuditAction.VEHICLE_ASSIGNED,
        old_status=trip.status,
        new_status=trip.status,
        notes=f"Véhicule {vehicle.plate_number} ({vehicle.vehicle_type})" + (f" : {notes}" if notes else ""),
        created_at=now,
    ))
    logger.info("Véhicule %s affecté au trajet %s par %s", vehicle.plate_number, trip.id, actor.email)
    return TripActionResult(
        outcome=Outcome.OK,
        message=f"Véhicule {vehicle.plate_number} affecté.",
        trip=to_response(trip, now),
    )
