"""
Service de lecture des trajets.

Le statut exposé est le statut effectif : une demande en attente dont le délai
d'approbation est dépassé est présentée comme expirée, même si le balayage
périodique ne l'a pas encore persistée.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from tripshare.config import settings
from tripshare.models.trip import Trip
from tripshare.models.trip_status import (
    PENDING_STATUSES,
    DataType,
    ManagerApprovalStatus,
    TripStatus,
    parse_status,
)
from tripshare.schemas.trip import TripResponse
from tripshare.schemas.workflow import ExceptionQueue, PendingBadge

logger = logging.getLogger(__name__)

_PENDING_VALUES = [s.value for s in PENDING_STATUSES]
_KNOWN_VALUES = [s.value for s in TripStatus]


def expiry_cutoff(now: datetime) -> datetime:
    """Toute demande soumise avant cet instant a dépassé le délai d'approbation."""
    return now - timedelta(hours=settings.APPROVAL_EXPIRY_HOURS)


def pending_clause():
    """Condition SQL : trajet de référence en attente de décision du manager."""
    return and_(
        Trip.data_type == DataType.RAW.value,
        Trip.status.in_(_PENDING_VALUES),
        Trip.manager_approval_status == ManagerApprovalStatus.PENDING.value,
    )


def is_approval_stale(trip: Trip, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now()
    return (
        trip.manager_approval_status == ManagerApprovalStatus.PENDING.value
        and now - trip.submitted_at > timedelta(hours=settings.APPROVAL_EXPIRY_HOURS)
    )


def effective_status(trip: Trip, now: Optional[datetime] = None) -> TripStatus:
    """
    Statut effectif d'un trajet à l'instant `now`.
    Lève ValueError si le statut persisté n'appartient pas à l'ensemble fermé.
    """
    stored = parse_status(trip.status)
    if stored is None:
        raise ValueError(f"Statut de trajet inconnu : {trip.status!r}")
    if stored in PENDING_STATUSES and is_approval_stale(trip, now):
        return TripStatus.EXPIRED
    return stored


def to_response(trip: Trip, now: Optional[datetime] = None) -> TripResponse:
    return TripResponse(
        id=trip.id,
        user_id=trip.user_id,
        user_email=trip.user_email,
        user_name=trip.user_name,
        departure_location=trip.departure_location,
        destination=trip.destination,
        departure_date=trip.departure_date,
        departure_time=trip.departure_time,
        return_date=trip.return_date,
        return_time=trip.return_time,
        purpose=trip.purpose,
        cc_emails=trip.cc_emails or [],
        status=effective_status(trip, now),
        stored_status=TripStatus(trip.status),
        manager_approval_status=trip.manager_approval_status,
        manager_email=trip.manager_email,
        rejection_reason=trip.rejection_reason,
        is_urgent=trip.is_urgent,
        auto_approved=trip.auto_approved,
        auto_approved_reason=trip.auto_approved_reason,
        data_type=trip.data_type,
        optimized_group_id=trip.optimized_group_id,
        parent_trip_id=trip.parent_trip_id,
        original_departure_time=trip.original_departure_time,
        vehicle_type=trip.vehicle_type,
        assigned_vehicle_id=trip.assigned_vehicle_id,
        submitted_at=trip.submitted_at,
    )


def template_data(trip: Trip) -> dict:
    """Données de trajet transmises aux gabarits de notification."""
    return {
        "id": trip.id,
        "user_name": trip.user_name,
        "user_email": trip.user_email,
        "departure_location": trip.departure_location,
        "destination": trip.destination,
        "departure_date": trip.departure_date.isoformat(),
        "departure_time": trip.departure_time.strftime("%H:%M"),
        "return_date": trip.return_date.isoformat(),
        "return_time": trip.return_time.strftime("%H:%M"),
        "purpose": trip.purpose,
        "is_urgent": trip.is_urgent,
        "manager_email": trip.manager_email,
    }


def get_trip(db: Session, trip_id: str, now: Optional[datetime] = None) -> Optional[TripResponse]:
    """Retourne un trajet de référence par son ID, ou None s'il n'existe pas."""
    trip = db.get(Trip, trip_id)
    if trip is None or trip.data_type != DataType.RAW.value:
        return None
    return to_response(trip, now)


def list_trips(
    db: Session,
    user_id: Optional[str] = None,
    status: Optional[TripStatus] = None,
    now: Optional[datetime] = None,
) -> List[TripResponse]:
    """
    Trajets de référence, du départ le plus proche au plus lointain.
    Le filtre de statut porte sur le statut effectif. Un trajet au statut
    hors ensemble est exclu et signalé (voir la migration des statuts).
    """
    now = now or datetime.now()
    query = select(Trip).where(Trip.data_type == DataType.RAW.value)
    if user_id:
        query = query.where(Trip.user_id == user_id)

    unknown = db.execute(
        query.with_only_columns(Trip.id).where(Trip.status.not_in(_KNOWN_VALUES))
    ).scalars().all()
    if unknown:
        logger.warning("%d trajet(s) au statut inconnu exclus de la liste : %s", len(unknown), unknown)
    query = query.where(Trip.status.in_(_KNOWN_VALUES))

    trips = db.execute(
        query.order_by(Trip.departure_date, Trip.departure_time, Trip.id)
    ).scalars().all()

    responses = [to_response(t, now) for t in trips]
    if status is not None:
        responses = [r for r in responses if r.status == status]
    return responses


def get_exception_queue(
    db: Session,
    older_than_hours: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ExceptionQueue:
    """
    File d'exceptions de l'administrateur :
    - urgent        : demandes urgentes encore en attente (non expirées)
    - stale         : demandes en attente soumises avant le seuil (expirées par défaut)
    - auto_approved : trajets approuvés automatiquement, pour contrôle
    """
    now = now or datetime.now()
    threshold = now - timedelta(
        hours=older_than_hours if older_than_hours is not None else settings.APPROVAL_EXPIRY_HOURS
    )
    cutoff = expiry_cutoff(now)

    urgent = db.execute(
        select(Trip)
        .where(pending_clause(), Trip.is_urgent.is_(True), Trip.submitted_at >= cutoff)
        .order_by(Trip.departure_date, Trip.departure_time)
    ).scalars().all()

    stale = db.execute(
        select(Trip)
        .where(pending_clause(), Trip.submitted_at < threshold)
        .order_by(Trip.submitted_at)
    ).scalars().all()

    auto = db.execute(
        select(Trip)
        .where(
            Trip.data_type == DataType.RAW.value,
            Trip.status == TripStatus.AUTO_APPROVED.value,
        )
        .order_by(Trip.submitted_at.desc())
        .limit(100)
    ).scalars().all()

    return ExceptionQueue(
        urgent=[to_response(t, now) for t in urgent],
        stale=[to_response(t, now) for t in stale],
        auto_approved=[to_response(t, now) for t in auto],
    )


def pending_badge(db: Session, now: Optional[datetime] = None) -> PendingBadge:
    """Compteurs légers pour le badge de l'interface d'administration."""
    now = now or datetime.now()
    cutoff = expiry_cutoff(now)

    def _count(*conditions) -> int:
        return db.execute(
            select(func.count()).select_from(Trip).where(pending_clause(), *conditions)
        ).scalar() or 0

    return PendingBadge(
        pending_count=_count(Trip.submitted_at >= cutoff),
        urgent_count=_count(Trip.submitted_at >= cutoff, Trip.is_urgent.is_(True)),
        expired_count=_count(Trip.submitted_at < cutoff),
    )
