"""
Router pour les trajets : soumission, consultation, annulation,
renvoi du lien d'approbation et affectation d'un véhicule.
"""

from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from tripshare.database import get_db
from tripshare.models.trip_status import TripStatus
from tripshare.routers.outcomes import ensure_ok
from tripshare.schemas.audit import AuditEntryResponse
from tripshare.schemas.trip import ActorRef, CancelRequest, TripResponse, TripSubmitRequest
from tripshare.schemas.vehicle import VehicleAssign
from tripshare.schemas.workflow import TripActionResult
from tripshare.services import approval_service, status_migration, trip_service, vehicle_service
from tripshare.services.audit_service import get_audit_ledger
from tripshare.services.directory_service import get_profile_directory, get_vehicle_directory
from tripshare.services.email_service import get_notifier

router = APIRouter(prefix="/api/v1/trips", tags=["Trajets"])


@router.post("", response_model=TripActionResult, status_code=201, summary="Soumettre un trajet")
def submit_trip(
    data: TripSubmitRequest,
    db: Session = Depends(get_db),
    ledger=Depends(get_audit_ledger),
    notifier=Depends(get_notifier),
    directory=Depends(get_profile_directory),
):
    """
    Soumet une demande de trajet.
    Approuvée automatiquement si le demandeur n'a pas de manager confirmé,
    sinon envoyée au manager (urgente si le départ est dans moins de 24h).
    """
    return ensure_ok(approval_service.submit_trip(
        db, data.trip, data.submitter, ledger=ledger, notifier=notifier, directory=directory,
    ))


@router.get("", response_model=List[TripResponse], summary="Lister les trajets")
def list_trips(
    user_id: Optional[str] = None,
    status: Optional[TripStatus] = None,
    db: Session = Depends(get_db),
):
    """Trajets de référence ; le filtre porte sur le statut effectif (expiration incluse)."""
    return trip_service.list_trips(db, user_id=user_id, status=status)


@router.post("/migrate-legacy-statuses", summary="Migrer les statuts historiques")
def migrate_legacy_statuses(db: Session = Depends(get_db), ledger=Depends(get_audit_ledger)):
    """Réécrit draft/pending/confirmed vers les statuts actuels (opération ponctuelle)."""
    return asdict(status_migration.migrate_legacy_statuses(db, ledger=ledger))


@router.get("/{trip_id}", response_model=TripResponse, summary="Détail d'un trajet")
def get_trip(trip_id: str, db: Session = Depends(get_db)):
    trip = trip_service.get_trip(db, trip_id)
    if trip is None:
        raise HTTPException(status_code=404, detail="Trajet introuvable.")
    return trip


@router.get("/{trip_id}/audit", response_model=List[AuditEntryResponse], summary="Historique d'un trajet")
def get_trip_audit(trip_id: str, ledger=Depends(get_audit_ledger)):
    """Entrées du journal d'audit, de la plus récente à la plus ancienne."""
    return ledger.entries_for(trip_id)


@router.post("/{trip_id}/cancel", response_model=TripActionResult, summary="Annuler un trajet")
def cancel_trip(
    trip_id: str,
    data: CancelRequest,
    db: Session = Depends(get_db),
    ledger=Depends(get_audit_ledger),
):
    return ensure_ok(approval_service.cancel_trip(db, trip_id, data.actor, data.reason, ledger=ledger))


@router.post("/{trip_id}/reissue-link", response_model=TripActionResult,
             summary="Renvoyer le lien d'approbation au manager")
def reissue_link(
    trip_id: str,
    actor: ActorRef,
    db: Session = Depends(get_db),
    ledger=Depends(get_audit_ledger),
    notifier=Depends(get_notifier),
):
    """Neutralise les liens précédents et en envoie un nouveau (demande non expirée uniquement)."""
    return ensure_ok(approval_service.reissue_approval_link(
        db, trip_id, actor, ledger=ledger, notifier=notifier,
    ))


@router.post("/{trip_id}/vehicle", response_model=TripActionResult, summary="Affecter un véhicule")
def assign_vehicle(
    trip_id: str,
    data: VehicleAssign,
    db: Session = Depends(get_db),
    ledger=Depends(get_audit_ledger),
    directory=Depends(get_vehicle_directory),
):
    return ensure_ok(vehicle_service.assign_vehicle(
        db, trip_id, data.vehicle_id, data.actor, data.notes, ledger=ledger, directory=directory,
    ))
