"""
Router des propositions de regroupement (véhicule partagé).
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from tripshare.database import get_db
from tripshare.models.trip_status import GroupStatus
from tripshare.routers.outcomes import ensure_ok
from tripshare.schemas.optimization import (
    OptimizationSweepResult,
    ProposalActionResult,
    ProposalDecision,
    ProposalResponse,
    ProposalRevert,
)
from tripshare.schemas.trip import SYSTEM_ACTOR, ActorRef, TripResponse
from tripshare.services import optimization_service
from tripshare.services.audit_service import get_audit_ledger
from tripshare.services.email_service import get_notifier

router = APIRouter(prefix="/api/v1/optimizations", tags=["Optimisation"])


@router.post("/sweep", response_model=OptimizationSweepResult, summary="Lancer un balayage de regroupement")
def run_sweep(
    actor: Optional[ActorRef] = Body(None),
    db: Session = Depends(get_db),
    ledger=Depends(get_audit_ledger),
):
    """Regroupe les trajets approuvés compatibles ; idempotent."""
    return optimization_service.run_optimization_sweep(db, actor or SYSTEM_ACTOR, ledger=ledger)


@router.get("", response_model=List[ProposalResponse], summary="Lister les propositions")
def list_proposals(status: Optional[GroupStatus] = None, db: Session = Depends(get_db)):
    return optimization_service.list_proposals(db, status=status)


@router.get("/{group_id}", response_model=ProposalResponse, summary="Détail d'une proposition")
def get_proposal(group_id: str, db: Session = Depends(get_db)):
    proposal = optimization_service.get_proposal(db, group_id)
    if proposal is None:
        raise HTTPException(status_code=404, detail="Proposition introuvable.")
    return proposal


@router.get("/{group_id}/previews", response_model=List[TripResponse], summary="Aperçus des trajets regroupés")
def get_previews(group_id: str, db: Session = Depends(get_db)):
    """Trajets temporaires montrant l'horaire et le véhicule proposés à chaque membre."""
    if optimization_service.get_proposal(db, group_id) is None:
        raise HTTPException(status_code=404, detail="Proposition introuvable.")
    return optimization_service.get_proposal_previews(db, group_id)


@router.post("/{group_id}/resolve", response_model=ProposalActionResult, summary="Approuver ou refuser")
def resolve_proposal(
    group_id: str,
    data: ProposalDecision,
    db: Session = Depends(get_db),
    ledger=Depends(get_audit_ledger),
    notifier=Depends(get_notifier),
):
    """Une proposition n'est résolue qu'une fois (409 ensuite)."""
    return ensure_ok(optimization_service.resolve_proposal(
        db, group_id, data.action, data.actor, data.note, ledger=ledger, notifier=notifier,
    ))


@router.post("/{group_id}/revert", response_model=ProposalActionResult,
             summary="Annuler un regroupement approuvé (dérogation)")
def revert(
    group_id: str,
    data: ProposalRevert,
    db: Session = Depends(get_db),
    ledger=Depends(get_audit_ledger),
):
    return ensure_ok(optimization_service.revert_optimization(
        db, group_id, data.actor, data.reason, ledger=ledger,
    ))
