"""
Router du workflow d'approbation : liens envoyés aux managers,
dérogations administratives, file d'exceptions et balayages manuels.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tripshare.database import get_db
from tripshare.routers.outcomes import ensure_ok
from tripshare.schemas.workflow import (
    AdminOverrideRequest,
    ExceptionQueue,
    ExpirySweepResult,
    PendingBadge,
    ReminderSweepResult,
    TripActionResult,
)
from tripshare.services import approval_service, trip_service
from tripshare.services.audit_service import get_audit_ledger
from tripshare.services.email_service import get_notifier

router = APIRouter(prefix="/api/v1/approvals", tags=["Approbations"])


@router.get("/redeem", response_model=TripActionResult, summary="Décision du manager (lien email)")
def redeem(
    request: Request,
    token: str = Query(...),
    action: str = Query(..., pattern="^(approve|reject)$"),
    reason: Optional[str] = None,
    db: Session = Depends(get_db),
    ledger=Depends(get_audit_ledger),
    notifier=Depends(get_notifier),
):
    """
    Lien à usage unique reçu par le manager.
    409 si déjà utilisé ou déjà traité, 410 si expiré, 404 si inconnu.
    """
    return ensure_ok(approval_service.redeem_approval_token(
        db, token, action,
        reason=reason,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        ledger=ledger,
        notifier=notifier,
    ))


@router.post("/{trip_id}/override", response_model=TripActionResult, summary="Dérogation administrateur")
def admin_override(
    trip_id: str,
    data: AdminOverrideRequest,
    db: Session = Depends(get_db),
    ledger=Depends(get_audit_ledger),
    notifier=Depends(get_notifier),
):
    """Approuve ou refuse une demande en attente ; justification obligatoire."""
    return ensure_ok(approval_service.admin_override(
        db, trip_id, data.action, data.reason, data.actor, ledger=ledger, notifier=notifier,
    ))


@router.get("/exceptions", response_model=ExceptionQueue, summary="File d'exceptions")
def exception_queue(older_than_hours: Optional[int] = Query(None, ge=0), db: Session = Depends(get_db)):
    return trip_service.get_exception_queue(db, older_than_hours=older_than_hours)


@router.get("/badge", response_model=PendingBadge, summary="Compteur des demandes en attente")
def pending_badge(db: Session = Depends(get_db)):
    return trip_service.pending_badge(db)


@router.post("/expire", response_model=ExpirySweepResult, summary="Persister les expirations")
def expire_now(
    db: Session = Depends(get_db),
    ledger=Depends(get_audit_ledger),
    notifier=Depends(get_notifier),
):
    """Déclenche manuellement le balayage d'expiration (normalement planifié)."""
    return approval_service.expire_stale_approvals(db, ledger=ledger, notifier=notifier)


@router.post("/reminders", response_model=ReminderSweepResult, summary="Relancer les managers")
def send_reminders(
    db: Session = Depends(get_db),
    ledger=Depends(get_audit_ledger),
    notifier=Depends(get_notifier),
):
    return approval_service.send_pending_reminders(db, ledger=ledger, notifier=notifier)
