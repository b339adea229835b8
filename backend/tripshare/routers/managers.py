"""
Router de vérification des managers déclarés.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tripshare.database import get_db
from tripshare.routers.outcomes import ensure_ok
from tripshare.schemas.manager import ManagerDeclare, ManagerVerificationResult
from tripshare.services import manager_verification_service
from tripshare.services.email_service import get_notifier

router = APIRouter(prefix="/api/v1/managers", tags=["Managers"])


@router.post("/declare", response_model=ManagerVerificationResult, status_code=201,
             summary="Déclarer son manager")
def declare_manager(data: ManagerDeclare, db: Session = Depends(get_db), notifier=Depends(get_notifier)):
    """Enregistre le manager déclaré et lui envoie un lien de confirmation (7 jours)."""
    return ensure_ok(manager_verification_service.request_manager_verification(db, data, notifier=notifier))


@router.get("/verify", response_model=ManagerVerificationResult, summary="Confirmation du manager (lien email)")
def verify_manager(
    token: str = Query(...),
    action: str = Query(..., pattern="^(confirm|reject)$"),
    db: Session = Depends(get_db),
):
    return ensure_ok(manager_verification_service.redeem_manager_verification(db, token, action))
