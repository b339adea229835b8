"""
Vérification du manager déclaré par un utilisateur.

Un manager déclaré ne compte qu'après avoir confirmé par le lien reçu par email
(jeton manager_verification, 7 jours par défaut). Tant que ce n'est pas fait,
les trajets de l'utilisateur sont approuvés automatiquement.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripshare.config import settings
from tripshare.models.user import User
from tripshare.schemas.manager import ManagerDeclare, ManagerVerificationResult
from tripshare.schemas.workflow import Outcome
from tripshare.services import token_service
from tripshare.services.email_service import NotificationCategory, get_notifier, notify
from tripshare.services.errors import AlreadyResolved, NotFound, ValidationFailed, WorkflowError
from tripshare.services.token_service import TokenPurpose

logger = logging.getLogger(__name__)

_ACTIONS = ("confirm", "reject")


def _verification_links(token: str) -> dict:
    base = f"{settings.APP_BASE_URL}/api/v1/managers/verify?token={token}"
    return {"confirm_url": f"{base}&action=confirm", "reject_url": f"{base}&action=reject"}


def request_manager_verification(
    db: Session,
    data: ManagerDeclare,
    *,
    notifier=None,
    now: Optional[datetime] = None,
) -> ManagerVerificationResult:
    """
    Enregistre le manager déclaré et lui envoie un lien de confirmation.
    Une nouvelle déclaration neutralise les liens précédents de l'utilisateur.
    """
    now = now or datetime.now()
    notifier = notifier or get_notifier()

    try:
        user = db.get(User, data.user_id)
        if user is None:
            raise NotFound("Utilisateur introuvable.")
        if data.manager_email == user.email.lower():
            raise ValidationFailed("Un utilisateur ne peut pas être son propre manager.")

        user.pending_manager_email = data.manager_email
        user.pending_manager_name = data.manager_name
        token_service.supersede(db, user.id, TokenPurpose.MANAGER_VERIFICATION, now=now)
        token = token_service.issue(
            db, user.id, TokenPurpose.MANAGER_VERIFICATION,
            timedelta(hours=settings.MANAGER_VERIFICATION_TTL_HOURS),
            now=now, commit=False,
        )
        db.commit()
    except WorkflowError as e:
        db.rollback()
        return ManagerVerificationResult(outcome=e.outcome, message=e.message, user_id=data.user_id)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Manager %s déclaré par l'utilisateur %s, en attente de confirmation", data.manager_email, user.id)
    warnings = []
    notify(
        notifier,
        NotificationCategory.MANAGER_VERIFICATION,
        [data.manager_email],
        {"user_name": user.name or user.email, **_verification_links(token)},
        warnings,
    )
    return ManagerVerificationResult(
        outcome=Outcome.OK,
        message="Lien de confirmation envoyé au manager.",
        user_id=user.id,
        manager_email=data.manager_email,
        warnings=warnings,
    )


def redeem_manager_verification(
    db: Session,
    token: str,
    action: str,
    *,
    now: Optional[datetime] = None,
) -> ManagerVerificationResult:
    """Le manager confirme (ou refuse) son rôle via le lien reçu."""
    now = now or datetime.now()
    if action not in _ACTIONS:
        return ManagerVerificationResult(
            outcome=Outcome.VALIDATION_ERROR,
            message="Action invalide : 'confirm' ou 'reject' attendu.",
        )

    try:
        row = token_service.consume(db, token, action, purpose=TokenPurpose.MANAGER_VERIFICATION, now=now)
        user = db.get(User, row.subject)
        if user is None:
            raise NotFound("Utilisateur introuvable.")
        manager_email = user.pending_manager_email
        if manager_email is None:
            raise AlreadyResolved("Aucune déclaration de manager en attente.")

        if action == "confirm":
            user.manager_email = manager_email
            user.manager_name = user.pending_manager_name
            user.manager_confirmed = True
            user.manager_confirmed_at = now
        user.pending_manager_email = None
        user.pending_manager_name = None
        db.commit()
    except WorkflowError as e:
        db.rollback()
        return ManagerVerificationResult(outcome=e.outcome, message=e.message)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Manager %s : %s pour l'utilisateur %s", manager_email, action, user.id)
    return ManagerVerificationResult(
        outcome=Outcome.OK,
        message="Rôle de manager confirmé." if action == "confirm" else "Déclaration refusée.",
        user_id=user.id,
        manager_email=manager_email,
    )
