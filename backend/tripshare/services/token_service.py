"""
Service des jetons de confirmation à usage unique (liens d'action envoyés par email).

Deux usages :
- trip_approval        : approbation/refus d'un trajet par le manager (48h par défaut)
- manager_verification : confirmation initiale d'un manager déclaré (7 jours par défaut)

La consommation est un compare-and-set (UPDATE ... WHERE consumed_at IS NULL) :
sous accès concurrents, une seule consommation réussit, les autres observent
« déjà consommé ».
"""

import enum
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from tripshare.models.confirmation_token import ConfirmationToken
from tripshare.schemas.workflow import Outcome
from tripshare.services.errors import AlreadyConsumed, NotFound, TokenExpired, WorkflowError

logger = logging.getLogger(__name__)

EXPIRED_OUTCOME = "expired"
SUPERSEDED_OUTCOME = "superseded"


class TokenPurpose(str, enum.Enum):
    TRIP_APPROVAL = "trip_approval"
    MANAGER_VERIFICATION = "manager_verification"


@dataclass
class TokenRedemption:
    outcome: Outcome
    message: str
    subject: Optional[str] = None
    purpose: Optional[str] = None


def _generate_token() -> str:
    """Jeton imprévisible (256 bits d'entropie, encodé URL-safe)."""
    return secrets.token_urlsafe(32)


def issue(
    db: Session,
    subject: str,
    purpose: TokenPurpose,
    ttl: timedelta,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> str:
    """
    Crée un jeton pour `subject` valable `ttl` et le retourne pour l'inclure dans un email.
    Avec commit=False, l'insertion rejoint la transaction de l'appelant.
    """
    now = now or datetime.now()
    token = _generate_token()
    db.add(ConfirmationToken(
        token=token,
        subject=subject,
        purpose=purpose.value,
        expires_at=now + ttl,
    ))
    if commit:
        db.commit()
    else:
        db.flush()
    logger.info("Jeton %s émis pour %s (expire dans %s)", purpose.value, subject, ttl)
    return token


def consume(
    db: Session,
    token: str,
    action: str,
    purpose: Optional[TokenPurpose] = None,
    now: Optional[datetime] = None,
) -> ConfirmationToken:
    """
    Consomme le jeton dans la transaction courante sans la valider.

    Lève NotFound, TokenExpired ou AlreadyConsumed. Un jeton trouvé expiré est
    marqué (et ce marquage est validé immédiatement) pour ne jamais redevenir utilisable.
    """
    now = now or datetime.now()
    row = db.execute(
        select(ConfirmationToken).where(ConfirmationToken.token == token)
    ).scalar()

    if row is None or (purpose is not None and row.purpose != purpose.value):
        raise NotFound("Lien de confirmation introuvable.")

    if row.consumed_at is not None:
        if row.outcome == EXPIRED_OUTCOME:
            raise TokenExpired("Ce lien de confirmation a expiré.")
        raise AlreadyConsumed("Ce lien de confirmation a déjà été utilisé.")

    if now >= row.expires_at:
        db.execute(
            update(ConfirmationToken)
            .where(ConfirmationToken.id == row.id, ConfirmationToken.consumed_at.is_(None))
            .values(consumed_at=now, outcome=EXPIRED_OUTCOME)
        )
        db.commit()
        logger.warning("Jeton %s expiré pour %s", row.purpose, row.subject)
        raise TokenExpired("Ce lien de confirmation a expiré.")

    result = db.execute(
        update(ConfirmationToken)
        .where(ConfirmationToken.id == row.id, ConfirmationToken.consumed_at.is_(None))
        .values(consumed_at=now, outcome=action)
    )
    if result.rowcount != 1:
        raise AlreadyConsumed("Ce lien de confirmation a déjà été utilisé.")
    return row


def redeem(
    db: Session,
    token: str,
    action: str,
    purpose: Optional[TokenPurpose] = None,
    now: Optional[datetime] = None,
) -> TokenRedemption:
    """Consomme le jeton de façon atomique et retourne le sujet à traiter par l'appelant."""
    try:
        row = consume(db, token, action, purpose=purpose, now=now)
        db.commit()
    except WorkflowError as e:
        db.rollback()
        return TokenRedemption(outcome=e.outcome, message=e.message)

    return TokenRedemption(
        outcome=Outcome.OK,
        message="Jeton consommé.",
        subject=row.subject,
        purpose=row.purpose,
    )


def supersede(db: Session, subject: str, purpose: TokenPurpose, now: Optional[datetime] = None) -> int:
    """Neutralise les jetons encore actifs d'un sujet (transaction de l'appelant)."""
    now = now or datetime.now()
    result = db.execute(
        update(ConfirmationToken)
        .where(
            ConfirmationToken.subject == subject,
            ConfirmationToken.purpose == purpose.value,
            ConfirmationToken.consumed_at.is_(None),
        )
        .values(consumed_at=now, outcome=SUPERSEDED_OUTCOME)
    )
    return result.rowcount or 0


def active_token_for(
    db: Session, subject: str, purpose: TokenPurpose, now: Optional[datetime] = None
) -> Optional[str]:
    """Dernier jeton encore utilisable pour un sujet, ou None."""
    now = now or datetime.now()
    return db.execute(
        select(ConfirmationToken.token)
        .where(
            ConfirmationToken.subject == subject,
            ConfirmationToken.purpose == purpose.value,
            ConfirmationToken.consumed_at.is_(None),
            ConfirmationToken.expires_at > now,
        )
        .order_by(ConfirmationToken.expires_at.desc())
    ).scalars().first()


def mark_expired(db: Session, token: str, now: Optional[datetime] = None) -> bool:
    """
    Marque un jeton encore actif comme expiré et valide immédiatement,
    pour une demande dont l'échéance est dépassée avant celle du jeton.
    """
    now = now or datetime.now()
    result = db.execute(
        update(ConfirmationToken)
        .where(ConfirmationToken.token == token, ConfirmationToken.consumed_at.is_(None))
        .values(consumed_at=now, outcome=EXPIRED_OUTCOME)
    )
    db.commit()
    return result.rowcount == 1
