"""
Moteur du workflow d'approbation des trajets.

Étapes d'une demande :
1. Soumission : urgence figée, approbation automatique si aucun manager confirmé,
   sinon jeton d'approbation émis et email envoyé au manager
2. Décision du manager via le lien (approve / reject), à usage unique
3. Expiration après APPROVAL_EXPIRY_HOURS sans réponse (dérivée à la lecture
   et persistée par le balayage périodique)
4. Dérogation administrative sur toute demande encore en attente

Chaque mutation est un UPDATE conditionnel dont la précondition provient de la
table des transitions ; le journal d'audit et les notifications suivent le commit
et ne peuvent jamais l'annuler.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripshare.config import settings
from tripshare.models.trip import Trip
from tripshare.models.trip_status import (
    PENDING_STATUSES,
    DataType,
    ManagerApprovalStatus,
    TripStatus,
    is_terminal,
    sources_for,
)
from tripshare.schemas.audit import AuditAction, AuditEntryCreate
from tripshare.schemas.trip import SYSTEM_ACTOR, ActorRef, SubmitterRef, TripSubmit
from tripshare.schemas.workflow import (
    ExpirySweepResult,
    Outcome,
    ReminderSweepResult,
    TripActionResult,
)
from tripshare.services import token_service
from tripshare.services.audit_service import get_audit_ledger, record
from tripshare.services.directory_service import get_profile_directory
from tripshare.services.email_service import NotificationCategory, get_notifier, notify
from tripshare.services.errors import (
    AlreadyResolved,
    IllegalTransition,
    NotFound,
    TokenExpired,
    ValidationFailed,
    WorkflowError,
)
from tripshare.services.token_service import TokenPurpose
from tripshare.services.trip_service import (
    expiry_cutoff,
    is_approval_stale,
    pending_clause,
    template_data,
    to_response,
)

logger = logging.getLogger(__name__)

NO_CONFIRMED_MANAGER = "no_confirmed_manager"
MIN_LINK_TTL = timedelta(hours=1)

# action → (statut cible, statut d'approbation manager, type d'audit)
_DECISIONS = {
    "approve": (TripStatus.APPROVED, ManagerApprovalStatus.APPROVED, AuditAction.APPROVE),
    "reject": (TripStatus.REJECTED, ManagerApprovalStatus.REJECTED, AuditAction.REJECT),
}


def _approval_links(token: str) -> dict:
    base = f"{settings.APP_BASE_URL}/api/v1/approvals/redeem?token={token}"
    return {"approve_url": f"{base}&action=approve", "reject_url": f"{base}&action=reject"}


def _approval_ttl(trip: Trip, now: datetime) -> timedelta:
    """
    Durée de validité d'un lien d'approbation : jamais au-delà de l'échéance
    d'expiration de la demande ; pour un trajet urgent, jamais au-delà du départ.
    Plancher d'une heure pour laisser au manager le temps d'agir.
    """
    deadline = trip.submitted_at + timedelta(hours=settings.APPROVAL_EXPIRY_HOURS)
    if trip.is_urgent:
        deadline = min(deadline, datetime.combine(trip.departure_date, trip.departure_time))
    ttl = min(deadline - now, timedelta(hours=settings.APPROVAL_TOKEN_TTL_HOURS))
    return max(ttl, MIN_LINK_TTL)


def _load_raw_trip(db: Session, trip_id: str) -> Trip:
    trip = db.get(Trip, trip_id)
    if trip is None or trip.data_type != DataType.RAW.value:
        raise NotFound("Trajet introuvable.")
    return trip


def _apply_decision(
    db: Session,
    trip_id: str,
    action: str,
    now: datetime,
    reason: Optional[str] = None,
) -> None:
    """
    Transition pending_* → approved/rejected en un seul UPDATE conditionnel.
    Lève AlreadyResolved si la demande n'est plus en attente (autre décision gagnante).
    """
    target, approval_status, _ = _DECISIONS[action]
    sources = [s.value for s in sources_for(target, within=PENDING_STATUSES)]
    result = db.execute(
        update(Trip)
        .where(
            Trip.id == trip_id,
            Trip.data_type == DataType.RAW.value,
            Trip.status.in_(sources),
            Trip.manager_approval_status == ManagerApprovalStatus.PENDING.value,
        )
        .values(
            status=target.value,
            manager_approval_status=approval_status.value,
            manager_action_at=now,
            rejection_reason=reason if action == "reject" else None,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise AlreadyResolved("Cette demande a déjà été traitée.")


def _decision_template(trip: Trip, decided_by: str) -> dict:
    return {
        "trip": template_data(trip),
        "status": trip.status,
        "reason": trip.rejection_reason,
        "decided_by": decided_by,
    }


def _submitter_recipients(trip: Trip) -> list:
    return [trip.user_email] + list(trip.cc_emails or [])


def submit_trip(
    db: Session,
    data: TripSubmit,
    submitter: SubmitterRef,
    *,
    ledger=None,
    notifier=None,
    directory=None,
    now: Optional[datetime] = None,
) -> TripActionResult:
    """
    Enregistre une demande de trajet et détermine son statut initial.

    - aucun manager confirmé → auto_approved (motif enregistré)
    - départ à moins de URGENT_THRESHOLD_HOURS → pending_urgent
    - sinon → pending_approval
    Le jeton d'approbation est créé dans la même transaction que le trajet.
    """
    now = now or datetime.now()
    ledger = ledger or get_audit_ledger()
    notifier = notifier or get_notifier()
    directory = directory or get_profile_directory()

    departure_at = data.departure_at
    if departure_at <= now:
        return TripActionResult(
            outcome=Outcome.VALIDATION_ERROR,
            message="La date de départ doit être dans le futur.",
        )

    manager_email = directory.get_submitter_manager(db, submitter.user_id)
    is_urgent = departure_at - now < timedelta(hours=settings.URGENT_THRESHOLD_HOURS)

    if manager_email is None:
        status = TripStatus.AUTO_APPROVED
        approval_status = ManagerApprovalStatus.APPROVED
    elif is_urgent:
        status = TripStatus.PENDING_URGENT
        approval_status = ManagerApprovalStatus.PENDING
    else:
        status = TripStatus.PENDING_APPROVAL
        approval_status = ManagerApprovalStatus.PENDING

    trip = Trip(
        user_id=submitter.user_id,
        user_email=submitter.email,
        user_name=submitter.name,
        departure_location=data.departure_location,
        destination=data.destination,
        departure_date=data.departure_date,
        departure_time=data.departure_time,
        return_date=data.return_date,
        return_time=data.return_time,
        purpose=data.purpose,
        cc_emails=data.cc_emails,
        status=status.value,
        manager_approval_status=approval_status.value,
        manager_email=manager_email,
        is_urgent=is_urgent,
        auto_approved=manager_email is None,
        auto_approved_reason=NO_CONFIRMED_MANAGER if manager_email is None else None,
        submitted_at=now,
        data_type=DataType.RAW.value,
    )

    token = None
    try:
        db.add(trip)
        db.flush()  # Obtenir l'ID avant d'émettre le jeton
        if manager_email is not None:
            token = token_service.issue(
                db, trip.id, TokenPurpose.TRIP_APPROVAL, _approval_ttl(trip, now),
                now=now, commit=False,
            )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(trip)

    logger.info(
        "Trajet soumis : %s (%s → %s, %s) — statut %s%s",
        trip.id, trip.departure_location, trip.destination, trip.departure_date,
        trip.status, " [urgent]" if is_urgent else "",
    )

    record(ledger, AuditEntryCreate(
        trip_id=trip.id,
        action=AuditAction.SUBMIT,
        actor_email=submitter.email,
        actor_name=submitter.name,
        actor_role="user",
        new_status=trip.status,
        notes="Approbation automatique : aucun manager confirmé" if trip.auto_approved else None,
        created_at=now,
    ))

    warnings = []
    if token is not None:
        notify(
            notifier,
            NotificationCategory.MANAGER_CONFIRMATION_REQUEST,
            [manager_email] + list(trip.cc_emails or []),
            {
                "trip": template_data(trip),
                "expires_at": (now + _approval_ttl(trip, now)).strftime("%d/%m/%Y %H:%M"),
                **_approval_links(token),
            },
            warnings,
        )
        if is_urgent:
            notify(
                notifier,
                NotificationCategory.URGENT_ALERT,
                settings.ADMIN_EMAILS,
                {"trip": template_data(trip)},
                warnings,
            )

    return TripActionResult(
        outcome=Outcome.OK,
        message="Trajet approuvé automatiquement." if trip.auto_approved
        else "Demande envoyée au manager pour approbation.",
        trip=to_response(trip, now),
        warnings=warnings,
    )


def redeem_approval_token(
    db: Session,
    token: str,
    action: str,
    *,
    reason: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    ledger=None,
    notifier=None,
    now: Optional[datetime] = None,
) -> TripActionResult:
    """
    Décision du manager via le lien reçu par email.

    La consommation du jeton et la transition du trajet sont validées ensemble :
    si le trajet n'est plus en attente, tout est annulé (AlreadyResolved) et
    le jeton n'est pas consommé.
    """
    now = now or datetime.now()
    ledger = ledger or get_audit_ledger()
    notifier = notifier or get_notifier()

    if action not in _DECISIONS:
        return TripActionResult(
            outcome=Outcome.VALIDATION_ERROR,
            message="Action invalide : 'approve' ou 'reject' attendu.",
        )

    trip_id = old_status = manager_email = None
    try:
        row = token_service.consume(db, token, action, purpose=TokenPurpose.TRIP_APPROVAL, now=now)
        trip = _load_raw_trip(db, row.subject)
        trip_id, old_status, manager_email = trip.id, trip.status, trip.manager_email
        if is_approval_stale(trip, now):
            db.rollback()
            token_service.mark_expired(db, token, now=now)
            raise TokenExpired("Le délai d'approbation de cette demande est dépassé.")
        _apply_decision(db, trip.id, action, now, reason)
        db.commit()
    except WorkflowError as e:
        db.rollback()
        logger.warning("Décision refusée pour le jeton (%s) : %s", action, e.message)
        if trip_id is not None:
            record(ledger, AuditEntryCreate(
                trip_id=trip_id,
                action=AuditAction.REJECTED_ACTION,
                actor_email=manager_email or "manager",
                actor_role="manager",
                old_status=old_status,
                new_status=old_status,
                notes=f"Décision '{action}' refusée ({e.outcome.value}) : {e.message}",
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=now,
            ))
        return TripActionResult(outcome=e.outcome, message=e.message)
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(trip)
    _, _, audit_action = _DECISIONS[action]
    actor = ActorRef(
        email=trip.manager_email or "manager",
        role="manager",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    record(ledger, AuditEntryCreate.for_actor(
        actor,
        trip_id=trip.id,
        action=audit_action,
        old_status=old_status,
        new_status=trip.status,
        notes=reason,
        created_at=now,
    ))
    logger.info("Trajet %s : %s → %s par le manager %s", trip.id, old_status, trip.status, actor.email)

    warnings = []
    notify(
        notifier,
        NotificationCategory.APPROVAL_RESULT,
        _submitter_recipients(trip),
        _decision_template(trip, decided_by=actor.email),
        warnings,
    )
    return TripActionResult(
        outcome=Outcome.OK,
        message="Trajet approuvé." if action == "approve" else "Trajet refusé.",
        trip=to_response(trip, now),
        warnings=warnings,
    )


def admin_override(
    db: Session,
    trip_id: str,
    action: str,
    reason: str,
    actor: ActorRef,
    *,
    ledger=None,
    notifier=None,
    now: Optional[datetime] = None,
) -> TripActionResult:
    """
    Décision administrative sur une demande encore en attente (y compris une
    demande dont le délai est dépassé mais pas encore persistée comme expirée).
    Les liens d'approbation encore actifs sont neutralisés dans la même transaction.
    """
    now = now or datetime.now()
    ledger = ledger or get_audit_ledger()
    notifier = notifier or get_notifier()

    try:
        if actor.role != "admin":
            raise ValidationFailed("Seul un administrateur peut déroger au workflow.")
        if action not in _DECISIONS:
            raise ValidationFailed("Action invalide : 'approve' ou 'reject' attendu.")
        if not reason or not reason.strip():
            raise ValidationFailed("Une justification est obligatoire pour une dérogation.")
        trip = _load_raw_trip(db, trip_id)
        old_status = trip.status
        _apply_decision(db, trip.id, action, now, reason.strip())
        token_service.supersede(db, trip.id, TokenPurpose.TRIP_APPROVAL, now=now)
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
        action=AuditAction.ADMIN_OVERRIDE,
        old_status=old_status,
        new_status=trip.status,
        notes=f"Dérogation administrateur ({action}) : {reason.strip()}",
        created_at=now,
    ))
    logger.info("Dérogation admin sur le trajet %s : %s → %s par %s", trip.id, old_status, trip.status, actor.email)

    warnings = []
    notify(
        notifier,
        NotificationCategory.APPROVAL_RESULT,
        _submitter_recipients(trip),
        _decision_template(trip, decided_by=actor.name or actor.email),
        warnings,
    )
    return TripActionResult(
        outcome=Outcome.OK,
        message="Dérogation appliquée.",
        trip=to_response(trip, now),
        warnings=warnings,
    )


def cancel_trip(
    db: Session,
    trip_id: str,
    actor: ActorRef,
    reason: Optional[str] = None,
    *,
    ledger=None,
    now: Optional[datetime] = None,
) -> TripActionResult:
    """Annulation par le demandeur ou un administrateur, avant toute proposition de regroupement."""
    now = now or datetime.now()
    ledger = ledger or get_audit_ledger()

    try:
        trip = _load_raw_trip(db, trip_id)
        if actor.role != "admin" and actor.email.lower() != trip.user_email.lower():
            raise ValidationFailed("Seul le demandeur ou un administrateur peut annuler ce trajet.")
        old_status = trip.status
        sources = [s.value for s in sources_for(TripStatus.CANCELLED)]
        result = db.execute(
            update(Trip)
            .where(
                Trip.id == trip.id,
                Trip.status.in_(sources),
                Trip.optimized_group_id.is_(None),
            )
            .values(status=TripStatus.CANCELLED.value, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            if is_terminal(old_status):
                raise AlreadyResolved("Ce trajet est déjà clôturé.")
            raise IllegalTransition(f"Impossible d'annuler un trajet au statut '{old_status}'.")
        token_service.supersede(db, trip.id, TokenPurpose.TRIP_APPROVAL, now=now)
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
        action=AuditAction.CANCEL,
        old_status=old_status,
        new_status=trip.status,
        notes=reason,
        created_at=now,
    ))
    logger.info("Trajet %s annulé par %s", trip.id, actor.email)
    return TripActionResult(outcome=Outcome.OK, message="Trajet annulé.", trip=to_response(trip, now))


def reissue_approval_link(
    db: Session,
    trip_id: str,
    actor: ActorRef,
    *,
    ledger=None,
    notifier=None,
    now: Optional[datetime] = None,
) -> TripActionResult:
    """
    Renvoie un nouveau lien d'approbation au manager (lien expiré ou perdu).
    Les liens précédents sont neutralisés ; la demande ne doit pas avoir expiré.
    """
    now = now or datetime.now()
    ledger = ledger or get_audit_ledger()
    notifier = notifier or get_notifier()

    try:
        trip = _load_raw_trip(db, trip_id)
        if trip.status not in {s.value for s in PENDING_STATUSES} or \
                trip.manager_approval_status != ManagerApprovalStatus.PENDING.value:
            raise AlreadyResolved("Cette demande a déjà été traitée.")
        if is_approval_stale(trip, now):
            raise TokenExpired("Le délai d'approbation est dépassé : un administrateur doit traiter la demande.")
        if datetime.combine(trip.departure_date, trip.departure_time) <= now:
            raise TokenExpired("Le départ est passé : un administrateur doit traiter la demande.")
        token_service.supersede(db, trip.id, TokenPurpose.TRIP_APPROVAL, now=now)
        ttl = _approval_ttl(trip, now)
        token = token_service.issue(db, trip.id, TokenPurpose.TRIP_APPROVAL, ttl, now=now, commit=False)
        db.commit()
    except WorkflowError as e:
        db.rollback()
        return TripActionResult(outcome=e.outcome, message=e.message)
    except SQLAlchemyError:
        db.rollback()
        raise

    record(ledger, AuditEntryCreate.for_actor(
        actor,
        trip_id=trip.id,
        action=AuditAction.REISSUE_LINK,
        old_status=trip.status,
        new_status=trip.status,
        notes="Nouveau lien d'approbation envoyé au manager",
        created_at=now,
    ))

    warnings = []
    notify(
        notifier,
        NotificationCategory.MANAGER_CONFIRMATION_REQUEST,
        [trip.manager_email],
        {
            "trip": template_data(trip),
            "expires_at": (now + ttl).strftime("%d/%m/%Y %H:%M"),
            **_approval_links(token),
        },
        warnings,
    )
    return TripActionResult(
        outcome=Outcome.OK,
        message="Nouveau lien envoyé au manager.",
        trip=to_response(trip, now),
        warnings=warnings,
    )


def expire_stale_approvals(
    db: Session,
    *,
    ledger=None,
    notifier=None,
    now: Optional[datetime] = None,
) -> ExpirySweepResult:
    """
    Balayage périodique : persiste l'expiration des demandes sans réponse.
    Idempotent ; chaque trajet est traité dans sa propre transaction pour
    qu'un échec isolé n'interrompe pas le lot.
    """
    now = now or datetime.now()
    ledger = ledger or get_audit_ledger()
    notifier = notifier or get_notifier()
    cutoff = expiry_cutoff(now)
    sources = [s.value for s in sources_for(TripStatus.EXPIRED, within=PENDING_STATUSES)]

    candidates = db.execute(
        select(Trip.id, Trip.status).where(pending_clause(), Trip.submitted_at < cutoff).order_by(Trip.submitted_at)
    ).all()

    report = ExpirySweepResult()
    for trip_id, old_status in candidates:
        try:
            result = db.execute(
                update(Trip)
                .where(
                    Trip.id == trip_id,
                    Trip.status.in_(sources),
                    Trip.manager_approval_status == ManagerApprovalStatus.PENDING.value,
                    Trip.submitted_at < cutoff,
                )
                .values(status=TripStatus.EXPIRED.value, expired_notified_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.rollback()
                report.skipped_trip_ids.append(trip_id)
                continue
            token_service.supersede(db, trip_id, TokenPurpose.TRIP_APPROVAL, now=now)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Échec de l'expiration du trajet %s : %s", trip_id, exc)
            report.warnings.append(f"Trajet {trip_id} : échec de l'expiration.")
            continue

        trip = db.get(Trip, trip_id)
        db.refresh(trip)
        report.expired_trip_ids.append(trip_id)
        record(ledger, AuditEntryCreate.for_actor(
            SYSTEM_ACTOR,
            trip_id=trip_id,
            action=AuditAction.EXPIRE,
            old_status=old_status,
            new_status=TripStatus.EXPIRED.value,
            notes=f"Aucune réponse du manager en {settings.APPROVAL_EXPIRY_HOURS}h",
            created_at=now,
        ))
        notify(
            notifier,
            NotificationCategory.APPROVAL_EXPIRED,
            [trip.user_email] + list(settings.ADMIN_EMAILS),
            {"trip": template_data(trip)},
            report.warnings,
        )

    if report.expired_trip_ids:
        logger.info("Balayage d'expiration : %d demande(s) expirée(s)", len(report.expired_trip_ids))
    return report


def send_pending_reminders(
    db: Session,
    *,
    ledger=None,
    notifier=None,
    now: Optional[datetime] = None,
) -> ReminderSweepResult:
    """
    Relance unique du manager pour les demandes en attente depuis plus de
    REMINDER_AFTER_HOURS, avec le lien d'approbation encore actif.
    """
    now = now or datetime.now()
    ledger = ledger or get_audit_ledger()
    notifier = notifier or get_notifier()

    trips = db.execute(
        select(Trip).where(
            pending_clause(),
            Trip.reminder_sent_at.is_(None),
            Trip.submitted_at <= now - timedelta(hours=settings.REMINDER_AFTER_HOURS),
            Trip.submitted_at >= expiry_cutoff(now),
        ).order_by(Trip.submitted_at)
    ).scalars().all()

    report = ReminderSweepResult()
    for trip in trips:
        token = token_service.active_token_for(db, trip.id, TokenPurpose.TRIP_APPROVAL, now=now)
        if token is None:
            report.warnings.append(f"Trajet {trip.id} : aucun lien actif, relance ignorée.")
            continue

        result = db.execute(
            update(Trip)
            .where(Trip.id == trip.id, Trip.reminder_sent_at.is_(None))
            .values(reminder_sent_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            continue
        db.commit()

        notify(
            notifier,
            NotificationCategory.REMINDER,
            [trip.manager_email],
            {"trip": template_data(trip), **_approval_links(token)},
            report.warnings,
        )
        record(ledger, AuditEntryCreate.for_actor(
            SYSTEM_ACTOR,
            trip_id=trip.id,
            action=AuditAction.REMIND,
            old_status=trip.status,
            new_status=trip.status,
            notes=f"Relance envoyée à {trip.manager_email}",
            created_at=now,
        ))
        report.reminded_trip_ids.append(trip.id)

    return report
