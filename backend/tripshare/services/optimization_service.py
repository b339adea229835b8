"""
Moteur de regroupement des trajets approuvés sur un véhicule partagé.

Algorithme (balayage) :
1. Candidats : trajets de référence approved / auto_approved non liés à un groupe
2. Partition par (date de départ, lieu de départ, destination)
3. Heure de départ en minutes depuis minuit, moyenne de la partition ;
   si un écart dépasse la tolérance, toute la partition reste en solo
4. Choix du véhicule selon le nombre de voyageurs (car-4, car-7, van-16)
5. Estimation du coût individuel vs partagé ; sous le seuil d'économie → solo
6. Partition retenue : un groupe « proposed », un aperçu temp par membre

La création du groupe et le rattachement des membres forment une seule
transaction : un trajet ne peut jamais appartenir à deux groupes.
"""

import itertools
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripshare.config import settings
from tripshare.models.proposal_group import ProposalGroup
from tripshare.models.trip import Trip
from tripshare.models.trip_status import (
    GROUPING_CANDIDATE_STATUSES,
    DataType,
    GroupStatus,
    TripStatus,
    can_override,
    pre_proposal_status,
    sources_for,
)
from tripshare.schemas.audit import AuditAction, AuditEntryCreate
from tripshare.schemas.optimization import (
    OptimizationSweepResult,
    ProposalActionResult,
    ProposalResponse,
)
from tripshare.schemas.trip import SYSTEM_ACTOR, ActorRef, TripResponse
from tripshare.schemas.workflow import Outcome
from tripshare.services.audit_service import get_audit_ledger, record
from tripshare.services.email_service import NotificationCategory, get_notifier, notify
from tripshare.services.errors import AlreadyResolved, IllegalTransition, NotFound, ValidationFailed, WorkflowError
from tripshare.services.trip_service import template_data, to_response

logger = logging.getLogger(__name__)

BASE_TIER = "car-4"

# (capacité maximale, véhicule), du plus petit au plus grand
VEHICLE_TIERS = [
    (4, "car-4"),
    (7, "car-7"),
    (16, "van-16"),
]

SOLO_SINGLE = "Aucun autre trajet sur le même itinéraire ce jour-là."
SOLO_SPREAD = "Horaires trop éloignés (écart de {deviation:.0f} min > tolérance de {tolerance} min)."
SOLO_TOO_MANY = "Trop de voyageurs pour un seul véhicule ({count} > 16)."
SOLO_LOW_SAVINGS = "Économie insuffisante ({pct:.1f} % < {threshold:.1f} %)."


@dataclass
class SavingsEstimate:
    individual_cost: float
    combined_cost: float
    savings: float
    percentage: float  # En pourcentage (0-100)


@dataclass
class ClusterPlan:
    """Décision de regroupement pour une partition (date, départ, destination)."""
    departure_date: object
    departure_location: str
    destination: str
    trip_ids: List[str]
    accepted: bool
    reason: Optional[str] = None
    vehicle_type: Optional[str] = None
    proposed_minutes: Optional[int] = None
    max_deviation: float = 0.0
    estimate: Optional[SavingsEstimate] = None
    original_minutes: Dict[str, int] = field(default_factory=dict)

    @property
    def proposed_time(self) -> Optional[time]:
        if self.proposed_minutes is None:
            return None
        return minutes_to_time(self.proposed_minutes)


def select_vehicle_tier(count: int) -> Optional[str]:
    """Plus petit véhicule pouvant transporter `count` voyageurs, ou None au-delà de 16."""
    for capacity, vehicle_type in VEHICLE_TIERS:
        if count <= capacity:
            return vehicle_type
    return None


def estimate_savings(
    count: int,
    vehicle_type: str,
    distance_km: Optional[float] = None,
    rates: Optional[Dict[str, float]] = None,
) -> SavingsEstimate:
    """
    Coût individuel = n × distance × tarif(car-4)
    Coût partagé    = distance × tarif(véhicule retenu)
    Un coût individuel nul donne un pourcentage nul (jamais de division par zéro).
    """
    distance_km = settings.ASSUMED_ROUTE_DISTANCE_KM if distance_km is None else distance_km
    rates = rates or settings.VEHICLE_RATES_PER_KM

    individual = count * distance_km * rates[BASE_TIER]
    combined = distance_km * rates[vehicle_type]
    savings = individual - combined
    percentage = savings / individual * 100 if individual > 0 else 0.0
    return SavingsEstimate(
        individual_cost=individual,
        combined_cost=combined,
        savings=savings,
        percentage=percentage,
    )


def minutes_since_midnight(value: time) -> int:
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    return time(hour=minutes // 60, minute=minutes % 60)


def _partition_key(trip):
    return trip.departure_date, trip.departure_location, trip.destination


def plan_clusters(
    trips: Iterable,
    tolerance_minutes: Optional[int] = None,
    min_savings_pct: Optional[float] = None,
    distance_km: Optional[float] = None,
    rates: Optional[Dict[str, float]] = None,
) -> List[ClusterPlan]:
    """
    Calcule les décisions de regroupement sans toucher à la base.
    `trips` : objets exposant id, departure_date, departure_location,
    destination et departure_time (lignes Trip en pratique).

    L'ordre est déterministe : partitions triées par clé, membres par
    heure de départ puis identifiant.
    """
    tolerance = settings.OPTIMIZATION_TIME_TOLERANCE_MINUTES if tolerance_minutes is None else tolerance_minutes
    threshold = settings.OPTIMIZATION_MIN_SAVINGS_PCT if min_savings_pct is None else min_savings_pct

    ordered = sorted(trips, key=lambda t: (*_partition_key(t), t.departure_time, t.id))
    plans = []
    for key, members in itertools.groupby(ordered, key=_partition_key):
        members = list(members)
        minutes = {t.id: minutes_since_midnight(t.departure_time) for t in members}
        plan = ClusterPlan(
            departure_date=key[0],
            departure_location=key[1],
            destination=key[2],
            trip_ids=[t.id for t in members],
            accepted=False,
            original_minutes=minutes,
        )
        plans.append(plan)

        if len(members) < 2:
            plan.reason = SOLO_SINGLE
            continue

        mean = sum(minutes.values()) / len(members)
        plan.max_deviation = max(abs(m - mean) for m in minutes.values())
        if plan.max_deviation > tolerance:
            plan.reason = SOLO_SPREAD.format(deviation=plan.max_deviation, tolerance=tolerance)
            continue

        vehicle_type = select_vehicle_tier(len(members))
        if vehicle_type is None:
            plan.reason = SOLO_TOO_MANY.format(count=len(members))
            continue

        estimate = estimate_savings(len(members), vehicle_type, distance_km, rates)
        plan.estimate = estimate
        if estimate.percentage < threshold:
            plan.reason = SOLO_LOW_SAVINGS.format(pct=estimate.percentage, threshold=threshold)
            continue

        plan.accepted = True
        plan.vehicle_type = vehicle_type
        plan.proposed_minutes = math.floor(mean + 0.5)  # Arrondi à la minute, demi vers le haut

    return plans


def _explanation(plan: ClusterPlan) -> str:
    return (
        f"{len(plan.trip_ids)} trajets {plan.departure_location} → {plan.destination} "
        f"le {plan.departure_date.isoformat()} : départ commun à {plan.proposed_time.strftime('%H:%M')} "
        f"(écart max {plan.max_deviation:.0f} min), véhicule {plan.vehicle_type}, "
        f"économie estimée {plan.estimate.savings:.0f} ({plan.estimate.percentage:.1f} %)."
    )


def _trip_set_key(trip_ids: Iterable[str]) -> str:
    return ",".join(sorted(trip_ids))


def _load_candidates(db: Session) -> List[Trip]:
    return db.execute(
        select(Trip).where(
            Trip.data_type == DataType.RAW.value,
            Trip.status.in_([s.value for s in GROUPING_CANDIDATE_STATUSES]),
            Trip.optimized_group_id.is_(None),
        )
    ).scalars().all()


def _mark_solo(db: Session, trip_id: str, now: datetime) -> Optional[str]:
    """Passe un trajet en approved_solo ; retourne l'ancien statut, ou None si conflit."""
    trip = db.get(Trip, trip_id)
    old_status = trip.status
    sources = [s.value for s in sources_for(TripStatus.APPROVED_SOLO)]
    result = db.execute(
        update(Trip)
        .where(
            Trip.id == trip_id,
            Trip.status.in_(sources),
            Trip.optimized_group_id.is_(None),
        )
        .values(status=TripStatus.APPROVED_SOLO.value, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        return None
    db.commit()
    return old_status


def _link_members(db: Session, trip_ids: List[str], target: TripStatus, values: dict, where_status, *conditions) -> int:
    result = db.execute(
        update(Trip)
        .where(
            Trip.id.in_(trip_ids),
            Trip.data_type == DataType.RAW.value,
            Trip.status.in_([s.value for s in where_status]),
            *conditions,
        )
        .values(status=target.value, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def _create_group(
    db: Session,
    plan: ClusterPlan,
    members: Dict[str, Trip],
    actor: ActorRef,
    now: datetime,
) -> ProposalGroup:
    """
    Crée le groupe, rattache les membres (via pending_optimization) et les aperçus temp
    dans une seule transaction. Lève IllegalTransition si un membre a changé entre-temps.
    """
    count = len(plan.trip_ids)
    group = ProposalGroup(
        trip_ids=list(plan.trip_ids),
        trip_set_key=_trip_set_key(plan.trip_ids),
        departure_date=plan.departure_date,
        departure_location=plan.departure_location,
        destination=plan.destination,
        proposed_departure_time=plan.proposed_time,
        vehicle_type=plan.vehicle_type,
        member_count=count,
        total_distance_km=settings.ASSUMED_ROUTE_DISTANCE_KM,
        estimated_savings=plan.estimate.savings,
        savings_percentage=plan.estimate.percentage,
        explanation=_explanation(plan),
        status=GroupStatus.PROPOSED.value,
        created_by=actor.email,
        created_at=now,
    )
    db.add(group)
    db.flush()

    locked = _link_members(
        db, plan.trip_ids, TripStatus.PENDING_OPTIMIZATION,
        {"optimized_group_id": group.id, "updated_at": now},
        sources_for(TripStatus.PENDING_OPTIMIZATION, within=GROUPING_CANDIDATE_STATUSES),
        Trip.optimized_group_id.is_(None),
    )
    if locked != count:
        raise IllegalTransition(
            f"{count - locked} trajet(s) ont changé d'état pendant le regroupement."
        )

    proposed = _link_members(
        db, plan.trip_ids, TripStatus.PROPOSED, {"updated_at": now},
        sources_for(TripStatus.PROPOSED),
    )
    if proposed != count:
        raise IllegalTransition("Rattachement incomplet des membres au groupe.")

    for trip_id in plan.trip_ids:
        raw = members[trip_id]
        db.add(Trip(
            user_id=raw.user_id,
            user_email=raw.user_email,
            user_name=raw.user_name,
            departure_location=raw.departure_location,
            destination=raw.destination,
            departure_date=raw.departure_date,
            departure_time=plan.proposed_time,
            return_date=raw.return_date,
            return_time=raw.return_time,
            purpose=raw.purpose,
            cc_emails=raw.cc_emails,
            status=TripStatus.PROPOSED.value,
            manager_approval_status=raw.manager_approval_status,
            manager_email=raw.manager_email,
            is_urgent=raw.is_urgent,
            auto_approved=raw.auto_approved,
            auto_approved_reason=raw.auto_approved_reason,
            submitted_at=raw.submitted_at,
            data_type=DataType.TEMP.value,
            optimized_group_id=group.id,
            parent_trip_id=raw.id,
            original_departure_time=raw.departure_time,
            vehicle_type=plan.vehicle_type,
        ))

    db.commit()
    return group


def run_optimization_sweep(
    db: Session,
    actor: ActorRef = SYSTEM_ACTOR,
    *,
    tolerance_minutes: Optional[int] = None,
    min_savings_pct: Optional[float] = None,
    ledger=None,
    now: Optional[datetime] = None,
) -> OptimizationSweepResult:
    """
    Balayage de regroupement. Idempotent : les trajets déjà rattachés ou évalués
    ne sont plus candidats, et une combinaison déjà proposée n'est jamais recréée.
    """
    now = now or datetime.now()
    ledger = ledger or get_audit_ledger()

    candidates = _load_candidates(db)
    by_id = {t.id: t for t in candidates}
    plans = plan_clusters(candidates, tolerance_minutes, min_savings_pct)
    report = OptimizationSweepResult(candidate_count=len(candidates))

    for plan in plans:
        if not plan.accepted:
            for trip_id in plan.trip_ids:
                old_status = _mark_solo(db, trip_id, now)
                if old_status is None:
                    report.conflicts.append(trip_id)
                    continue
                report.solo_trip_ids.append(trip_id)
                record(ledger, AuditEntryCreate.for_actor(
                    actor,
                    trip_id=trip_id,
                    action=AuditAction.MARKED_SOLO,
                    old_status=old_status,
                    new_status=TripStatus.APPROVED_SOLO.value,
                    notes=plan.reason,
                    created_at=now,
                ))
            continue

        key = _trip_set_key(plan.trip_ids)
        already = db.execute(
            select(ProposalGroup.id).where(ProposalGroup.trip_set_key == key)
        ).scalars().first()
        if already is not None:
            report.warnings.append(
                f"Combinaison déjà proposée (groupe {already}) : aucun nouveau groupe créé."
            )
            continue

        old_statuses = {trip_id: by_id[trip_id].status for trip_id in plan.trip_ids}
        try:
            group = _create_group(db, plan, by_id, actor, now)
        except IllegalTransition as e:
            db.rollback()
            logger.warning("Regroupement abandonné (%s) : %s", key, e.message)
            report.conflicts.extend(plan.trip_ids)
            continue
        except SQLAlchemyError:
            db.rollback()
            raise

        db.refresh(group)
        for trip_id in plan.trip_ids:
            record(ledger, AuditEntryCreate.for_actor(
                actor,
                trip_id=trip_id,
                action=AuditAction.OPTIMIZATION_PROPOSED,
                old_status=old_statuses[trip_id],
                new_status=TripStatus.PROPOSED.value,
                notes=f"Via pending_optimization — groupe {group.id} : {group.explanation}",
                created_at=now,
            ))
        report.proposals.append(ProposalResponse.model_validate(group))
        logger.info(
            "Proposition %s créée : %d trajets, %s, économie %.1f %%",
            group.id, group.member_count, group.vehicle_type, group.savings_percentage,
        )

    logger.info(
        "Balayage d'optimisation : %d candidat(s), %d proposition(s), %d solo, %d conflit(s)",
        report.candidate_count, len(report.proposals), len(report.solo_trip_ids), len(report.conflicts),
    )
    return report


def _require_admin(actor: ActorRef) -> None:
    if actor.role != "admin":
        raise ValidationFailed("Seul un administrateur peut traiter une proposition de regroupement.")


def _load_group(db: Session, group_id: str) -> ProposalGroup:
    group = db.get(ProposalGroup, group_id)
    if group is None:
        raise NotFound("Proposition introuvable.")
    return group


def _close_group(
    db: Session, group_id: str, from_status: GroupStatus, to_status: GroupStatus, values: dict
) -> None:
    """Compare-and-set sur le statut du groupe : une seule résolution réussit."""
    result = db.execute(
        update(ProposalGroup)
        .where(ProposalGroup.id == group_id, ProposalGroup.status == from_status.value)
        .values(status=to_status.value, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise AlreadyResolved("Cette proposition a déjà été traitée.")


def _delete_previews(db: Session, group_id: str) -> None:
    db.execute(
        delete(Trip)
        .where(Trip.data_type == DataType.TEMP.value, Trip.optimized_group_id == group_id)
        .execution_options(synchronize_session=False)
    )


def _restore_members(db: Session, group: ProposalGroup, from_status: TripStatus, values: dict) -> int:
    """Ramène les membres à leur statut d'avant proposition (approved ou auto_approved)."""
    restored = 0
    for auto in (True, False):
        target = pre_proposal_status(auto)
        result = db.execute(
            update(Trip)
            .where(
                Trip.id.in_(group.trip_ids),
                Trip.data_type == DataType.RAW.value,
                Trip.optimized_group_id == group.id,
                Trip.status == from_status.value,
                Trip.auto_approved == auto,
            )
            .values(status=target.value, optimized_group_id=None, **values)
            .execution_options(synchronize_session=False)
        )
        restored += result.rowcount
    return restored


def _audit_members(ledger, group: ProposalGroup, actor: ActorRef, action: str,
                   old_status: str, now: datetime, note: Optional[str], db: Session) -> None:
    for trip_id in group.trip_ids:
        trip = db.get(Trip, trip_id)
        record(ledger, AuditEntryCreate.for_actor(
            actor,
            trip_id=trip_id,
            action=action,
            old_status=old_status,
            new_status=trip.status if trip is not None else None,
            notes=f"Groupe {group.id}" + (f" : {note}" if note else ""),
            created_at=now,
        ))


def _notify_members(notifier, group: ProposalGroup, db: Session, warnings: List[str]) -> None:
    for trip_id in group.trip_ids:
        trip = db.get(Trip, trip_id)
        notify(
            notifier,
            NotificationCategory.OPTIMIZATION_PROPOSAL_RESULT,
            [trip.user_email],
            {
                "trip": template_data(trip),
                "status": group.status,
                "vehicle_type": group.vehicle_type,
                "member_count": group.member_count,
                "proposed_departure_time": group.proposed_departure_time.strftime("%H:%M"),
            },
            warnings,
        )


def approve_proposal(
    db: Session,
    group_id: str,
    actor: ActorRef,
    note: Optional[str] = None,
    *,
    ledger=None,
    notifier=None,
    now: Optional[datetime] = None,
) -> ProposalActionResult:
    """
    Approuve une proposition : les membres passent en optimized avec l'horaire
    et le véhicule partagés (horaire d'origine conservé), les aperçus sont supprimés.
    """
    now = now or datetime.now()
    ledger = ledger or get_audit_ledger()
    notifier = notifier or get_notifier()

    try:
        _require_admin(actor)
        group = _load_group(db, group_id)
        _close_group(db, group.id, GroupStatus.PROPOSED, GroupStatus.APPROVED, {
            "resolved_by": actor.email, "resolved_at": now, "resolution_note": note,
        })
        sources = [s.value for s in sources_for(TripStatus.OPTIMIZED)]
        result = db.execute(
            update(Trip)
            .where(
                Trip.id.in_(group.trip_ids),
                Trip.data_type == DataType.RAW.value,
                Trip.optimized_group_id == group.id,
                Trip.status.in_(sources),
            )
            .values(
                status=TripStatus.OPTIMIZED.value,
                original_departure_time=Trip.departure_time,
                departure_time=group.proposed_departure_time,
                vehicle_type=group.vehicle_type,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != group.member_count:
            raise IllegalTransition("Certains membres ne sont plus en attente de regroupement.")
        _delete_previews(db, group.id)
        db.commit()
    except WorkflowError as e:
        db.rollback()
        return ProposalActionResult(outcome=e.outcome, message=e.message)
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(group)
    _audit_members(ledger, group, actor, AuditAction.OPTIMIZATION_APPROVED,
                   TripStatus.PROPOSED.value, now, note, db)
    warnings = []
    _notify_members(notifier, group, db, warnings)
    logger.info("Proposition %s approuvée par %s", group.id, actor.email)
    return ProposalActionResult(
        outcome=Outcome.OK,
        message="Proposition approuvée.",
        proposal=ProposalResponse.model_validate(group),
        warnings=warnings,
    )


def reject_proposal(
    db: Session,
    group_id: str,
    actor: ActorRef,
    note: Optional[str] = None,
    *,
    ledger=None,
    notifier=None,
    now: Optional[datetime] = None,
) -> ProposalActionResult:
    """Refuse une proposition : les membres retrouvent leur statut d'avant, le lien est effacé."""
    now = now or datetime.now()
    ledger = ledger or get_audit_ledger()
    notifier = notifier or get_notifier()

    try:
        _require_admin(actor)
        group = _load_group(db, group_id)
        _close_group(db, group.id, GroupStatus.PROPOSED, GroupStatus.REJECTED, {
            "resolved_by": actor.email, "resolved_at": now, "resolution_note": note,
        })
        restored = _restore_members(db, group, TripStatus.PROPOSED, {"updated_at": now})
        if restored != group.member_count:
            raise IllegalTransition("Certains membres ne sont plus en attente de regroupement.")
        _delete_previews(db, group.id)
        db.commit()
    except WorkflowError as e:
        db.rollback()
        return ProposalActionResult(outcome=e.outcome, message=e.message)
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(group)
    _audit_members(ledger, group, actor, AuditAction.OPTIMIZATION_REJECTED,
                   TripStatus.PROPOSED.value, now, note, db)
    warnings = []
    _notify_members(notifier, group, db, warnings)
    logger.info("Proposition %s refusée par %s", group.id, actor.email)
    return ProposalActionResult(
        outcome=Outcome.OK,
        message="Proposition refusée.",
        proposal=ProposalResponse.model_validate(group),
        warnings=warnings,
    )


def resolve_proposal(db: Session, group_id: str, action: str, actor: ActorRef,
                     note: Optional[str] = None, **kwargs) -> ProposalActionResult:
    """Point d'entrée unique : action 'approve' ou 'reject'."""
    if action == "approve":
        return approve_proposal(db, group_id, actor, note, **kwargs)
    if action == "reject":
        return reject_proposal(db, group_id, actor, note, **kwargs)
    return ProposalActionResult(
        outcome=Outcome.VALIDATION_ERROR,
        message="Action invalide : 'approve' ou 'reject' attendu.",
    )


def revert_optimization(
    db: Session,
    group_id: str,
    actor: ActorRef,
    reason: str,
    *,
    ledger=None,
    now: Optional[datetime] = None,
) -> ProposalActionResult:
    """
    Dérogation administrative : annule un regroupement déjà approuvé.
    Les membres optimized retrouvent leur horaire d'origine et leur statut d'avant
    proposition ; la combinaison n'est plus reproposée par les balayages suivants.
    """
    now = now or datetime.now()
    ledger = ledger or get_audit_ledger()

    try:
        _require_admin(actor)
        if not reason or not reason.strip():
            raise ValidationFailed("Une justification est obligatoire pour annuler un regroupement.")
        group = _load_group(db, group_id)
        if not all(can_override(TripStatus.OPTIMIZED, pre_proposal_status(auto)) for auto in (True, False)):
            raise IllegalTransition("Dérogation non autorisée sur des trajets optimisés.")
        _close_group(db, group.id, GroupStatus.APPROVED, GroupStatus.REJECTED, {
            "reverted_at": now, "resolution_note": reason.strip(),
        })
        restored = _restore_members(db, group, TripStatus.OPTIMIZED, {
            "departure_time": Trip.original_departure_time,
            "original_departure_time": None,
            "vehicle_type": None,
            "updated_at": now,
        })
        if restored != group.member_count:
            raise IllegalTransition("Certains membres du groupe ne sont plus optimisés.")
        db.commit()
    except WorkflowError as e:
        db.rollback()
        return ProposalActionResult(outcome=e.outcome, message=e.message)
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(group)
    _audit_members(ledger, group, actor, AuditAction.OPTIMIZATION_REVERTED,
                   TripStatus.OPTIMIZED.value, now, f"Dérogation administrateur : {reason.strip()}", db)
    logger.warning("Regroupement %s annulé par %s : %s", group.id, actor.email, reason)
    return ProposalActionResult(
        outcome=Outcome.OK,
        message="Regroupement annulé.",
        proposal=ProposalResponse.model_validate(group),
    )


def list_proposals(db: Session, status: Optional[GroupStatus] = None) -> List[ProposalResponse]:
    """Propositions, de la plus récente à la plus ancienne."""
    query = select(ProposalGroup)
    if status is not None:
        query = query.where(ProposalGroup.status == status.value)
    groups = db.execute(query.order_by(ProposalGroup.created_at.desc(), ProposalGroup.id)).scalars().all()
    return [ProposalResponse.model_validate(g) for g in groups]


def get_proposal(db: Session, group_id: str) -> Optional[ProposalResponse]:
    group = db.get(ProposalGroup, group_id)
    if group is None:
        return None
    return ProposalResponse.model_validate(group)


def get_proposal_previews(db: Session, group_id: str) -> List[TripResponse]:
    """Aperçus temp d'une proposition en attente (vide une fois la proposition résolue)."""
    previews = db.execute(
        select(Trip)
        .where(Trip.data_type == DataType.TEMP.value, Trip.optimized_group_id == group_id)
        .order_by(Trip.parent_trip_id)
    ).scalars().all()
    return [to_response(t) for t in previews]
