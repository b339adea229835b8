"""
Migration ponctuelle des anciennes valeurs de statut vers l'ensemble fermé.

  draft, pending → pending_approval
  confirmed      → approved

En dehors de cette migration, une valeur inconnue n'est jamais convertie :
elle est seulement signalée pour traitement manuel.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripshare.models.trip import Trip
from tripshare.models.trip_status import LEGACY_STATUS_MAP, ManagerApprovalStatus, TripStatus, parse_status
from tripshare.schemas.audit import AuditAction, AuditEntryCreate
from tripshare.schemas.trip import SYSTEM_ACTOR
from tripshare.services.audit_service import get_audit_ledger, record

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    migrated: Dict[str, int] = field(default_factory=dict)  # ancienne valeur → nombre de trajets
    unknown: Dict[str, int] = field(default_factory=dict)   # valeurs hors ensemble, non modifiées


def migrate_legacy_statuses(
    db: Session,
    *,
    ledger=None,
    now: Optional[datetime] = None,
) -> MigrationReport:
    """Réécrit les statuts historiques ; idempotente (un second passage ne trouve plus rien)."""
    now = now or datetime.now()
    ledger = ledger or get_audit_ledger()
    report = MigrationReport()

    rows = db.execute(select(Trip.id, Trip.status)).all()
    unknown = Counter(s for _, s in rows if parse_status(s) is None and s not in LEGACY_STATUS_MAP)
    report.unknown = dict(unknown)
    legacy_rows = [(trip_id, s) for trip_id, s in rows if s in LEGACY_STATUS_MAP]

    migrated = Counter()
    for trip_id, old_status in legacy_rows:
        target = LEGACY_STATUS_MAP[old_status]
        approval = (
            ManagerApprovalStatus.APPROVED if target == TripStatus.APPROVED
            else ManagerApprovalStatus.PENDING
        )
        try:
            result = db.execute(
                update(Trip)
                .where(Trip.id == trip_id, Trip.status == old_status)
                .values(status=target.value, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.rollback()
                continue
            db.execute(
                update(Trip)
                .where(Trip.id == trip_id, Trip.manager_approval_status.is_(None))
                .values(manager_approval_status=approval.value)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        migrated[old_status] += 1
        record(ledger, AuditEntryCreate.for_actor(
            SYSTEM_ACTOR,
            trip_id=trip_id,
            action=AuditAction.STATUS_MIGRATED,
            old_status=old_status,
            new_status=target.value,
            notes="Migration des statuts historiques",
            created_at=now,
        ))

    report.migrated = dict(migrated)
    if report.unknown:
        logger.warning("Statuts inconnus laissés en l'état : %s", report.unknown)
    logger.info("Migration des statuts : %s", report.migrated or "rien à migrer")
    return report
