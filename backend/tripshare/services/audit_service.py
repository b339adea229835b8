"""
Journal d'audit des actions sur les trajets.

Le journal est une observabilité « au mieux » : un échec d'écriture est logué
mais n'annule ni ne bloque jamais la transition métier qu'il décrit. Il écrit
donc dans sa propre session, après le commit de l'opération principale.
Les services reçoivent le journal en paramètre (injectable, remplaçable en test).
"""

import logging
from datetime import datetime
from typing import Callable, List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripshare.database import SessionLocal
from tripshare.models.audit_entry import AuditEntry
from tripshare.schemas.audit import AuditEntryCreate, AuditEntryResponse

logger = logging.getLogger(__name__)


class SqlAuditLedger:
    """Journal d'audit persistant en base (table audit_entries)."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def append(self, entry: AuditEntryCreate) -> None:
        """Ajoute une entrée. Ne lève jamais : les erreurs sont seulement loguées."""
        db = self._session_factory()
        try:
            db.add(AuditEntry(
                trip_id=entry.trip_id,
                action=entry.action,
                actor_email=entry.actor_email,
                actor_name=entry.actor_name,
                actor_role=entry.actor_role,
                old_status=entry.old_status,
                new_status=entry.new_status,
                notes=entry.notes,
                ip_address=entry.ip_address,
                user_agent=entry.user_agent,
                created_at=entry.created_at or datetime.now(),
            ))
            db.commit()
            logger.info(
                "Audit : %s sur le trajet %s par %s", entry.action, entry.trip_id, entry.actor_email
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Échec d'écriture du journal d'audit (trajet %s) : %s", entry.trip_id, exc)
        finally:
            db.close()

    def entries_for(self, trip_id: str) -> List[AuditEntryResponse]:
        """Entrées d'un trajet, de la plus récente à la plus ancienne."""
        db = self._session_factory()
        try:
            rows = db.execute(
                select(AuditEntry)
                .where(AuditEntry.trip_id == trip_id)
                .order_by(AuditEntry.created_at.desc(), AuditEntry.id.desc())
            ).scalars().all()
            return [AuditEntryResponse.model_validate(r) for r in rows]
        finally:
            db.close()

    def recent(self, limit: int = 100) -> List[AuditEntryResponse]:
        db = self._session_factory()
        try:
            rows = db.execute(
                select(AuditEntry)
                .order_by(AuditEntry.created_at.desc(), AuditEntry.id.desc())
                .limit(limit)
            ).scalars().all()
            return [AuditEntryResponse.model_validate(r) for r in rows]
        finally:
            db.close()


_default_ledger = SqlAuditLedger()


def get_audit_ledger() -> SqlAuditLedger:
    """Dépendance FastAPI — journal d'audit par défaut."""
    return _default_ledger


def record(ledger, entry: AuditEntryCreate) -> None:
    """
    Ajoute une entrée au journal injecté sans jamais bloquer l'appelant.
    Un journal tiers qui lève est traité comme un échec d'écriture.
    """
    try:
        ledger.append(entry)
    except Exception as exc:  # journal tiers : toute erreur reste non bloquante
        logger.error("Journal d'audit en erreur (trajet %s) : %s", entry.trip_id, exc, exc_info=True)
