"""
Tests du journal d'audit : ordre de lecture et écriture « au mieux ».
"""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

from sqlalchemy.exc import SQLAlchemyError

from tripshare.schemas.audit import AuditAction, AuditEntryCreate
from tripshare.schemas.trip import ActorRef
from tripshare.services.audit_service import SqlAuditLedger, record

NOW = datetime(2026, 3, 2, 9, 0)


def make_entry(action, created_at, trip_id="trip-1"):
    return AuditEntryCreate(
        trip_id=trip_id,
        action=action,
        actor_email="admin@corp.test",
        actor_role="admin",
        created_at=created_at,
    )


def test_entrees_de_la_plus_recente_a_la_plus_ancienne(ledger):
    ledger.append(make_entry(AuditAction.SUBMIT, NOW))
    ledger.append(make_entry(AuditAction.APPROVE, NOW + timedelta(hours=2)))
    ledger.append(make_entry(AuditAction.VEHICLE_ASSIGNED, NOW + timedelta(hours=5)))
    ledger.append(make_entry(AuditAction.SUBMIT, NOW, trip_id="trip-2"))

    entries = ledger.entries_for("trip-1")

    assert [e.action for e in entries] == [
        AuditAction.VEHICLE_ASSIGNED, AuditAction.APPROVE, AuditAction.SUBMIT,
    ]


def test_meme_horodatage_ordre_d_insertion_inverse(ledger):
    ledger.append(make_entry(AuditAction.SUBMIT, NOW))
    ledger.append(make_entry(AuditAction.MARKED_SOLO, NOW))

    assert [e.action for e in ledger.entries_for("trip-1")] == [
        AuditAction.MARKED_SOLO, AuditAction.SUBMIT,
    ]


def test_for_actor_reprend_les_metadonnees_client(ledger):
    actor = ActorRef(email="m@corp.test", name="Manager", role="manager",
                     ip_address="10.0.0.1", user_agent="Mozilla")
    ledger.append(AuditEntryCreate.for_actor(actor, trip_id="trip-1", action=AuditAction.APPROVE,
                                             old_status="pending_approval", new_status="approved"))

    entry = ledger.entries_for("trip-1")[0]
    assert entry.actor_role == "manager"
    assert entry.ip_address == "10.0.0.1"
    assert entry.user_agent == "Mozilla"
    assert entry.old_status == "pending_approval"


def test_echec_d_ecriture_ne_leve_pas():
    """Une erreur de base pendant l'écriture est loguée, jamais propagée."""
    session = MagicMock()
    session.commit.side_effect = SQLAlchemyError("disque plein")
    failing = SqlAuditLedger(session_factory=lambda: session)

    failing.append(make_entry(AuditAction.APPROVE, NOW))

    session.rollback.assert_called_once()
    session.close.assert_called_once()


def test_recent_limite(ledger):
    for i in range(5):
        ledger.append(make_entry(AuditAction.REMIND, NOW + timedelta(minutes=i), trip_id=f"trip-{i}"))

    recent = ledger.recent(limit=3)

    assert [e.trip_id for e in recent] == ["trip-4", "trip-3", "trip-2"]


def test_record_journal_qui_leve_non_bloquant(broken_ledger):
    record(broken_ledger, make_entry(AuditAction.SUBMIT, NOW))

    assert broken_ledger.attempts == 1


def test_record_transmet_l_entree(ledger):
    record(ledger, make_entry(AuditAction.CANCEL, NOW))

    assert [e.action for e in ledger.entries_for("trip-1")] == [AuditAction.CANCEL]
