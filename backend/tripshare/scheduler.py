"""
Planificateur APScheduler des tâches périodiques du workflow :
- expiration des demandes sans réponse (toutes les 6h par défaut)
- balayage de regroupement des trajets approuvés (toutes les heures)
- relance unique des managers (toutes les heures)

Chaque tâche ouvre sa propre session ; une erreur est loguée et n'arrête
jamais le planificateur.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from tripshare.config import settings
from tripshare.database import SessionLocal

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def _expire_stale_approvals_scheduled() -> None:
    """
    Tâche planifiée : persiste l'expiration des demandes en attente depuis plus de 48h.
    Import local pour éviter les imports circulaires.
    """
    from tripshare.services.approval_service import expire_stale_approvals

    db = SessionLocal()
    try:
        result = expire_stale_approvals(db)
        logger.info(
            "Expiration planifiée : %d expirée(s), %d ignorée(s), %d avertissement(s)",
            len(result.expired_trip_ids), len(result.skipped_trip_ids), len(result.warnings),
        )
    except Exception as exc:
        logger.error("Erreur lors du balayage d'expiration : %s", exc, exc_info=True)
    finally:
        db.close()


def _optimization_sweep_scheduled() -> None:
    """Tâche planifiée : regroupe les trajets approuvés compatibles."""
    from tripshare.services.optimization_service import run_optimization_sweep

    db = SessionLocal()
    try:
        result = run_optimization_sweep(db)
        logger.info(
            "Optimisation planifiée : %d candidat(s), %d proposition(s), %d solo",
            result.candidate_count, len(result.proposals), len(result.solo_trip_ids),
        )
    except Exception as exc:
        logger.error("Erreur lors du balayage d'optimisation : %s", exc, exc_info=True)
    finally:
        db.close()


def _pending_reminders_scheduled() -> None:
    """Tâche planifiée : relance les managers des demandes en attente depuis 24h."""
    from tripshare.services.approval_service import send_pending_reminders

    db = SessionLocal()
    try:
        result = send_pending_reminders(db)
        if result.reminded_trip_ids:
            logger.info("%d relance(s) envoyée(s)", len(result.reminded_trip_ids))
    except Exception as exc:
        logger.error("Erreur lors de l'envoi des relances : %s", exc, exc_info=True)
    finally:
        db.close()


def start_scheduler() -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler désactivé (SCHEDULER_ENABLED=false).")
        return

    scheduler.add_job(
        _expire_stale_approvals_scheduled,
        trigger="interval",
        hours=settings.EXPIRY_SWEEP_INTERVAL_HOURS,
        id="approval_expiry_sweep",
        replace_existing=True,
    )
    scheduler.add_job(
        _optimization_sweep_scheduled,
        trigger="interval",
        hours=settings.OPTIMIZATION_SWEEP_INTERVAL_HOURS,
        id="optimization_sweep",
        replace_existing=True,
    )
    scheduler.add_job(
        _pending_reminders_scheduled,
        trigger="interval",
        hours=1,
        id="approval_reminders",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler démarré — expiration toutes les %dh, optimisation toutes les %dh.",
        settings.EXPIRY_SWEEP_INTERVAL_HOURS, settings.OPTIMIZATION_SWEEP_INTERVAL_HOURS,
    )


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
